import datetime as dt
from decimal import Decimal
from typing import Optional
from sqlmodel import SQLModel, Field


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(
        foreign_key="users.id",
        index=True
    )

    amount: Decimal = Field(max_digits=10, decimal_places=2)
    category: str = Field(max_length=50, index=True)
    description: str = Field(default="")
    date: dt.date = Field(index=True)
