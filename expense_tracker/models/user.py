from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)

    email: str = Field(index=True, unique=True)
    hashed_password: str

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
