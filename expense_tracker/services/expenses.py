"""Expense operations scoped to a single owner."""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator, List, Tuple

from sqlalchemy import delete, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.errors import PersistenceError
from ..models.expense import Expense
from ..schemas.expense import (
    CENTS,
    AddExpense,
    CategoryTotal,
    DeleteExpense,
    EditExpense,
    ExportFilter,
    MonthFilter,
)


logger = logging.getLogger(__name__)

CSV_HEADER = "Date,Category,Amount"


class ExpenseService:
    """
    Every statement issued here carries ``user_id = <owner>``, so a caller can
    never read or touch another user's rows.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _store(self, operation: str, failure_message: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("DB error (%s)", operation)
            raise PersistenceError(failure_message) from e

    def add(self, user_id: int, command: AddExpense) -> Expense:
        expense = Expense(
            user_id=user_id,
            amount=command.amount,
            category=command.category,
            description=command.description,
            date=command.date,
        )
        with self._store("add expense", "Error adding expense."):
            self.session.add(expense)
            self.session.commit()
            self.session.refresh(expense)
        logger.info("User %s added expense %s", user_id, expense.id)
        return expense

    def summary(self, user_id: int) -> List[CategoryTotal]:
        """Totals per category across all time."""
        statement = (
            select(Expense.category, func.sum(Expense.amount).label("total"))
            .where(Expense.user_id == user_id)
            .group_by(Expense.category)
            .order_by(Expense.category)
        )
        with self._store("summary", "Error retrieving summary"):
            rows = self.session.exec(statement).all()
        return [CategoryTotal(category=category, total=_money(total)) for category, total in rows]

    def month_total(self, user_id: int, month_filter: MonthFilter) -> Decimal:
        statement = select(func.sum(Expense.amount)).where(
            Expense.user_id == user_id,
            Expense.date >= month_filter.start,
            Expense.date <= month_filter.end,
        )
        if month_filter.category:
            statement = statement.where(Expense.category == month_filter.category)

        with self._store("filtered summary", "Error calculating filtered summary"):
            total = self.session.exec(statement).one()
        return _money(total)

    def edit(self, user_id: int, command: EditExpense) -> int:
        """Returns the number of rows changed; zero when the id is missing or not owned."""
        statement = (
            update(Expense)
            .where(Expense.id == command.id, Expense.user_id == user_id)
            .values(date=command.date, category=command.category, amount=command.amount)
        )
        with self._store("edit expense", "Failed to update expense."):
            result = self.session.exec(statement)
            self.session.commit()
        logger.info("User %s edited expense %s (%d row(s))", user_id, command.id, result.rowcount)
        return result.rowcount

    def delete(self, user_id: int, command: DeleteExpense) -> int:
        """Returns the number of rows removed; zero when the id is missing or not owned."""
        statement = delete(Expense).where(Expense.id == command.id, Expense.user_id == user_id)
        with self._store("delete expense", "Failed to delete expense."):
            result = self.session.exec(statement)
            self.session.commit()
        logger.info("User %s deleted expense %s (%d row(s))", user_id, command.id, result.rowcount)
        return result.rowcount

    def export_rows(self, user_id: int, export_filter: ExportFilter) -> List[Tuple]:
        statement = select(Expense.date, Expense.category, Expense.amount).where(
            Expense.user_id == user_id
        )
        date_range = export_filter.date_range
        if date_range:
            statement = statement.where(Expense.date.between(*date_range))
        if export_filter.category:
            statement = statement.where(Expense.category == export_filter.category)
        statement = statement.order_by(Expense.date, Expense.id)

        with self._store("export", "Export failed"):
            return list(self.session.exec(statement).all())

    def export_csv(self, user_id: int, export_filter: ExportFilter) -> str:
        rows = self.export_rows(user_id, export_filter)
        try:
            return render_csv(rows)
        except (TypeError, ValueError, ArithmeticError) as e:
            logger.exception("Export formatting failed for user %s", user_id)
            raise PersistenceError("Export failed") from e


def _money(value) -> Decimal:
    """Sums come back as Decimal or float depending on the driver; both are reported in cents."""
    return Decimal(str(value or 0)).quantize(CENTS)


def _format_amount(amount) -> str:
    return f"{_money(amount)}"


def render_csv(rows: Iterable[Tuple]) -> str:
    """
    Header plus one ``date,category,amount`` line per row, newline separated.

    Fields are joined literally; values are assumed not to contain commas.
    """
    lines = [CSV_HEADER]
    lines.extend(
        f"{date.isoformat()},{category},{_format_amount(amount)}"
        for date, category, amount in rows
    )
    return "\n".join(lines)
