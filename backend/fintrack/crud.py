"""
CRUD operations (Create, Read, Update, Delete) for database models.

Income and expense rows are only reachable through ``OwnedRepository``,
which is bound to one owner email and adds the owner predicate to every
statement it builds.
"""

import datetime as dt
from collections import defaultdict
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import delete as sql_delete, func, update as sql_update
from sqlmodel import Session, select

from .models import User, Income, Expense


Record = TypeVar("Record", Income, Expense)


# ============================================
# User CRUD Operations
# ============================================

def create_user(session: Session, email: str, hashed_password: str, is_admin: bool = False) -> User:
    """Create a new account."""
    user = User(email=email, hashed_password=hashed_password, is_admin=is_admin)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    """Get account by email (exact match)."""
    statement = select(User).where(User.email == email)
    return session.exec(statement).first()


def list_users(session: Session) -> List[User]:
    statement = select(User).order_by(User.email)
    return session.exec(statement).all()


# ============================================
# Owner-scoped record operations
# ============================================

class OwnedRepository(Generic[Record]):
    """Income or expense access restricted to a single owner."""

    def __init__(self, session: Session, model: Type[Record], owner_email: str):
        self.session = session
        self.model = model
        self.owner_email = owner_email

    def _owned(self, statement):
        return statement.where(self.model.owner_email == self.owner_email)

    def _in_range(self, statement, date_from: Optional[dt.date], date_to: Optional[dt.date]):
        if date_from is not None:
            statement = statement.where(self.model.date >= date_from)
        if date_to is not None:
            statement = statement.where(self.model.date <= date_to)
        return statement

    def list(
        self,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Record]:
        """Owned rows, newest date first, then newest insert first."""
        statement = self._in_range(self._owned(select(self.model)), date_from, date_to)
        statement = statement.order_by(self.model.date.desc(), self.model.id.desc())
        statement = statement.offset(skip).limit(limit)
        return self.session.exec(statement).all()

    def get(self, record_id: int) -> Optional[Record]:
        statement = self._owned(select(self.model).where(self.model.id == record_id))
        return self.session.exec(statement).first()

    def create(self, data: Dict[str, Any]) -> Record:
        """Insert a row owned by this repository's owner.

        Any owner field in ``data`` is overwritten.
        """
        values = dict(data)
        values["owner_email"] = self.owner_email
        record = self.model(**values)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def update(self, record_id: int, changes: Dict[str, Any]) -> Optional[Record]:
        """Apply ``changes`` to an owned row; None when no owned row matches."""
        values = {k: v for k, v in changes.items() if k not in ("id", "owner_email")}
        statement = self._owned(
            sql_update(self.model).where(self.model.id == record_id)
        ).values(**values)
        result = self.session.exec(statement)
        self.session.commit()
        if result.rowcount == 0:
            return None
        return self.get(record_id)

    def delete(self, record_id: int) -> bool:
        statement = self._owned(sql_delete(self.model).where(self.model.id == record_id))
        result = self.session.exec(statement)
        self.session.commit()
        return result.rowcount > 0

    def total(self, date_from: Optional[dt.date] = None, date_to: Optional[dt.date] = None) -> float:
        statement = self._owned(select(func.coalesce(func.sum(self.model.amount), 0)))
        statement = self._in_range(statement, date_from, date_to)
        return float(self.session.exec(statement).one())

    def totals_by(
        self,
        column: str,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> List[tuple]:
        """(label, total) pairs grouped by ``column``, largest total first."""
        label = getattr(self.model, column)
        total = func.sum(self.model.amount).label("total")
        statement = self._owned(select(label, total))
        statement = self._in_range(statement, date_from, date_to)
        statement = statement.group_by(label).order_by(total.desc(), label)
        return [(name, round(float(amount), 2)) for name, amount in self.session.exec(statement).all()]

    def amounts_by_date(
        self,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> List[tuple]:
        statement = self._owned(select(self.model.date, self.model.amount))
        statement = self._in_range(statement, date_from, date_to)
        return self.session.exec(statement).all()


# ============================================
# Reports
# ============================================

def build_report(
    incomes: OwnedRepository[Income],
    expenses: OwnedRepository[Expense],
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
) -> dict:
    """Totals plus per-category and per-source breakdowns."""
    income_total = round(incomes.total(date_from, date_to), 2)
    expense_total = round(expenses.total(date_from, date_to), 2)

    return {
        "totals": {
            "income": income_total,
            "expenses": expense_total,
            "net": round(income_total - expense_total, 2),
        },
        "expenses_by_category": [
            {"category": name, "total": total}
            for name, total in expenses.totals_by("category", date_from, date_to)
        ],
        "income_by_source": [
            {"source": name, "total": total}
            for name, total in incomes.totals_by("source", date_from, date_to)
        ],
    }


def build_monthly_report(
    incomes: OwnedRepository[Income],
    expenses: OwnedRepository[Expense],
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
) -> dict:
    """Income and expense totals per calendar month, oldest month first."""
    buckets = defaultdict(lambda: {"income": 0.0, "expenses": 0.0})

    for day, amount in incomes.amounts_by_date(date_from, date_to):
        buckets[day.strftime("%Y-%m")]["income"] += amount
    for day, amount in expenses.amounts_by_date(date_from, date_to):
        buckets[day.strftime("%Y-%m")]["expenses"] += amount

    months = []
    for month in sorted(buckets):
        income = round(buckets[month]["income"], 2)
        spent = round(buckets[month]["expenses"], 2)
        months.append({
            "month": month,
            "income": income,
            "expenses": spent,
            "net": round(income - spent, 2),
        })
    return {"months": months}
