import datetime as dt
from typing import Optional

from sqlmodel import SQLModel, Field


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    hashed_password: str
    is_admin: bool = Field(default=False)
    created_at: dt.datetime = Field(default_factory=utcnow)


class Income(SQLModel, table=True):
    __tablename__ = "income"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_email: str = Field(foreign_key="users.email", index=True)
    source: str = Field(max_length=120)
    amount: float
    date: dt.date = Field(index=True)
    cadence: str = Field(default="monthly", max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: dt.datetime = Field(default_factory=utcnow)


class Expense(SQLModel, table=True):
    __tablename__ = "expense"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_email: str = Field(foreign_key="users.email", index=True)
    category: str = Field(max_length=120, index=True)
    amount: float
    date: dt.date = Field(index=True)
    cadence: str = Field(default="monthly", max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: dt.datetime = Field(default_factory=utcnow)
