"""
Pydantic schemas for API request/response validation.
Separate from models to control what data is exposed via API.
"""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, validate_email


# ============================================
# Account Schemas
# ============================================

class UserCreate(BaseModel):
    """Schema for account registration.

    The email must be a valid address but is stored exactly as submitted,
    since login matches it verbatim.
    """
    email: str = Field(max_length=255)
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def email_is_valid(cls, v):
        validate_email(v)
        return v


class UserResponse(BaseModel):
    """Schema for account response (no password)."""
    model_config = ConfigDict(from_attributes=True)

    email: str
    is_admin: bool


class UserList(BaseModel):
    users: List[UserResponse]


class LoginRequest(BaseModel):
    """Schema for login.

    Validated by the login route itself, so that any malformed body is
    reported as a failed login rather than a validation error.
    """
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class Token(BaseModel):
    """Schema for JWT token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class Identity(BaseModel):
    """Authenticated caller, resolved once per request."""
    model_config = ConfigDict(frozen=True)

    email: str
    is_admin: bool = False


# ============================================
# Record Schemas
# ============================================

class _RecordInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class IncomeCreate(_RecordInput):
    source: str = Field(min_length=1, max_length=120)
    amount: float = Field(gt=0, allow_inf_nan=False)
    date: dt.date
    cadence: str = Field(default="monthly", min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)


class IncomeUpdate(_RecordInput):
    """Partial update; a field may be omitted but not set to null."""
    source: Optional[str] = Field(default=None, min_length=1, max_length=120)
    amount: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    date: Optional[dt.date] = None
    cadence: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("source", "amount", "date", "cadence", mode="before")
    @classmethod
    def required_not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class IncomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_email: str
    source: str
    amount: float
    date: dt.date
    cadence: str
    description: Optional[str] = None
    created_at: dt.datetime


class IncomeList(BaseModel):
    items: List[IncomeResponse]


class ExpenseCreate(_RecordInput):
    category: str = Field(min_length=1, max_length=120)
    amount: float = Field(gt=0, allow_inf_nan=False)
    date: dt.date
    cadence: str = Field(default="monthly", min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)


class ExpenseUpdate(_RecordInput):
    """Partial update; a field may be omitted but not set to null."""
    category: Optional[str] = Field(default=None, min_length=1, max_length=120)
    amount: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    date: Optional[dt.date] = None
    cadence: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("category", "amount", "date", "cadence", mode="before")
    @classmethod
    def required_not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_email: str
    category: str
    amount: float
    date: dt.date
    cadence: str
    description: Optional[str] = None
    created_at: dt.datetime


class ExpenseList(BaseModel):
    items: List[ExpenseResponse]


class Deleted(BaseModel):
    deleted: bool = True


# ============================================
# Report Schemas
# ============================================

class Totals(BaseModel):
    income: float
    expenses: float
    net: float


class CategoryTotal(BaseModel):
    category: str
    total: float


class SourceTotal(BaseModel):
    source: str
    total: float


class Report(BaseModel):
    """Totals and breakdowns over the caller's records."""
    totals: Totals
    expenses_by_category: List[CategoryTotal]
    income_by_source: List[SourceTotal]


class MonthTotals(BaseModel):
    month: str = Field(description="YYYY-MM")
    income: float
    expenses: float
    net: float


class MonthlyReport(BaseModel):
    months: List[MonthTotals]
