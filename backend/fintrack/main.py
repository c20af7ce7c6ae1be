"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Body, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from .config import configure_logging, settings
from .crud import OwnedRepository, build_monthly_report, build_report, create_user, get_user_by_email, list_users
from .database import create_db_and_tables, get_session
from .deps import DateRange, get_current_identity, get_date_range, get_expense_repo, get_income_repo, require_admin
from .models import Income, Expense
from .records import expense_router, income_router
from .schemas import (
    Identity,
    LoginRequest,
    MonthlyReport,
    Report,
    Token,
    UserCreate,
    UserList,
    UserResponse,
)
from .auth import authenticate_user, create_access_token, get_password_hash

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on application startup."""
    create_db_and_tables()
    logger.info("Database tables ready")
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Personal Finance Tracker API - Track income and expenses",
    lifespan=lifespan,
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Error Handlers
# ============================================

def _login_failed() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid email or password.",
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report every invalid field at once with a 400."""
    if request.url.path == "/api/login":
        # an undecodable login body is a failed login like any other
        login_error = _login_failed()
        return JSONResponse(
            status_code=login_error.status_code,
            content={"detail": login_error.detail},
            headers=login_error.headers,
        )

    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        errors.append({
            "field": ".".join(str(part) for part in loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed.", "errors": errors},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Never leak datastore error text to the client."""
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error."},
    )


# Root endpoint
@app.get("/", tags=["Root"])
def read_root():
    """Root endpoint - API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs"
    }


# Health check endpoint
@app.get("/health", tags=["Root"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# ============================================
# Authentication Endpoints
# ============================================

@app.post("/api/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED, tags=["Authentication"])
def register(
    user_data: UserCreate,
    session: Session = Depends(get_session)
):
    """Register a new account."""
    if get_user_by_email(session, user_data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists."
        )

    try:
        user = create_user(
            session,
            email=user_data.email,
            hashed_password=get_password_hash(user_data.password),
            is_admin=user_data.email in settings.ADMIN_EMAILS,
        )
    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists."
        )

    logger.info("Registered account %s", user.email)
    return user


@app.post("/api/login", response_model=Token, tags=["Authentication"])
def login(
    payload: Any = Body(None),
    session: Session = Depends(get_session)
):
    """Exchange email and password for a bearer token.

    The body is validated here rather than by FastAPI so that any malformed
    input fails the same way as wrong credentials.
    """
    user = None
    try:
        credentials = LoginRequest.model_validate(payload)
    except ValidationError:
        credentials = None
    if credentials is not None:
        user = authenticate_user(session, credentials.email, credentials.password)

    if not user:
        logger.warning("Failed login for %r", credentials.email if credentials else None)
        raise _login_failed()

    access_token = create_access_token(user.email)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


@app.get("/api/users/me", response_model=UserResponse, tags=["Users"])
def read_users_me(identity: Identity = Depends(get_current_identity)):
    """Get current account information."""
    return identity


# ============================================
# Income / Expense Endpoints
# ============================================

app.include_router(income_router)
app.include_router(expense_router)


# ============================================
# Report Endpoints
# ============================================

@app.get("/api/reports", response_model=Report, tags=["Reports"])
def get_report(
    date_range: DateRange = Depends(get_date_range),
    incomes: OwnedRepository[Income] = Depends(get_income_repo),
    expenses: OwnedRepository[Expense] = Depends(get_expense_repo),
):
    """Totals and category breakdown over the caller's records."""
    return build_report(incomes, expenses, date_range.start, date_range.end)


@app.get("/api/reports/monthly", response_model=MonthlyReport, tags=["Reports"])
def get_monthly_report(
    date_range: DateRange = Depends(get_date_range),
    incomes: OwnedRepository[Income] = Depends(get_income_repo),
    expenses: OwnedRepository[Expense] = Depends(get_expense_repo),
):
    """Income and expenses per calendar month."""
    return build_monthly_report(incomes, expenses, date_range.start, date_range.end)


# ============================================
# Admin Endpoints
# ============================================

@app.get("/api/admin/users", response_model=UserList, tags=["Admin"])
def admin_list_users(
    _admin: Identity = Depends(require_admin),
    session: Session = Depends(get_session)
):
    """List every account. Requires the admin flag."""
    return {"users": list_users(session)}
