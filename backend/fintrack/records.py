"""
Income and expense endpoints.

Both resources share the same shape, so their routers are built by
``build_record_router``. Handlers only ever see an ``OwnedRepository``
already bound to the caller, never a raw session.
"""

import logging
from typing import Callable, Type

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from .deps import DateRange, get_current_identity, get_date_range, get_expense_repo, get_income_repo
from .crud import OwnedRepository
from .schemas import (
    Deleted,
    ExpenseCreate,
    ExpenseList,
    ExpenseResponse,
    ExpenseUpdate,
    IncomeCreate,
    IncomeList,
    IncomeResponse,
    IncomeUpdate,
)

logger = logging.getLogger(__name__)


def build_record_router(
    *,
    label: str,
    singular: str,
    plural: str,
    get_repo: Callable[..., OwnedRepository],
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    response_schema: Type[BaseModel],
    list_schema: Type[BaseModel],
) -> APIRouter:
    """Mount list/get/create/patch/delete under ``/api/<singular>`` and ``/api/<plural>``."""
    router = APIRouter(tags=[label], dependencies=[Depends(get_current_identity)])
    not_found = f"{label} not found."

    def list_records(
        date_range: DateRange = Depends(get_date_range),
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=500),
        repo: OwnedRepository = Depends(get_repo),
    ):
        """List the caller's records, newest first."""
        return {"items": repo.list(date_range.start, date_range.end, skip=skip, limit=limit)}

    def read_record(record_id: int, repo: OwnedRepository = Depends(get_repo)):
        record = repo.get(record_id)
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
        return record

    def create_record(payload: create_schema, repo: OwnedRepository = Depends(get_repo)):
        """Create a record owned by the caller."""
        record = repo.create(payload.model_dump())
        logger.info("%s %s created for %s", label, record.id, repo.owner_email)
        return record

    def update_record(
        record_id: int,
        payload: update_schema,
        repo: OwnedRepository = Depends(get_repo),
    ):
        """Apply only the fields present in the request body."""
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No fields to update.",
            )
        record = repo.update(record_id, changes)
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
        return record

    def delete_record(record_id: int, repo: OwnedRepository = Depends(get_repo)):
        if not repo.delete(record_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
        logger.info("%s %s deleted for %s", label, record_id, repo.owner_email)
        return {"deleted": True}

    # the plural path is an alias kept out of the OpenAPI schema
    for path, in_schema in ((f"/api/{singular}", True), (f"/api/{plural}", False)):
        router.add_api_route(
            path, list_records, methods=["GET"], response_model=list_schema,
            include_in_schema=in_schema,
        )
        router.add_api_route(
            path, create_record, methods=["POST"], response_model=response_schema,
            status_code=status.HTTP_201_CREATED, include_in_schema=in_schema,
        )
        router.add_api_route(
            f"{path}/{{record_id}}", read_record, methods=["GET"],
            response_model=response_schema, include_in_schema=in_schema,
        )
        router.add_api_route(
            f"{path}/{{record_id}}", update_record, methods=["PATCH"],
            response_model=response_schema, include_in_schema=in_schema,
        )
        router.add_api_route(
            f"{path}/{{record_id}}", delete_record, methods=["DELETE"],
            response_model=Deleted, include_in_schema=in_schema,
        )

    return router


income_router = build_record_router(
    label="Income",
    singular="income",
    plural="incomes",
    get_repo=get_income_repo,
    create_schema=IncomeCreate,
    update_schema=IncomeUpdate,
    response_schema=IncomeResponse,
    list_schema=IncomeList,
)

expense_router = build_record_router(
    label="Expense",
    singular="expense",
    plural="expenses",
    get_repo=get_expense_repo,
    create_schema=ExpenseCreate,
    update_schema=ExpenseUpdate,
    response_schema=ExpenseResponse,
    list_schema=ExpenseList,
)
