"""Recurring invoice template routes (company scoped)."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company, require_roles
from app.models.enums import UserRole
from app.schemas.common import ERRORS_COMMON, MessageResponse
from app.schemas.recurring_invoice import (
    RecurringInvoiceCreate,
    RecurringInvoiceListResponse,
    RecurringInvoiceResponse,
    RecurringInvoiceUpdate,
)
from app.services.recurring_invoice_service import recurring_invoice_service
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recurring-invoices", tags=["Recurring Invoices"])


@router.get("", response_model=RecurringInvoiceListResponse, responses=ERRORS_COMMON, summary="List recurring invoices")
async def list_recurring_invoices(
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await recurring_invoice_service.list(db, ctx.company, page)


@router.get("/sse", summary="Recurring invoice list as a server-sent event stream")
async def list_recurring_invoices_sse(
    request: Request,
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
):
    async def snapshot(session: AsyncSession):
        data = await recurring_invoice_service.list(session, ctx.company, page)
        return RecurringInvoiceListResponse.model_validate(data, from_attributes=True)

    return sse_response(request, snapshot)


@router.get("/{recurring_id}", response_model=RecurringInvoiceResponse, responses=ERRORS_COMMON, summary="Get a recurring invoice")
async def get_recurring_invoice(
    recurring_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await recurring_invoice_service.get(db, ctx.company, recurring_id)


@router.post(
    "",
    response_model=RecurringInvoiceResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Create a recurring invoice",
)
async def create_recurring_invoice(
    body: RecurringInvoiceCreate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await recurring_invoice_service.create(db, ctx.company, body.model_dump())


@router.patch("/{recurring_id}", response_model=RecurringInvoiceResponse, responses=ERRORS_COMMON, summary="Edit a recurring invoice")
async def update_recurring_invoice(
    recurring_id: str,
    body: RecurringInvoiceUpdate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await recurring_invoice_service.update(
        db, ctx.company, recurring_id, body.model_dump(exclude_unset=True)
    )


@router.delete("/{recurring_id}", response_model=MessageResponse, responses=ERRORS_COMMON, summary="Delete a recurring invoice")
async def delete_recurring_invoice(
    recurring_id: str,
    ctx: CompanyContext = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await recurring_invoice_service.delete(db, ctx.company, recurring_id)
