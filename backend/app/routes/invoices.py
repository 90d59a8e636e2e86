"""
Invoicerr Backend — Invoice Routes
====================================

Company-scoped invoices: CRUD, search, live list, payment, sending and the
correction workflow (modification options, credit notes).
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company, require_roles
from app.models.enums import UserRole
from app.schemas.common import ERRORS_COMMON, ErrorResponse, SuccessResponse
from app.schemas.invoice import (
    CreateFromQuoteRequest,
    CreditNoteRequest,
    InvoiceCreate,
    InvoiceIdRequest,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceUpdate,
    ModificationOptionsResponse,
)
from app.services.invoice_service import invoice_service
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])


@router.get("", response_model=InvoiceListResponse, responses=ERRORS_COMMON, summary="List invoices")
async def list_invoices(
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await invoice_service.get_invoices(db, ctx.company, page)


@router.get("/sse", summary="Invoice list as a server-sent event stream")
async def list_invoices_sse(
    request: Request,
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
):
    async def snapshot(session: AsyncSession):
        data = await invoice_service.get_invoices(session, ctx.company, page)
        return InvoiceListResponse.model_validate(data, from_attributes=True)

    return sse_response(request, snapshot)


@router.get("/search", response_model=List[InvoiceResponse], responses=ERRORS_COMMON, summary="Search invoices")
async def search_invoices(
    query: str = Query(default="", description="Quote title, client name or invoice number"),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.search_invoices(db, ctx.company, query)


@router.post(
    "/create-from-quote",
    response_model=InvoiceResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Create an invoice from a quote",
)
async def create_invoice_from_quote(
    body: CreateFromQuoteRequest,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.create_invoice_from_quote(db, ctx.company, body.quote_id)


@router.post("/mark-as-paid", response_model=InvoiceResponse, responses=ERRORS_COMMON, summary="Mark an invoice as paid")
async def mark_invoice_as_paid(
    body: InvoiceIdRequest,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.mark_invoice_as_paid(db, ctx.company, body.id)


@router.post(
    "/send",
    response_model=SuccessResponse,
    responses={**ERRORS_COMMON, 502: {"model": ErrorResponse, "description": "Mail delivery failed"}},
    summary="Mail the invoice to the client",
)
async def send_invoice(
    body: InvoiceIdRequest,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await invoice_service.send_invoice(db, ctx.company, body.id)


@router.get("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS_COMMON, summary="Get an invoice")
async def get_invoice(
    invoice_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.get_invoice_by_id(db, ctx.company, invoice_id)


@router.get(
    "/{invoice_id}/modification-options",
    response_model=ModificationOptionsResponse,
    responses=ERRORS_COMMON,
    summary="Which correction paths are available for an invoice",
)
async def get_modification_options(
    invoice_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    invoice = await invoice_service.get_invoice_by_id(db, ctx.company, invoice_id)
    return invoice_service.get_modification_options(invoice)


@router.post(
    "/{invoice_id}/credit-note",
    response_model=InvoiceResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Credit some or all lines of an invoice",
)
async def create_credit_note(
    invoice_id: str,
    body: CreditNoteRequest,
    ctx: CompanyContext = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.create_credit_note(
        db,
        ctx.company,
        invoice_id,
        body.correction_code,
        body.reason,
        [item.model_dump() for item in body.items],
    )


@router.post("", response_model=InvoiceResponse, status_code=201, responses=ERRORS_COMMON, summary="Create an invoice")
async def create_invoice(
    body: InvoiceCreate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.create_invoice(db, ctx.company, body.model_dump())


@router.patch("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS_COMMON, summary="Edit an invoice")
async def edit_invoice(
    invoice_id: str,
    body: InvoiceUpdate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.edit_invoice(db, ctx.company, invoice_id, body.model_dump(exclude_unset=True))


@router.delete("/{invoice_id}", response_model=InvoiceResponse, responses=ERRORS_COMMON, summary="Deactivate an invoice")
async def delete_invoice(
    invoice_id: str,
    ctx: CompanyContext = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
):
    return await invoice_service.delete_invoice(db, ctx.company, invoice_id)
