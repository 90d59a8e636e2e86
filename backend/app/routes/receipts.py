"""
Invoicerr Backend — Receipt Routes
====================================

Receipts carry no company of their own; every lookup goes through the
invoice's company (see ReceiptService._scoped).
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company, require_roles
from app.models.enums import UserRole
from app.schemas.common import ERRORS_COMMON, ErrorResponse, MessageResponse, SuccessResponse
from app.schemas.receipt import (
    ReceiptCreate,
    ReceiptIdRequest,
    ReceiptListResponse,
    ReceiptResponse,
    ReceiptUpdate,
)
from app.services.receipt_service import receipt_service
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/receipts", tags=["Receipts"])


@router.get("", response_model=ReceiptListResponse, responses=ERRORS_COMMON, summary="List receipts")
async def list_receipts(
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await receipt_service.get_receipts(db, ctx.company, page)


@router.get("/sse", summary="Receipt list as a server-sent event stream")
async def list_receipts_sse(
    request: Request,
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
):
    async def snapshot(session: AsyncSession):
        data = await receipt_service.get_receipts(session, ctx.company, page)
        return ReceiptListResponse.model_validate(data, from_attributes=True)

    return sse_response(request, snapshot)


@router.get("/search", response_model=List[ReceiptResponse], responses=ERRORS_COMMON, summary="Search receipts")
async def search_receipts(
    query: str = Query(default="", description="Invoice number or client name"),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await receipt_service.search_receipts(db, ctx.company, query)


@router.post(
    "/create-from-invoice",
    response_model=ReceiptResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Receipt paying every line of an invoice in full",
)
async def create_receipt_from_invoice(
    body: ReceiptIdRequest,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await receipt_service.create_receipt_from_invoice(db, ctx.company, body.id)


@router.post(
    "/send",
    response_model=SuccessResponse,
    responses={**ERRORS_COMMON, 502: {"model": ErrorResponse, "description": "Mail delivery failed"}},
    summary="Mail the receipt to the client",
)
async def send_receipt(
    body: ReceiptIdRequest,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await receipt_service.send_receipt_by_email(db, ctx.company, body.id)


@router.get("/{receipt_id}", response_model=ReceiptResponse, responses=ERRORS_COMMON, summary="Get a receipt")
async def get_receipt(
    receipt_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await receipt_service.get_receipt(db, ctx.company, receipt_id)


@router.post("", response_model=ReceiptResponse, status_code=201, responses=ERRORS_COMMON, summary="Create a receipt")
async def create_receipt(
    body: ReceiptCreate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await receipt_service.create_receipt(db, ctx.company, body.model_dump())


@router.patch("/{receipt_id}", response_model=ReceiptResponse, responses=ERRORS_COMMON, summary="Edit a receipt")
async def edit_receipt(
    receipt_id: str,
    body: ReceiptUpdate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await receipt_service.edit_receipt(db, ctx.company, receipt_id, body.model_dump(exclude_unset=True))


@router.delete("/{receipt_id}", response_model=MessageResponse, responses=ERRORS_COMMON, summary="Delete a receipt")
async def delete_receipt(
    receipt_id: str,
    ctx: CompanyContext = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await receipt_service.delete_receipt(db, ctx.company, receipt_id)
