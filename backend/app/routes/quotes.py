"""
Invoicerr Backend — Quote Routes
==================================

Company-scoped quotes: CRUD, search, live list, signature and sending.

Endpoints:
    GET    /api/quotes                 paginated list with status counts
    GET    /api/quotes/sse             same, as an event stream
    GET    /api/quotes/search?query=   title or client name
    POST   /api/quotes/mark-as-signed  {"id": ...}
    POST   /api/quotes/send            {"id": ...} mails a signature request
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company, require_roles
from app.models.enums import UserRole
from app.schemas.common import ERRORS_COMMON, ErrorResponse, SuccessResponse
from app.schemas.quote import (
    QuoteCreate,
    QuoteIdRequest,
    QuoteListResponse,
    QuoteResponse,
    QuoteUpdate,
)
from app.services.quote_service import quote_service
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quotes", tags=["Quotes"])


@router.get("", response_model=QuoteListResponse, responses=ERRORS_COMMON, summary="List quotes")
async def list_quotes(
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await quote_service.get_quotes(db, ctx.company, page)


@router.get("/sse", summary="Quote list as a server-sent event stream")
async def list_quotes_sse(
    request: Request,
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
):
    async def snapshot(session: AsyncSession):
        data = await quote_service.get_quotes(session, ctx.company, page)
        return QuoteListResponse.model_validate(data, from_attributes=True)

    return sse_response(request, snapshot)


@router.get("/search", response_model=List[QuoteResponse], responses=ERRORS_COMMON, summary="Search quotes")
async def search_quotes(
    query: str = Query(default=""),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await quote_service.search_quotes(db, ctx.company, query)


@router.post(
    "/mark-as-signed",
    response_model=QuoteResponse,
    responses=ERRORS_COMMON,
    summary="Mark a quote as signed",
)
async def mark_quote_as_signed(
    body: QuoteIdRequest,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await quote_service.mark_quote_as_signed(db, ctx.company, body.id)


@router.post(
    "/send",
    response_model=SuccessResponse,
    responses={**ERRORS_COMMON, 502: {"model": ErrorResponse, "description": "Mail delivery failed"}},
    summary="Send a signature request to the client",
)
async def send_quote(
    body: QuoteIdRequest,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await quote_service.send_quote(db, ctx.company, body.id)


@router.get("/{quote_id}", response_model=QuoteResponse, responses=ERRORS_COMMON, summary="Get a quote")
async def get_quote(
    quote_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await quote_service.get_quote(db, ctx.company, quote_id)


@router.post("", response_model=QuoteResponse, status_code=201, responses=ERRORS_COMMON, summary="Create a quote")
async def create_quote(
    body: QuoteCreate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await quote_service.create_quote(db, ctx.company, body.model_dump())


@router.patch("/{quote_id}", response_model=QuoteResponse, responses=ERRORS_COMMON, summary="Edit a quote")
async def edit_quote(
    quote_id: str,
    body: QuoteUpdate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await quote_service.edit_quote(db, ctx.company, quote_id, body.model_dump(exclude_unset=True))


@router.delete("/{quote_id}", response_model=QuoteResponse, responses=ERRORS_COMMON, summary="Deactivate a quote")
async def delete_quote(
    quote_id: str,
    ctx: CompanyContext = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
):
    return await quote_service.delete_quote(db, ctx.company, quote_id)
