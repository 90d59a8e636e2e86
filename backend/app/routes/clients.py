"""
Invoicerr Backend — Client Routes
===================================

Company-scoped client CRUD. Deleting only deactivates: quotes and invoices
keep pointing at the client.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company, require_roles
from app.models.enums import UserRole
from app.schemas.client import ClientCreate, ClientListResponse, ClientResponse, ClientUpdate
from app.schemas.common import ERRORS_COMMON
from app.services.client_service import client_service
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["Clients"])


@router.get("", response_model=ClientListResponse, responses=ERRORS_COMMON, summary="List active clients")
async def list_clients(
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await client_service.get_clients(db, ctx.company, page)


@router.get("/sse", summary="Client list as a server-sent event stream")
async def list_clients_sse(
    request: Request,
    page: int = Query(default=1, ge=1),
    ctx: CompanyContext = Depends(require_company),
):
    async def snapshot(session: AsyncSession):
        data = await client_service.get_clients(session, ctx.company, page)
        return ClientListResponse.model_validate(data, from_attributes=True)

    return sse_response(request, snapshot)


@router.get("/search", response_model=List[ClientResponse], responses=ERRORS_COMMON, summary="Search clients")
async def search_clients(
    query: str = Query(default="", description="Matches name, contact names or email"),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await client_service.search_clients(db, ctx.company, query)


@router.get("/{client_id}", response_model=ClientResponse, responses=ERRORS_COMMON, summary="Get a client")
async def get_client(
    client_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await client_service.get_client(db, ctx.company, client_id)


@router.post("", response_model=ClientResponse, status_code=201, responses=ERRORS_COMMON, summary="Create a client")
async def create_client(
    body: ClientCreate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await client_service.create_client(db, ctx.company, body.model_dump(exclude_none=True))


@router.patch("/{client_id}", response_model=ClientResponse, responses=ERRORS_COMMON, summary="Edit a client")
async def edit_client(
    client_id: str,
    body: ClientUpdate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await client_service.edit_client(db, ctx.company, client_id, body.model_dump(exclude_unset=True))


@router.delete("/{client_id}", response_model=ClientResponse, responses=ERRORS_COMMON, summary="Deactivate a client")
async def delete_client(
    client_id: str,
    ctx: CompanyContext = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db_session),
):
    return await client_service.delete_client(db, ctx.company, client_id)
