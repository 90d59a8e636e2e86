"""Payment method routes (company scoped). Changes need ADMIN or above."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company, require_roles
from app.models.enums import UserRole
from app.schemas.common import ERRORS_COMMON
from app.schemas.payment_method import (
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentMethodUpdate,
)
from app.services.payment_method_service import payment_method_service
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment-methods", tags=["Payment Methods"])

require_admin = require_roles(UserRole.ADMIN)


@router.get("", response_model=List[PaymentMethodResponse], responses=ERRORS_COMMON, summary="List active payment methods")
async def list_payment_methods(
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await payment_method_service.find_all(db, ctx.company)


@router.get("/sse", summary="Payment methods as a server-sent event stream")
async def list_payment_methods_sse(request: Request, ctx: CompanyContext = Depends(require_company)):
    async def snapshot(session: AsyncSession):
        methods = await payment_method_service.find_all(session, ctx.company)
        return [PaymentMethodResponse.model_validate(m) for m in methods]

    return sse_response(request, snapshot)


@router.get("/{method_id}", response_model=PaymentMethodResponse, responses=ERRORS_COMMON, summary="Get a payment method")
async def get_payment_method(
    method_id: str,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await payment_method_service.find_one(db, ctx.company, method_id)


@router.post(
    "",
    response_model=PaymentMethodResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Create a payment method",
)
async def create_payment_method(
    body: PaymentMethodCreate,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await payment_method_service.create(db, ctx.company, body.model_dump())


@router.patch("/{method_id}", response_model=PaymentMethodResponse, responses=ERRORS_COMMON, summary="Edit a payment method")
async def update_payment_method(
    method_id: str,
    body: PaymentMethodUpdate,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await payment_method_service.update(db, ctx.company, method_id, body.model_dump(exclude_unset=True))


@router.delete("/{method_id}", response_model=PaymentMethodResponse, responses=ERRORS_COMMON, summary="Deactivate a payment method")
async def delete_payment_method(
    method_id: str,
    ctx: CompanyContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await payment_method_service.soft_delete(db, ctx.company, method_id)
