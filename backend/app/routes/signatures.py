"""
Invoicerr Backend — Signature Routes
======================================

The signing page opened from the link in a signature request mail.
Everything but creation is anonymous: the signature id in the link and
the code mailed to the client are the credentials.

Endpoints:
    POST   /api/signatures                 {"quote_id": ...} send the quote for signature
    GET    /api/signatures/{id}            the request and the quote it signs
    POST   /api/signatures/{id}/otp        mail a verification code to the client
    POST   /api/signatures/{id}/sign       {"otp_code": ...} sign the quote
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company
from app.schemas.common import ERRORS_COMMON, ErrorResponse, SuccessResponse
from app.schemas.signature import SignatureCreate, SignatureResponse, SignRequest
from app.services.signature_service import signature_service

router = APIRouter(prefix="/api/signatures", tags=["Signatures"])

ERRORS_PUBLIC = {
    400: {"model": ErrorResponse, "description": "Signed, inactive, or code rejected"},
    404: {"model": ErrorResponse, "description": "Unknown signature"},
}


@router.post(
    "",
    response_model=SignatureResponse,
    status_code=201,
    responses=ERRORS_COMMON,
    summary="Send a quote for signature",
)
async def create_signature(
    body: SignatureCreate,
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
):
    return await signature_service.create_signature(db, ctx.company, body.quote_id)


@router.get("/{signature_id}", response_model=SignatureResponse, responses=ERRORS_PUBLIC, summary="Get a signature request")
async def get_signature(signature_id: str, db: AsyncSession = Depends(get_db_session)):
    return await signature_service.get_signature(db, signature_id)


@router.post(
    "/{signature_id}/otp",
    response_model=SuccessResponse,
    responses={**ERRORS_PUBLIC, 502: {"model": ErrorResponse, "description": "Mail delivery failed"}},
    summary="Mail a verification code to the client",
)
async def generate_otp(signature_id: str, db: AsyncSession = Depends(get_db_session)) -> dict:
    return await signature_service.generate_otp(db, signature_id)


@router.post("/{signature_id}/sign", response_model=SuccessResponse, responses=ERRORS_PUBLIC, summary="Sign the quote")
async def sign_quote(
    signature_id: str,
    body: SignRequest,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await signature_service.sign_quote(db, signature_id, body.otp_code)
