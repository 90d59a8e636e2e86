"""
Invoicerr Backend — Dashboard & Stats Routes
==============================================

GET /api/dashboard (and /sse) summarizes the current company;
GET /api/stats/monthly and /api/stats/yearly break revenue down per
currency.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.guards import CompanyContext, require_company
from app.schemas.common import ERRORS_COMMON
from app.schemas.stats import DashboardResponse, MonthlyStatsResponse, YearlyStatsResponse
from app.services.stats_service import stats_service
from app.utils.dates import utcnow
from app.utils.sse import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardResponse, responses=ERRORS_COMMON, summary="Company dashboard")
async def get_dashboard(
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await stats_service.dashboard(db, ctx.company)


@router.get("/dashboard/sse", summary="Company dashboard as a server-sent event stream")
async def get_dashboard_sse(request: Request, ctx: CompanyContext = Depends(require_company)):
    async def snapshot(session: AsyncSession):
        data = await stats_service.dashboard(session, ctx.company)
        return DashboardResponse.model_validate(data, from_attributes=True)

    return sse_response(request, snapshot)


@router.get("/stats/monthly", response_model=MonthlyStatsResponse, responses=ERRORS_COMMON, summary="Monthly figures for a year")
async def get_monthly_stats(
    year: Optional[int] = Query(default=None, ge=1970, le=9999, description="Defaults to the current year"),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return await stats_service.monthly(db, ctx.company, year or utcnow().year)


@router.get("/stats/yearly", response_model=YearlyStatsResponse, responses=ERRORS_COMMON, summary="Yearly figures for a range")
async def get_yearly_stats(
    start: Optional[int] = Query(default=None, ge=1970, le=9999, description="Defaults to four years ago"),
    end: Optional[int] = Query(default=None, ge=1970, le=9999, description="Defaults to the current year"),
    ctx: CompanyContext = Depends(require_company),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    current = utcnow().year
    end_year = end or current
    start_year = start or end_year - 4
    return await stats_service.yearly(db, ctx.company, start_year, end_year)
