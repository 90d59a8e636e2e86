"""
Invoicerr Backend — Stats & Dashboard Service
===============================================

What:  Per-currency revenue figures by month or year, and the dashboard
       summary (status counts, money totals, recent invoices).
Why:   Amounts in different currencies cannot be added, so every figure is
       grouped by currency first.
How:   Rows are fetched for the requested period and bucketed in Python.
       Date-part SQL differs between PostgreSQL and SQLite; a company's
       yearly document count is small enough to aggregate in memory.

Figures:
    invoiced   invoice total_ttc, bucketed by created_at
    revenue    total_ttc of PAID invoices, bucketed by paid_at
    deposits   receipt total_paid, bucketed by receipt created_at
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models.company import Company
from app.models.enums import InvoiceStatus
from app.models.invoice import Invoice
from app.models.receipt import Receipt
from app.services.invoice_service import invoice_service
from app.services.quote_service import quote_service
from app.utils.dates import ensure_aware

logger = logging.getLogger(__name__)

RECENT_INVOICES = 5

# (currency, amount, moment)
Entry = Tuple[str, float, datetime]


def _period(start_year: int, end_year: int) -> Tuple[datetime, datetime]:
    return (
        datetime(start_year, 1, 1, tzinfo=timezone.utc),
        datetime(end_year + 1, 1, 1, tzinfo=timezone.utc),
    )


def bucket(
    entries: Dict[str, Iterable[Entry]],
    keys: List[int],
    key_of: Callable[[datetime], int],
) -> Dict[str, Dict[int, Dict[str, float]]]:
    """{currency: {key: {figure: amount}}} with every key present and zero-filled."""
    table: Dict[str, Dict[int, Dict[str, float]]] = defaultdict(
        lambda: {k: {name: 0.0 for name in entries} for k in keys}
    )
    for name, rows in entries.items():
        for currency, amount, moment in rows:
            key = key_of(ensure_aware(moment))
            if key in keys:
                table[currency][key][name] += amount or 0.0
    return table


class StatsService:

    async def _entries(
        self, db: AsyncSession, company: Company, start: datetime, end: datetime
    ) -> Dict[str, List[Entry]]:
        invoiced = await db.execute(
            select(Invoice.currency, Invoice.total_ttc, Invoice.created_at).where(
                Invoice.company_id == company.id,
                Invoice.is_active.is_(True),
                Invoice.created_at >= start,
                Invoice.created_at < end,
            )
        )
        revenue = await db.execute(
            select(Invoice.currency, Invoice.total_ttc, Invoice.paid_at).where(
                Invoice.company_id == company.id,
                Invoice.is_active.is_(True),
                Invoice.status == InvoiceStatus.PAID,
                Invoice.paid_at >= start,
                Invoice.paid_at < end,
            )
        )
        deposits = await db.execute(
            select(Invoice.currency, Receipt.total_paid, Receipt.created_at)
            .join(Invoice, Receipt.invoice_id == Invoice.id)
            .where(
                Invoice.company_id == company.id,
                Receipt.created_at >= start,
                Receipt.created_at < end,
            )
        )
        return {
            "invoiced": [tuple(r) for r in invoiced.all()],
            "revenue": [tuple(r) for r in revenue.all()],
            "deposits": [tuple(r) for r in deposits.all()],
        }

    async def monthly(self, db: AsyncSession, company: Company, year: int) -> Dict[str, Any]:
        start, end = _period(year, year)
        entries = await self._entries(db, company, start, end)
        table = bucket(entries, list(range(1, 13)), lambda moment: moment.month)
        return {
            "year": year,
            "currencies": [
                {
                    "currency": currency,
                    "months": [{"month": month, **figures} for month, figures in sorted(months.items())],
                }
                for currency, months in sorted(table.items())
            ],
        }

    async def yearly(self, db: AsyncSession, company: Company, start_year: int, end_year: int) -> Dict[str, Any]:
        if start_year > end_year:
            raise ValidationError("Start year must be before or equal to end year", field="start")
        start, end = _period(start_year, end_year)
        entries = await self._entries(db, company, start, end)
        table = bucket(entries, list(range(start_year, end_year + 1)), lambda moment: moment.year)
        return {
            "start": start_year,
            "end": end_year,
            "currencies": [
                {
                    "currency": currency,
                    "years": [{"year": year, **figures} for year, figures in sorted(years.items())],
                }
                for currency, years in sorted(table.items())
            ],
        }

    # ── Dashboard ─────────────────────────────────────────────────────────

    async def dashboard(self, db: AsyncSession, company: Company) -> Dict[str, Any]:
        quotes = await quote_service.status_counts(db, company)
        invoices = await invoice_service.status_counts(db, company)

        # Credit notes offset invoices in the ledger, not in money owed
        result = await db.execute(
            select(Invoice.status, Invoice.total_ttc).where(
                Invoice.company_id == company.id,
                Invoice.is_active.is_(True),
                ~Invoice.is_credit_note,
            )
        )
        revenue = outstanding = overdue = 0.0
        for status, total in result.all():
            if status == InvoiceStatus.PAID:
                revenue += total or 0
            else:
                outstanding += total or 0
                if status == InvoiceStatus.OVERDUE:
                    overdue += total or 0

        recent = await db.execute(
            select(Invoice)
            .where(Invoice.company_id == company.id, Invoice.is_active.is_(True))
            .order_by(Invoice.created_at.desc())
            .limit(RECENT_INVOICES)
        )
        return {
            "currency": company.currency,
            "quotes": quotes,
            "invoices": invoices,
            "revenue": round(revenue, 2),
            "outstanding": round(outstanding, 2),
            "overdue": round(overdue, 2),
            "recent_invoices": list(recent.scalars().all()),
        }


# ── Singleton Instance ────────────────────────────────────────────────────
stats_service = StatsService()
