"""
Invoicerr Backend — Document Numbering
========================================

What:  Turns per-company sequence numbers into display numbers
       ("INV-2025-0042") and keeps `raw_number` filled on quotes, invoices
       and receipts.
Why:   Each tenant chooses its own pattern and starting number; the
       formatted number is what customers see and what search matches.
How:   Three layers:
         1. format_pattern(): pure placeholder substitution
         2. next_number() / assign_number(): per-company sequence (async DB)
         3. a before_flush hook that fills raw_number for documents whose
            company is already loaded, and backfill_raw_numbers() for rows
            that predate the hook (run from list endpoints)

Pattern syntax:
    {year}       4-digit year of the document date
    {month}      1-based month
    {day}        day of month
    {number}     sequence + starting_number - 1, zero-padded to 4 by default
    {key:N}      any of the above zero-padded to N digits
    {unknown}    replaced by the literal key name

    "INV-{year}-{number:5}" with number=7, starting_number=100 → "INV-2025-00106"

The formatter always uses the document's OWN company. Looking up "the"
company (e.g. the first row of the table) would number every tenant with
one tenant's pattern.
"""

import logging
import re
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.models.company import Company
from app.models.invoice import Invoice
from app.models.quote import Quote
from app.models.receipt import Receipt
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{(\w+)(?::(\d+))?\}")

NumberedDocument = Union[Quote, Invoice, Receipt]

_KIND_BY_MODEL = {Quote: "quote", Invoice: "invoice", Receipt: "receipt"}


def format_pattern(
    pattern: str,
    number: int,
    date: Optional[datetime] = None,
    starting_number: int = 1,
) -> str:
    """Substitute {year}, {month}, {day} and {number[:pad]} in `pattern`."""
    date = date or utcnow()

    def replace(match: re.Match) -> str:
        key, padding = match.group(1), match.group(2)
        if key == "year":
            value = date.year
        elif key == "month":
            value = date.month
        elif key == "day":
            value = date.day
        elif key == "number":
            value = number + starting_number - 1
        else:
            return key

        if padding is not None:
            width = int(padding)
        else:
            width = 4 if key == "number" else 0
        return str(value).zfill(width)

    return PLACEHOLDER_RE.sub(replace, pattern)


def format_document_number(
    kind: str,
    number: int,
    date: Optional[datetime],
    company: Company,
) -> str:
    """Format `number` with the company's pattern for `kind` (quote/invoice/receipt)."""
    pattern = getattr(company, f"{kind}_number_format")
    starting_number = getattr(company, f"{kind}_starting_number") or 1
    return format_pattern(pattern, number, date, starting_number)


def document_kind(document: NumberedDocument) -> str:
    return _KIND_BY_MODEL[type(document)]


async def next_number(db: AsyncSession, model: type, company_id) -> int:
    """
    Next sequence value for `model` inside one company.

    Receipts have no company column; they are counted through their invoice.
    The unique (company_id, number) constraints on quotes and invoices turn
    a concurrent duplicate into an IntegrityError instead of a silent clash.
    """
    if model is Receipt:
        query = (
            select(func.max(Receipt.number))
            .join(Invoice, Receipt.invoice_id == Invoice.id)
            .where(Invoice.company_id == company_id)
        )
    else:
        query = select(func.max(model.number)).where(model.company_id == company_id)

    result = await db.execute(query)
    return (result.scalar() or 0) + 1


def fill_raw_number(document: NumberedDocument, company: Company) -> bool:
    """Set raw_number from number when it is still empty. Returns True if set."""
    if document.number is None or document.raw_number is not None:
        return False
    document.raw_number = format_document_number(
        document_kind(document), document.number, document.created_at or utcnow(), company
    )
    return True


async def assign_number(
    db: AsyncSession,
    document: NumberedDocument,
    company: Company,
) -> None:
    """Give a new document its per-company number and formatted raw number."""
    if document.number is None:
        document.number = await next_number(db, type(document), company.id)
    fill_raw_number(document, company)


async def backfill_raw_numbers(db: AsyncSession, model: type, company: Company) -> int:
    """Fill raw_number on this company's rows that were stored without one."""
    if model is Receipt:
        query = (
            select(Receipt)
            .join(Invoice, Receipt.invoice_id == Invoice.id)
            .where(Invoice.company_id == company.id, Receipt.raw_number.is_(None))
        )
    else:
        query = select(model).where(model.company_id == company.id, model.raw_number.is_(None))

    result = await db.execute(query)
    rows = list(result.scalars().all())
    for row in rows:
        fill_raw_number(row, company)
    if rows:
        await db.flush()
        logger.info("Backfilled raw numbers on %d %s rows", len(rows), model.__tablename__)
    return len(rows)


# ── Flush Hook ────────────────────────────────────────────────────────────

def _loaded_company(document: NumberedDocument) -> Optional[Company]:
    # Only look at already-loaded relationships: the hook runs inside a
    # sync flush and must not emit lazy loads
    if isinstance(document, Receipt):
        invoice = document.__dict__.get("invoice")
        return invoice.__dict__.get("company") if invoice is not None else None
    return document.__dict__.get("company")


def _fill_raw_numbers_before_flush(session: Session, flush_context, instances) -> None:
    for obj in list(session.new) + list(session.dirty):
        if type(obj) not in _KIND_BY_MODEL:
            continue
        if obj.number is None or obj.raw_number is not None:
            continue
        company = _loaded_company(obj)
        if company is None:
            logger.debug("No loaded company for %r; raw number left for backfill", obj)
            continue
        fill_raw_number(obj, company)


def register_numbering_hooks() -> None:
    """Install the before_flush hook once per process."""
    if not event.contains(Session, "before_flush", _fill_raw_numbers_before_flush):
        event.listen(Session, "before_flush", _fill_raw_numbers_before_flush)
