"""
Invoicerr Backend — Financial Calculations
============================================

What:  Discount clamping and document totals (HT / VAT / TTC).
Why:   Quotes, invoices and recurring invoices must all compute totals the
       same way; a cent of drift between a quote and the invoice made from
       it is a support ticket.
How:   The discount applies to every line before VAT, so VAT is computed
       per line on the discounted base. VAT-exempt companies get zero VAT.

Glossary:
    HT   hors taxes, amount excluding tax
    VAT  value added tax
    TTC  toutes taxes comprises, amount including tax
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable


def clamp_discount_rate(rate: Any) -> float:
    """Clamp a discount percentage to 0..100; None, NaN and non-numbers become 0."""
    if rate is None or isinstance(rate, bool):
        return 0.0
    try:
        value = float(rate)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 100.0)


@dataclass
class DiscountedTotals:
    discount_rate: float
    discount_factor: float
    base_total_ht: float
    discount_amount_ht: float
    total_ht: float
    total_vat: float
    total_ttc: float

    def as_dict(self) -> dict:
        return asdict(self)


def _field(item: Any, name: str) -> float:
    value = item.get(name) if isinstance(item, dict) else getattr(item, name, None)
    return float(value or 0)


def calculate_discounted_totals(
    items: Iterable[Any],
    discount_rate: Any = 0,
    vat_exempt: bool = False,
) -> DiscountedTotals:
    """
    Compute totals for line items (objects or dicts with quantity,
    unit_price and vat_rate). Money values are rounded to 2 decimals;
    the rounding happens once, on the final figures.
    """
    items = list(items)
    rate = clamp_discount_rate(discount_rate)
    factor = 1 - rate / 100

    base_total_ht = sum(_field(i, "quantity") * _field(i, "unit_price") for i in items)
    total_ht = base_total_ht * factor
    discount_amount_ht = base_total_ht - total_ht

    if vat_exempt:
        total_vat = 0.0
    else:
        total_vat = sum(
            _field(i, "quantity") * _field(i, "unit_price") * factor * (_field(i, "vat_rate") / 100)
            for i in items
        )

    return DiscountedTotals(
        discount_rate=rate,
        discount_factor=factor,
        base_total_ht=round(base_total_ht, 2),
        discount_amount_ht=round(discount_amount_ht, 2),
        total_ht=round(total_ht, 2),
        total_vat=round(total_vat, 2),
        total_ttc=round(total_ht + total_vat, 2),
    )


def is_vat_exempt(company: Any) -> bool:
    """VAT exemption (franchise en base) only applies to French companies."""
    country = (getattr(company, "country", "") or "").strip().upper()
    return bool(getattr(company, "exempt_vat", False)) and country == "FRANCE"
