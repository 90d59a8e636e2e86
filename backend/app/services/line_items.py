"""
Line item and totals helpers shared by quotes, invoices and recurring
invoices.

The item collections are eagerly loaded (selectin), so replacing
`document.items` is a plain in-memory operation: removed items are deleted
by the delete-orphan cascade at the next flush.
"""

from typing import Any, Dict, Iterable, List

from app.models.enums import ItemType
from app.utils.financial import calculate_discounted_totals, clamp_discount_rate

ITEM_FIELDS = ("description", "quantity", "unit_price", "vat_rate", "type", "order")


def item_values(data: Dict[str, Any], vat_exempt: bool = False) -> Dict[str, Any]:
    return {
        "description": data.get("description") or "",
        "quantity": float(data.get("quantity") or 0),
        "unit_price": float(data.get("unit_price") or 0),
        "vat_rate": 0.0 if vat_exempt else float(data.get("vat_rate") or 0),
        "type": ItemType(data.get("type") or ItemType.SERVICE),
        "order": int(data.get("order") or 0),
    }


def build_items(item_cls: type, incoming: Iterable[Dict[str, Any]], vat_exempt: bool = False) -> List[Any]:
    return [item_cls(**item_values(data, vat_exempt)) for data in incoming]


def sync_items(
    document: Any,
    item_cls: type,
    incoming: Iterable[Dict[str, Any]],
    vat_exempt: bool = False,
) -> None:
    """
    Apply an edited item list: items whose id matches are updated, items
    without a known id are created, and the rest are dropped.
    """
    existing = {str(item.id): item for item in document.items}
    kept = []
    for data in incoming:
        values = item_values(data, vat_exempt)
        item = existing.get(str(data.get("id"))) if data.get("id") else None
        if item is None:
            item = item_cls(**values)
        else:
            for field, value in values.items():
                setattr(item, field, value)
        kept.append(item)
    document.items = kept


def apply_totals(document: Any, discount_rate: Any, vat_exempt: bool) -> None:
    """Recompute the stored totals from the document's current items."""
    totals = calculate_discounted_totals(document.items, discount_rate, vat_exempt)
    document.discount_rate = clamp_discount_rate(discount_rate)
    document.total_ht = totals.total_ht
    document.total_vat = totals.total_vat
    document.total_ttc = totals.total_ttc
