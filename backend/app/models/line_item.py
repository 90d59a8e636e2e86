"""Columns shared by quote, invoice and recurring-invoice line items."""

from sqlalchemy import Float, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.enums import ItemType, db_enum


class LineItemMixin:
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    # Percentage, e.g. 20 for 20% VAT
    vat_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    type: Mapped[ItemType] = mapped_column(
        db_enum(ItemType), nullable=False, default=ItemType.SERVICE
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
