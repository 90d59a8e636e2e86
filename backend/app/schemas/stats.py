"""Dashboard and revenue statistics schemas. Amounts are per currency."""

from typing import List

from pydantic import BaseModel

from app.schemas.invoice import InvoiceStats, InvoiceSummary
from app.schemas.quote import QuoteStats


class Figures(BaseModel):
    invoiced: float
    revenue: float
    deposits: float


class MonthFigures(Figures):
    month: int


class YearFigures(Figures):
    year: int


class CurrencyMonths(BaseModel):
    currency: str
    months: List[MonthFigures]


class CurrencyYears(BaseModel):
    currency: str
    years: List[YearFigures]


class MonthlyStatsResponse(BaseModel):
    year: int
    currencies: List[CurrencyMonths]


class YearlyStatsResponse(BaseModel):
    start: int
    end: int
    currencies: List[CurrencyYears]


class DashboardResponse(BaseModel):
    currency: str
    quotes: QuoteStats
    invoices: InvoiceStats
    revenue: float
    outstanding: float
    overdue: float
    recent_invoices: List[InvoiceSummary]
