"""
Invoicerr Backend — ORM Models
================================

Importing this package registers every mapped class with Base.metadata, so
string relationship targets resolve and Alembic sees the full schema.
"""

from app.models.user import User, UserSession
from app.models.company import Company, InvitationCode, MailTemplate, PDFConfig, UserCompany
from app.models.client import Client, PaymentMethod
from app.models.quote import Quote, QuoteItem, Signature
from app.models.recurring_invoice import RecurringInvoice, RecurringInvoiceItem
from app.models.invoice import Invoice, InvoiceItem
from app.models.receipt import Receipt, ReceiptItem
from app.models.integration import Plugin, Webhook

__all__ = [
    "User",
    "UserSession",
    "Company",
    "InvitationCode",
    "MailTemplate",
    "PDFConfig",
    "UserCompany",
    "Client",
    "PaymentMethod",
    "Quote",
    "QuoteItem",
    "Signature",
    "RecurringInvoice",
    "RecurringInvoiceItem",
    "Invoice",
    "InvoiceItem",
    "Receipt",
    "ReceiptItem",
    "Plugin",
    "Webhook",
]
