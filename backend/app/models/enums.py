"""
Invoicerr Backend — Domain Enumerations
=========================================

What:  String enums shared by ORM models, Pydantic schemas and services.
Why:   One definition per vocabulary keeps the database values, the API
       contract and the business rules in step.
How:   `str` mixin so members compare equal to their raw values and
       serialize as plain strings in JSON.
"""

import enum

from sqlalchemy import Enum as SAEnum


class UserRole(str, enum.Enum):
    # SYSTEM_ADMIN is never stored on a membership; guards grant it virtually
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"


# Higher number = more privileges
ROLE_HIERARCHY = {
    UserRole.SYSTEM_ADMIN: 4,
    UserRole.OWNER: 3,
    UserRole.ADMIN: 2,
    UserRole.ACCOUNTANT: 1,
}


class ClientType(str, enum.Enum):
    COMPANY = "COMPANY"
    INDIVIDUAL = "INDIVIDUAL"


class QuoteStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    SIGNED = "SIGNED"
    EXPIRED = "EXPIRED"


class InvoiceStatus(str, enum.Enum):
    UNPAID = "UNPAID"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class ItemType(str, enum.Enum):
    HOUR = "HOUR"
    DAY = "DAY"
    DEPOSIT = "DEPOSIT"
    SERVICE = "SERVICE"
    PRODUCT = "PRODUCT"


class RecurrenceFrequency(str, enum.Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    BIMONTHLY = "BIMONTHLY"
    QUARTERLY = "QUARTERLY"
    QUADMONTHLY = "QUADMONTHLY"
    SEMIANNUALLY = "SEMIANNUALLY"
    ANNUALLY = "ANNUALLY"


class PaymentMethodType(str, enum.Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYPAL = "PAYPAL"
    CASH = "CASH"
    CHECK = "CHECK"
    OTHER = "OTHER"


class MailTemplateType(str, enum.Enum):
    SIGNATURE_REQUEST = "SIGNATURE_REQUEST"
    VERIFICATION_CODE = "VERIFICATION_CODE"
    INVOICE = "INVOICE"
    RECEIPT = "RECEIPT"


class WebhookType(str, enum.Enum):
    GENERIC = "GENERIC"
    DISCORD = "DISCORD"
    SLACK = "SLACK"
    TEAMS = "TEAMS"
    MATTERMOST = "MATTERMOST"
    ROCKETCHAT = "ROCKETCHAT"
    ZAPIER = "ZAPIER"


class PluginType(str, enum.Enum):
    STORAGE = "STORAGE"
    SIGNING = "SIGNING"


class WebhookEvent(str, enum.Enum):
    # Quotes
    QUOTE_CREATED = "QUOTE_CREATED"
    QUOTE_UPDATED = "QUOTE_UPDATED"
    QUOTE_DELETED = "QUOTE_DELETED"
    QUOTE_SENT = "QUOTE_SENT"
    QUOTE_SIGNED = "QUOTE_SIGNED"

    # Signatures
    SIGNATURE_OTP_SENT = "SIGNATURE_OTP_SENT"
    SIGNATURE_COMPLETED = "SIGNATURE_COMPLETED"

    # Invoices
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    INVOICE_DELETED = "INVOICE_DELETED"
    INVOICE_SENT = "INVOICE_SENT"
    INVOICE_OVERDUE = "INVOICE_OVERDUE"
    INVOICE_MARKED_AS_PAID = "INVOICE_MARKED_AS_PAID"
    INVOICE_CREATED_FROM_QUOTE = "INVOICE_CREATED_FROM_QUOTE"
    INVOICE_CREDIT_NOTE_CREATED = "INVOICE_CREDIT_NOTE_CREATED"

    # Receipts
    RECEIPT_CREATED = "RECEIPT_CREATED"
    RECEIPT_UPDATED = "RECEIPT_UPDATED"
    RECEIPT_DELETED = "RECEIPT_DELETED"
    RECEIPT_SENT = "RECEIPT_SENT"
    RECEIPT_CREATED_FROM_INVOICE = "RECEIPT_CREATED_FROM_INVOICE"

    # Payment methods
    PAYMENT_METHOD_CREATED = "PAYMENT_METHOD_CREATED"
    PAYMENT_METHOD_UPDATED = "PAYMENT_METHOD_UPDATED"
    PAYMENT_METHOD_DELETED = "PAYMENT_METHOD_DELETED"
    PAYMENT_METHOD_ACTIVATED = "PAYMENT_METHOD_ACTIVATED"
    PAYMENT_METHOD_DEACTIVATED = "PAYMENT_METHOD_DEACTIVATED"

    # Clients
    CLIENT_CREATED = "CLIENT_CREATED"
    CLIENT_UPDATED = "CLIENT_UPDATED"
    CLIENT_DELETED = "CLIENT_DELETED"
    CLIENT_ACTIVATED = "CLIENT_ACTIVATED"
    CLIENT_DEACTIVATED = "CLIENT_DEACTIVATED"

    # Companies
    COMPANY_CREATED = "COMPANY_CREATED"
    COMPANY_UPDATED = "COMPANY_UPDATED"
    COMPANY_PDF_CONFIG_UPDATED = "COMPANY_PDF_CONFIG_UPDATED"
    COMPANY_EMAIL_TEMPLATE_UPDATED = "COMPANY_EMAIL_TEMPLATE_UPDATED"

    # Recurring invoices
    RECURRING_INVOICE_CREATED = "RECURRING_INVOICE_CREATED"
    RECURRING_INVOICE_UPDATED = "RECURRING_INVOICE_UPDATED"
    RECURRING_INVOICE_DELETED = "RECURRING_INVOICE_DELETED"
    RECURRING_INVOICE_GENERATED = "RECURRING_INVOICE_GENERATED"
    RECURRING_INVOICE_AUTO_SENT = "RECURRING_INVOICE_AUTO_SENT"

    # Plugins
    PLUGIN_ACTIVATED = "PLUGIN_ACTIVATED"
    PLUGIN_DEACTIVATED = "PLUGIN_DEACTIVATED"
    PLUGIN_CONFIGURED = "PLUGIN_CONFIGURED"
    PLUGIN_WEBHOOK_RECEIVED = "PLUGIN_WEBHOOK_RECEIVED"

    # Users
    USER_CREATED = "USER_CREATED"
    USER_LOGGED_IN = "USER_LOGGED_IN"

    # Webhooks
    WEBHOOK_CREATED = "WEBHOOK_CREATED"
    WEBHOOK_UPDATED = "WEBHOOK_UPDATED"
    WEBHOOK_DELETED = "WEBHOOK_DELETED"


def db_enum(enum_cls: type) -> SAEnum:
    """VARCHAR-backed enum column type; portable between PostgreSQL and SQLite."""
    return SAEnum(enum_cls, native_enum=False, length=32, validate_strings=True)
