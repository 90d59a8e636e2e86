"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2025-01-06 00:00:00.000000+00:00

What:  Creates every table: accounts and sessions, companies and their
       settings, clients, quotes, invoices, receipts, recurring invoices,
       webhooks and plugins.
How:   Portable types only (sa.Uuid, sa.JSON, VARCHAR-backed enums) so the
       same revision runs on PostgreSQL and SQLite.

Rollback: downgrade() drops all tables in reverse dependency order.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLES = ("SYSTEM_ADMIN", "OWNER", "ADMIN", "ACCOUNTANT")
ITEM_TYPES = ("HOUR", "DAY", "DEPOSIT", "SERVICE", "PRODUCT")
PAYMENT_METHOD_TYPES = ("BANK_TRANSFER", "PAYPAL", "CASH", "CHECK", "OTHER")


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _fk(name: str, target: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _money_columns() -> list:
    return [
        sa.Column("discount_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_ht", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_vat", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_ttc", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
    ]


def _line_item_columns() -> list:
    return [
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("vat_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("type", _enum("itemtype", *ITEM_TYPES), nullable=False, server_default="SERVICE"),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
    ]


def upgrade() -> None:
    # ── Accounts ──────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("firstname", sa.String(100), nullable=False, server_default=""),
        sa.Column("lastname", sa.String(100), nullable=False, server_default=""),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_system_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "sessions",
        _id(),
        sa.Column("token", sa.String(128), nullable=False),
        _fk("user_id", "users.id"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        _created_at(),
    )
    op.create_index("ix_sessions_token", "sessions", ["token"], unique=True)
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    # ── Companies ─────────────────────────────────────────────────────────
    op.create_table(
        "companies",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("legal_id", sa.String(100), nullable=True),
        sa.Column("founded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("vat", sa.String(100), nullable=True),
        sa.Column("exempt_vat", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("address", sa.String(255), nullable=False, server_default=""),
        sa.Column("postal_code", sa.String(20), nullable=False, server_default=""),
        sa.Column("city", sa.String(100), nullable=False, server_default=""),
        sa.Column("country", sa.String(100), nullable=False, server_default=""),
        sa.Column("phone", sa.String(50), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        sa.Column("identifiers", sa.JSON(), nullable=False),
        sa.Column("date_format", sa.String(32), nullable=False, server_default="dd/MM/yyyy"),
        sa.Column("invoice_pdf_format", sa.String(32), nullable=False, server_default="pdf"),
        sa.Column("quote_starting_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("quote_number_format", sa.String(100), nullable=False, server_default="Q-{year}-{number:4}"),
        sa.Column("invoice_starting_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("invoice_number_format", sa.String(100), nullable=False, server_default="INV-{year}-{number:4}"),
        sa.Column("receipt_starting_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("receipt_number_format", sa.String(100), nullable=False, server_default="R-{year}-{number:4}"),
        _created_at(),
        _updated_at(),
    )

    labels = [
        ("company", "Company"),
        ("invoice", "Invoice"),
        ("quote", "Quote"),
        ("receipt", "Receipt"),
        ("date", "Date"),
        ("due_date", "Due date"),
        ("bill_to", "Bill to"),
        ("description", "Description"),
        ("quantity", "Quantity"),
        ("unit_price", "Unit price"),
        ("vat_rate", "VAT rate"),
        ("total", "Total"),
        ("total_ht", "Total excl. tax"),
        ("total_vat", "VAT"),
        ("total_ttc", "Total incl. tax"),
        ("payment_method", "Payment method"),
        ("payment_details", "Payment details"),
        ("notes", "Notes"),
        ("valid_until", "Valid until"),
    ]
    op.create_table(
        "pdf_configs",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column("font_family", sa.String(100), nullable=False, server_default="Inter"),
        sa.Column("padding", sa.Float(), nullable=False, server_default="40"),
        sa.Column("primary_color", sa.String(16), nullable=False, server_default="#0ea5e9"),
        sa.Column("secondary_color", sa.String(16), nullable=False, server_default="#f3f4f6"),
        sa.Column("include_logo", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("logo_b64", sa.Text(), nullable=True),
        *[sa.Column(name, sa.String(100), nullable=False, server_default=default) for name, default in labels],
        sa.UniqueConstraint("company_id"),
    )

    op.create_table(
        "mail_templates",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column(
            "type",
            _enum("mailtemplatetype", "SIGNATURE_REQUEST", "VERIFICATION_CODE", "INVOICE", "RECEIPT"),
            nullable=False,
        ),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.UniqueConstraint("company_id", "type", name="uq_mail_template_type"),
    )
    op.create_index("ix_mail_templates_company_id", "mail_templates", ["company_id"])

    op.create_table(
        "user_companies",
        _id(),
        _fk("user_id", "users.id"),
        _fk("company_id", "companies.id"),
        sa.Column("role", _enum("userrole", *ROLES), nullable=False, server_default="ACCOUNTANT"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "company_id", name="uq_user_company"),
    )
    op.create_index("ix_user_companies_user_id", "user_companies", ["user_id"])
    op.create_index("ix_user_companies_company_id", "user_companies", ["company_id"])

    op.create_table(
        "invitation_codes",
        _id(),
        sa.Column("code", sa.String(32), nullable=False),
        _fk("company_id", "companies.id", nullable=True),
        sa.Column("role", _enum("userrole", *ROLES), nullable=False, server_default="ACCOUNTANT"),
        sa.Column("email", sa.String(255), nullable=True),
        _fk("created_by_id", "users.id"),
        _fk("used_by_id", "users.id", nullable=True, ondelete="SET NULL"),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_invitation_codes_code", "invitation_codes", ["code"], unique=True)
    op.create_index("ix_invitation_codes_company_id", "invitation_codes", ["company_id"])

    # ── Reference data ────────────────────────────────────────────────────
    op.create_table(
        "clients",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("identifiers", sa.JSON(), nullable=False),
        sa.Column("founded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("type", _enum("clienttype", "COMPANY", "INDIVIDUAL"), nullable=False, server_default="COMPANY"),
        sa.Column("contact_firstname", sa.String(100), nullable=False, server_default=""),
        sa.Column("contact_lastname", sa.String(100), nullable=False, server_default=""),
        sa.Column("contact_email", sa.String(255), nullable=False, server_default=""),
        sa.Column("contact_phone", sa.String(50), nullable=False, server_default=""),
        sa.Column("address", sa.String(255), nullable=False, server_default=""),
        sa.Column("address_line2", sa.String(255), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=False, server_default=""),
        sa.Column("city", sa.String(100), nullable=False, server_default=""),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("country", sa.String(100), nullable=False, server_default=""),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_clients_company_id", "clients", ["company_id"])

    op.create_table(
        "payment_methods",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("details", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "type",
            _enum("paymentmethodtype", *PAYMENT_METHOD_TYPES),
            nullable=False,
            server_default="BANK_TRANSFER",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_payment_methods_company_id", "payment_methods", ["company_id"])

    # ── Quotes ────────────────────────────────────────────────────────────
    op.create_table(
        "quotes",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("raw_number", sa.String(100), nullable=True),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column(
            "status",
            _enum("quotestatus", "DRAFT", "SENT", "VIEWED", "SIGNED", "EXPIRED"),
            nullable=False,
            server_default="DRAFT",
        ),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        *_money_columns(),
        _fk("payment_method_id", "payment_methods.id", nullable=True, ondelete="SET NULL"),
        sa.Column("payment_details", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("company_id", "number", name="uq_quote_company_number"),
    )
    op.create_index("ix_quotes_company_id", "quotes", ["company_id"])
    op.create_index("ix_quotes_client_id", "quotes", ["client_id"])

    op.create_table(
        "quote_items",
        _id(),
        _fk("quote_id", "quotes.id"),
        *_line_item_columns(),
    )
    op.create_index("ix_quote_items_quote_id", "quote_items", ["quote_id"])

    op.create_table(
        "signatures",
        _id(),
        _fk("quote_id", "quotes.id"),
        sa.Column("provider", sa.String(64), nullable=True),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_signatures_quote_id", "signatures", ["quote_id"])

    # ── Recurring invoices ────────────────────────────────────────────────
    op.create_table(
        "recurring_invoices",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column(
            "frequency",
            _enum(
                "recurrencefrequency",
                "WEEKLY",
                "BIWEEKLY",
                "MONTHLY",
                "BIMONTHLY",
                "QUARTERLY",
                "QUADMONTHLY",
                "SEMIANNUALLY",
                "ANNUALLY",
            ),
            nullable=False,
            server_default="MONTHLY",
        ),
        sa.Column("count", sa.Integer(), nullable=True),
        sa.Column("until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_send", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("next_invoice_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_invoice_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("generated_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        *_money_columns(),
        _fk("payment_method_id", "payment_methods.id", nullable=True, ondelete="SET NULL"),
        sa.Column("payment_details", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_recurring_invoices_company_id", "recurring_invoices", ["company_id"])
    op.create_index("ix_recurring_invoices_client_id", "recurring_invoices", ["client_id"])
    op.create_index("ix_recurring_invoices_next_invoice_date", "recurring_invoices", ["next_invoice_date"])

    op.create_table(
        "recurring_invoice_items",
        _id(),
        _fk("recurring_invoice_id", "recurring_invoices.id"),
        *_line_item_columns(),
    )
    op.create_index(
        "ix_recurring_invoice_items_recurring_invoice_id",
        "recurring_invoice_items",
        ["recurring_invoice_id"],
    )

    # ── Invoices ──────────────────────────────────────────────────────────
    op.create_table(
        "invoices",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("clients.id"), nullable=False),
        _fk("quote_id", "quotes.id", nullable=True, ondelete="SET NULL"),
        _fk("recurring_invoice_id", "recurring_invoices.id", nullable=True, ondelete="SET NULL"),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("raw_number", sa.String(100), nullable=True),
        sa.Column(
            "status",
            _enum("invoicestatus", "UNPAID", "SENT", "PAID", "OVERDUE"),
            nullable=False,
            server_default="UNPAID",
        ),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        *_money_columns(),
        _fk("payment_method_id", "payment_methods.id", nullable=True, ondelete="SET NULL"),
        sa.Column("payment_method", sa.String(255), nullable=True),
        sa.Column("payment_details", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("company_id", "number", name="uq_invoice_company_number"),
    )
    op.create_index("ix_invoices_company_id", "invoices", ["company_id"])
    op.create_index("ix_invoices_client_id", "invoices", ["client_id"])

    op.create_table(
        "invoice_items",
        _id(),
        _fk("invoice_id", "invoices.id"),
        *_line_item_columns(),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])

    # ── Receipts ──────────────────────────────────────────────────────────
    op.create_table(
        "receipts",
        _id(),
        _fk("invoice_id", "invoices.id"),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("raw_number", sa.String(100), nullable=True),
        sa.Column("total_paid", sa.Float(), nullable=False, server_default="0"),
        _fk("payment_method_id", "payment_methods.id", nullable=True, ondelete="SET NULL"),
        sa.Column("payment_method", sa.String(255), nullable=True),
        sa.Column("payment_details", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_receipts_invoice_id", "receipts", ["invoice_id"])

    op.create_table(
        "receipt_items",
        _id(),
        _fk("receipt_id", "receipts.id"),
        _fk("invoice_item_id", "invoice_items.id"),
        sa.Column("amount_paid", sa.Float(), nullable=False, server_default="0"),
    )
    op.create_index("ix_receipt_items_receipt_id", "receipt_items", ["receipt_id"])

    # ── Integrations ──────────────────────────────────────────────────────
    op.create_table(
        "webhooks",
        _id(),
        _fk("company_id", "companies.id"),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column(
            "type",
            _enum(
                "webhooktype",
                "GENERIC",
                "DISCORD",
                "SLACK",
                "TEAMS",
                "MATTERMOST",
                "ROCKETCHAT",
                "ZAPIER",
            ),
            nullable=False,
            server_default="GENERIC",
        ),
        sa.Column("events", sa.JSON(), nullable=False),
        sa.Column("secret", sa.String(128), nullable=True),
        _created_at(),
    )
    op.create_index("ix_webhooks_company_id", "webhooks", ["company_id"])

    op.create_table(
        "plugins",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("type", _enum("plugintype", "STORAGE", "SIGNING"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("config", sa.JSON(), nullable=False),
        _created_at(),
    )


def downgrade() -> None:
    for table in (
        "plugins",
        "webhooks",
        "receipt_items",
        "receipts",
        "invoice_items",
        "invoices",
        "recurring_invoice_items",
        "recurring_invoices",
        "signatures",
        "quote_items",
        "quotes",
        "payment_methods",
        "clients",
        "invitation_codes",
        "user_companies",
        "mail_templates",
        "pdf_configs",
        "companies",
        "sessions",
        "users",
    ):
        op.drop_table(table)
