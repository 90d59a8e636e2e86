"""
Invoicerr Backend — Webhook Event Styles & Descriptions
=========================================================

What:  Colour, emoji and title per event, plus a short markdown description
       built from the event payload.
Why:   Chat drivers (Discord, Slack, Teams, Mattermost, Rocket.Chat) all
       render the same information; only the envelope differs.
How:   EVENT_STYLES is a plain lookup table. DESCRIPTIONS maps an event to a
       function of the payload; events without one get no description.

Payload shape (built by the services):
    {
        "event": "INVOICE_CREATED",
        "company": {...},       # serialized Company columns
        "client": {...},        # when the document has a client
        "invoice": {...},       # the subject of the event
        ...
    }
"""

from typing import Any, Callable, Dict, NamedTuple, Optional

from app.models.enums import WebhookEvent


class EventStyle(NamedTuple):
    color: str
    emoji: str
    title: str


DEFAULT_STYLE = EventStyle("#5865F2", "📢", "Event")

E = WebhookEvent

EVENT_STYLES: Dict[WebhookEvent, EventStyle] = {
    # Quotes
    E.QUOTE_CREATED: EventStyle("#3b82f6", "📝", "Quote Created"),
    E.QUOTE_UPDATED: EventStyle("#3b82f6", "✏️", "Quote Updated"),
    E.QUOTE_DELETED: EventStyle("#ef4444", "🗑️", "Quote Deleted"),
    E.QUOTE_SENT: EventStyle("#10b981", "📤", "Quote Sent"),
    E.QUOTE_SIGNED: EventStyle("#10b981", "✅", "Quote Signed"),
    # Signatures
    E.SIGNATURE_OTP_SENT: EventStyle("#14b8a6", "📧", "Signature OTP Sent"),
    E.SIGNATURE_COMPLETED: EventStyle("#10b981", "✅", "Signature Completed"),
    # Invoices
    E.INVOICE_CREATED: EventStyle("#10b981", "📋", "Invoice Created"),
    E.INVOICE_UPDATED: EventStyle("#10b981", "✏️", "Invoice Updated"),
    E.INVOICE_DELETED: EventStyle("#ef4444", "🗑️", "Invoice Deleted"),
    E.INVOICE_SENT: EventStyle("#10b981", "📧", "Invoice Sent"),
    E.INVOICE_OVERDUE: EventStyle("#ef4444", "⚠️", "Invoice Overdue"),
    E.INVOICE_MARKED_AS_PAID: EventStyle("#10b981", "✅", "Invoice Marked as Paid"),
    E.INVOICE_CREATED_FROM_QUOTE: EventStyle("#10b981", "🔄", "Invoice Created from Quote"),
    E.INVOICE_CREDIT_NOTE_CREATED: EventStyle("#f59e0b", "↩️", "Credit Note Created"),
    # Receipts
    E.RECEIPT_CREATED: EventStyle("#8b5cf6", "🧾", "Receipt Created"),
    E.RECEIPT_UPDATED: EventStyle("#8b5cf6", "✏️", "Receipt Updated"),
    E.RECEIPT_DELETED: EventStyle("#ef4444", "🗑️", "Receipt Deleted"),
    E.RECEIPT_SENT: EventStyle("#8b5cf6", "📧", "Receipt Sent"),
    E.RECEIPT_CREATED_FROM_INVOICE: EventStyle("#8b5cf6", "🔄", "Receipt Created from Invoice"),
    # Payment methods
    E.PAYMENT_METHOD_CREATED: EventStyle("#f59e0b", "➕", "Payment Method Created"),
    E.PAYMENT_METHOD_UPDATED: EventStyle("#f59e0b", "✏️", "Payment Method Updated"),
    E.PAYMENT_METHOD_DELETED: EventStyle("#ef4444", "🗑️", "Payment Method Deleted"),
    E.PAYMENT_METHOD_ACTIVATED: EventStyle("#10b981", "✅", "Payment Method Activated"),
    E.PAYMENT_METHOD_DEACTIVATED: EventStyle("#6b7280", "⏸️", "Payment Method Deactivated"),
    # Clients
    E.CLIENT_CREATED: EventStyle("#ec4899", "👤", "Client Created"),
    E.CLIENT_UPDATED: EventStyle("#ec4899", "✏️", "Client Updated"),
    E.CLIENT_DELETED: EventStyle("#ef4444", "🗑️", "Client Deleted"),
    E.CLIENT_ACTIVATED: EventStyle("#10b981", "✅", "Client Activated"),
    E.CLIENT_DEACTIVATED: EventStyle("#6b7280", "⏸️", "Client Deactivated"),
    # Companies
    E.COMPANY_CREATED: EventStyle("#f97316", "🏢", "Company Created"),
    E.COMPANY_UPDATED: EventStyle("#f97316", "✏️", "Company Updated"),
    E.COMPANY_PDF_CONFIG_UPDATED: EventStyle("#f97316", "⚙️", "PDF Config Updated"),
    E.COMPANY_EMAIL_TEMPLATE_UPDATED: EventStyle("#f97316", "📧", "Email Template Updated"),
    # Recurring invoices
    E.RECURRING_INVOICE_CREATED: EventStyle("#06b6d4", "🔁", "Recurring Invoice Created"),
    E.RECURRING_INVOICE_UPDATED: EventStyle("#06b6d4", "✏️", "Recurring Invoice Updated"),
    E.RECURRING_INVOICE_DELETED: EventStyle("#ef4444", "🗑️", "Recurring Invoice Deleted"),
    E.RECURRING_INVOICE_GENERATED: EventStyle("#10b981", "🔄", "Recurring Invoice Generated"),
    E.RECURRING_INVOICE_AUTO_SENT: EventStyle("#10b981", "📧", "Recurring Invoice Auto-Sent"),
    # Plugins
    E.PLUGIN_ACTIVATED: EventStyle("#6366f1", "🔌", "Plugin Activated"),
    E.PLUGIN_DEACTIVATED: EventStyle("#6b7280", "⏸️", "Plugin Deactivated"),
    E.PLUGIN_CONFIGURED: EventStyle("#6366f1", "⚙️", "Plugin Configured"),
    E.PLUGIN_WEBHOOK_RECEIVED: EventStyle("#6366f1", "📥", "Plugin Webhook Received"),
    # Users
    E.USER_CREATED: EventStyle("#ef4444", "👤", "User Created"),
    E.USER_LOGGED_IN: EventStyle("#10b981", "🔓", "User Logged In"),
    # Webhooks
    E.WEBHOOK_CREATED: EventStyle("#8b5cf6", "🪝", "Webhook Created"),
    E.WEBHOOK_UPDATED: EventStyle("#8b5cf6", "✏️", "Webhook Updated"),
    E.WEBHOOK_DELETED: EventStyle("#ef4444", "🗑️", "Webhook Deleted"),
}


def get_event_style(event: Any) -> EventStyle:
    try:
        return EVENT_STYLES[WebhookEvent(event)]
    except ValueError:
        return DEFAULT_STYLE


# ── Descriptions ──────────────────────────────────────────────────────────

def _part(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    return payload.get(key) or {}


def client_name(payload: Dict[str, Any]) -> str:
    client = _part(payload, "client")
    if client.get("type") == "COMPANY":
        name = client.get("name")
    else:
        name = f"{client.get('contact_firstname') or ''} {client.get('contact_lastname') or ''}".strip()
    return name or "N/A"


def _number(doc: Dict[str, Any]) -> str:
    return str(doc.get("raw_number") or doc.get("number") or doc.get("id") or "N/A")


def _currency(doc: Dict[str, Any]) -> str:
    return doc.get("currency") or "€"


def _quote(p: Dict[str, Any], suffix: str = "") -> str:
    quote = _part(p, "quote")
    return f"**Quote #{_number(quote)}**\nClient: {client_name(p)}{suffix}"


def _invoice(p: Dict[str, Any], suffix: str = "") -> str:
    invoice = _part(p, "invoice")
    return f"**Invoice #{_number(invoice)}**\nClient: {client_name(p)}{suffix}"


def _receipt(p: Dict[str, Any], suffix: str = "") -> str:
    receipt = _part(p, "receipt")
    invoice = _part(p, "invoice")
    return f"**Receipt #{_number(receipt)}**\nInvoice: #{_number(invoice)}{suffix}"


def _client(p: Dict[str, Any], with_email: bool = False, with_city: bool = False) -> str:
    text = f"**{client_name(p)}**"
    client = _part(p, "client")
    if with_email:
        text += f"\nEmail: {client.get('contact_email') or 'N/A'}"
    if with_city:
        text += f"\nCity: {client.get('city') or 'N/A'}"
    return text


def _company(p: Dict[str, Any], suffix: str = "") -> str:
    return f"**{_part(p, 'company').get('name') or 'N/A'}**{suffix}"


def _payment_method(p: Dict[str, Any], with_type: bool = False) -> str:
    method = _part(p, "payment_method")
    text = f"**{method.get('name') or 'N/A'}**"
    if with_type:
        text += f"\nType: {method.get('type') or 'N/A'}"
    return text


def _recurring(p: Dict[str, Any], prefix: str = "", details: bool = False) -> str:
    recurring = _part(p, "recurring_invoice")
    text = f"{prefix}Client: {client_name(p)}"
    if details:
        text += f"\nFrequency: {recurring.get('frequency') or 'N/A'}"
    return text


def _plugin(p: Dict[str, Any], suffix: Optional[str] = None) -> str:
    plugin = _part(p, "plugin")
    text = f"**{plugin.get('name') or 'N/A'}**"
    return text + (suffix if suffix is not None else f"\nType: {plugin.get('type') or 'N/A'}")


def _webhook(p: Dict[str, Any], with_url: bool = True) -> str:
    webhook = _part(p, "webhook")
    text = f"Type: {webhook.get('type') or 'N/A'}"
    if with_url:
        text += f"\nURL: {webhook.get('url') or 'N/A'}"
    return text


def _user(p: Dict[str, Any]) -> str:
    user = _part(p, "user")
    return f"**{user.get('firstname') or ''} {user.get('lastname') or ''}**\nEmail: {user.get('email') or 'N/A'}"


def _total(key: str) -> Callable[[Dict[str, Any]], str]:
    def suffix(p: Dict[str, Any]) -> str:
        doc = _part(p, key)
        return f"\nTotal Inc. Tax: {doc.get('total_ttc') or 0}{_currency(doc)}"
    return suffix


DESCRIPTIONS: Dict[WebhookEvent, Callable[[Dict[str, Any]], Optional[str]]] = {
    E.QUOTE_CREATED: lambda p: _quote(p, _total("quote")(p)),
    E.QUOTE_UPDATED: _quote,
    E.QUOTE_DELETED: _quote,
    E.QUOTE_SENT: _quote,
    E.QUOTE_SIGNED: _quote,
    E.SIGNATURE_OTP_SENT: lambda p: f"Verification code sent for Quote #{_number(_part(p, 'quote'))}",
    E.SIGNATURE_COMPLETED: lambda p: f"**Quote #{_number(_part(p, 'quote'))}**\n✅ Signature completed",
    E.INVOICE_CREATED: lambda p: _invoice(p, _total("invoice")(p)),
    E.INVOICE_UPDATED: _invoice,
    E.INVOICE_DELETED: _invoice,
    E.INVOICE_SENT: _invoice,
    E.INVOICE_OVERDUE: lambda p: (
        f"**Invoice #{_number(_part(p, 'invoice'))}**\n"
        f"⚠️ Due date passed: {(_part(p, 'invoice').get('due_date') or 'N/A')[:10]}"
    ),
    E.INVOICE_MARKED_AS_PAID: lambda p: f"**Invoice #{_number(_part(p, 'invoice'))}**\nMarked as paid",
    E.INVOICE_CREATED_FROM_QUOTE: lambda p: (
        f"**Invoice #{_number(_part(p, 'invoice'))}**\nFrom Quote #{_number(_part(p, 'quote'))}"
    ),
    E.INVOICE_CREDIT_NOTE_CREATED: lambda p: (
        f"**Credit Note #{_number(_part(p, 'credit_note'))}**\n"
        f"Original invoice: #{_number(_part(p, 'invoice'))}"
    ),
    E.RECEIPT_CREATED: lambda p: _receipt(
        p, f"\nAmount: {_part(p, 'receipt').get('total_paid') or 0}{_currency(_part(p, 'invoice'))}"
    ),
    E.RECEIPT_UPDATED: _receipt,
    E.RECEIPT_DELETED: _receipt,
    E.RECEIPT_SENT: _receipt,
    E.RECEIPT_CREATED_FROM_INVOICE: lambda p: (
        f"**Receipt #{_number(_part(p, 'receipt'))}**\nFrom Invoice #{_number(_part(p, 'invoice'))}"
    ),
    E.PAYMENT_METHOD_CREATED: lambda p: _payment_method(p, with_type=True),
    E.PAYMENT_METHOD_UPDATED: lambda p: _payment_method(p, with_type=True),
    E.PAYMENT_METHOD_DELETED: _payment_method,
    E.PAYMENT_METHOD_ACTIVATED: _payment_method,
    E.PAYMENT_METHOD_DEACTIVATED: _payment_method,
    E.CLIENT_CREATED: lambda p: _client(p, with_email=True, with_city=True),
    E.CLIENT_UPDATED: lambda p: _client(p, with_email=True),
    E.CLIENT_DELETED: _client,
    E.CLIENT_ACTIVATED: _client,
    E.CLIENT_DEACTIVATED: _client,
    E.COMPANY_CREATED: _company,
    E.COMPANY_UPDATED: lambda p: _company(p, "\nUpdate completed"),
    E.COMPANY_PDF_CONFIG_UPDATED: lambda p: _company(p, "\nPDF configuration updated"),
    E.COMPANY_EMAIL_TEMPLATE_UPDATED: lambda p: _company(p, "\nEmail template updated"),
    E.RECURRING_INVOICE_CREATED: lambda p: _recurring(p, details=True),
    E.RECURRING_INVOICE_UPDATED: lambda p: _recurring(p, details=True),
    E.RECURRING_INVOICE_DELETED: _recurring,
    E.RECURRING_INVOICE_GENERATED: lambda p: _recurring(p, "Recurring invoice generated\n"),
    E.RECURRING_INVOICE_AUTO_SENT: lambda p: _recurring(p, "Recurring invoice auto-sent\n"),
    E.PLUGIN_ACTIVATED: _plugin,
    E.PLUGIN_DEACTIVATED: _plugin,
    E.PLUGIN_CONFIGURED: lambda p: _plugin(p, "\nConfiguration updated"),
    E.PLUGIN_WEBHOOK_RECEIVED: lambda p: f"Plugin: {_part(p, 'plugin').get('name') or 'N/A'}",
    E.USER_CREATED: _user,
    E.USER_LOGGED_IN: lambda p: f"👤 {_part(p, 'user').get('email') or 'N/A'}",
    E.WEBHOOK_CREATED: _webhook,
    E.WEBHOOK_UPDATED: _webhook,
    E.WEBHOOK_DELETED: lambda p: _webhook(p, with_url=False),
}


def format_event_description(event: Any, payload: Dict[str, Any]) -> Optional[str]:
    """Markdown description for `event`, or None when the event has none."""
    try:
        formatter = DESCRIPTIONS.get(WebhookEvent(event))
    except ValueError:
        return None
    return formatter(payload) if formatter else None
