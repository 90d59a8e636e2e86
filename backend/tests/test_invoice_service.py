"""
Invoicerr Backend — Invoice Service Unit Tests
================================================

What we test:
    ✅ Creation: default due date, currency fallback, number assignment
    ✅ Conversion from a quote copies lines and fires the dedicated event
    ✅ Paid invoices still succeed when the storage upload fails
    ✅ Sending moves UNPAID → SENT but never downgrades PAID
    ✅ Modification options per status
    ✅ Credit notes: negative lines, CN- number, marker, quantity guard
    ✅ Overdue sweep (credit notes are skipped)
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import ValidationError
from app.models.enums import InvoiceStatus, QuoteStatus, WebhookEvent
from app.models.invoice import CREDIT_NOTE_MARKER
from app.models.quote import Quote, QuoteItem
from app.services.invoice_service import DEFAULT_DUE_DAYS, InvoiceService
from app.utils.dates import utcnow

from factories import make_invoice, result_with

TEMPLATE = SimpleNamespace(subject="Invoice {{INVOICE_NUMBER}}", body="Hello {{CLIENT_NAME}}")


class TestCreateInvoice:

    def setup_method(self):
        self.service = InvoiceService()

    @pytest.mark.asyncio
    async def test_defaults(self, mock_db_session, company, client):
        mock_db_session.execute.return_value = result_with(scalar=9)
        with patch("app.services.invoice_service.client_service") as mock_clients, \
             patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_clients.get_client = AsyncMock(return_value=client)
            mock_webhooks.safe_dispatch = AsyncMock()

            invoice = await self.service.create_invoice(
                mock_db_session,
                company,
                {"client_id": client.id, "items": [{"quantity": 1, "unit_price": 80, "vat_rate": 25}]},
            )

        assert invoice.number == 10
        assert invoice.status == InvoiceStatus.UNPAID
        assert invoice.total_ttc == 100.0
        assert invoice.due_date > utcnow() + timedelta(days=DEFAULT_DUE_DAYS - 1)
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.INVOICE_CREATED

    @pytest.mark.asyncio
    async def test_client_currency_wins_over_company(self, mock_db_session, company, client):
        client.currency = "USD"
        with patch("app.services.invoice_service.client_service") as mock_clients, \
             patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_clients.get_client = AsyncMock(return_value=client)
            mock_webhooks.safe_dispatch = AsyncMock()
            invoice = await self.service.create_invoice(mock_db_session, company, {"client_id": client.id})

        assert invoice.currency == "USD"

    @pytest.mark.asyncio
    async def test_from_quote(self, mock_db_session, company, client):
        quote = Quote(
            id=uuid4(),
            company_id=company.id,
            client_id=client.id,
            number=3,
            title="Website",
            status=QuoteStatus.SIGNED,
            notes="Thanks",
            currency="EUR",
            discount_rate=10,
            items=[QuoteItem(id=uuid4(), description="Design", quantity=2, unit_price=100, vat_rate=20)],
        )
        with patch("app.services.invoice_service.quote_service") as mock_quotes, \
             patch("app.services.invoice_service.client_service") as mock_clients, \
             patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_quotes.get_quote = AsyncMock(return_value=quote)
            mock_clients.get_client = AsyncMock(return_value=client)
            mock_webhooks.safe_dispatch = AsyncMock()

            invoice = await self.service.create_invoice_from_quote(mock_db_session, company, quote.id)

        assert invoice.quote_id == quote.id
        assert [i.description for i in invoice.items] == ["Design"]
        assert invoice.total_ht == 180.0
        assert invoice.notes == "Thanks"
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.INVOICE_CREATED_FROM_QUOTE


class TestPaymentAndSending:

    def setup_method(self):
        self.service = InvoiceService()

    @pytest.mark.asyncio
    async def test_paid_survives_upload_failure(self, mock_db_session, company, client):
        invoice = make_invoice(company, client)
        mock_db_session.execute.return_value = result_with(one=invoice)
        with patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks, \
             patch("app.services.invoice_service.plugin_service") as mock_plugins:
            mock_webhooks.safe_dispatch = AsyncMock()
            mock_plugins.upload_paid_invoice = AsyncMock(side_effect=OSError("read-only"))

            paid = await self.service.mark_invoice_as_paid(mock_db_session, company, invoice.id)

        assert paid.status == InvoiceStatus.PAID
        assert paid.paid_at is not None
        record = mock_plugins.upload_paid_invoice.await_args.args[2]
        assert len(record["items"]) == 1

    @pytest.mark.asyncio
    async def test_send_marks_sent(self, mock_db_session, company, client):
        invoice = make_invoice(company, client)
        mock_db_session.execute.return_value = result_with(one=invoice)
        with patch("app.services.invoice_service.mail_service") as mock_mail, \
             patch("app.services.invoice_service.company_service") as mock_company, \
             patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_mail.send_mail = AsyncMock(return_value=True)
            mock_company.get_mail_template = AsyncMock(return_value=TEMPLATE)
            mock_webhooks.safe_dispatch = AsyncMock()

            outcome = await self.service.send_invoice(mock_db_session, company, invoice.id)

        assert outcome["success"] is True
        assert invoice.status == InvoiceStatus.SENT
        _, subject, body = mock_mail.send_mail.await_args.args
        assert subject == "Invoice INV-2025-0001"
        assert body == "Hello Globex"

    @pytest.mark.asyncio
    async def test_send_keeps_paid_status(self, mock_db_session, company, client):
        invoice = make_invoice(company, client, status=InvoiceStatus.PAID)
        mock_db_session.execute.return_value = result_with(one=invoice)
        with patch("app.services.invoice_service.mail_service") as mock_mail, \
             patch("app.services.invoice_service.company_service") as mock_company, \
             patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_mail.send_mail = AsyncMock(return_value=True)
            mock_company.get_mail_template = AsyncMock(return_value=TEMPLATE)
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.send_invoice(mock_db_session, company, invoice.id)

        assert invoice.status == InvoiceStatus.PAID

    @pytest.mark.asyncio
    async def test_send_without_email(self, mock_db_session, company, client):
        client.contact_email = None
        invoice = make_invoice(company, client)
        mock_db_session.execute.return_value = result_with(one=invoice)

        outcome = await self.service.send_invoice(mock_db_session, company, invoice.id)

        assert outcome["success"] is False
        assert invoice.status == InvoiceStatus.UNPAID


class TestModificationOptions:

    def setup_method(self):
        self.service = InvoiceService()

    def _available(self, options):
        return {o["id"] for o in options["options"] if o["available"]}

    def test_unpaid_invoice(self, company, client):
        options = self.service.get_modification_options(make_invoice(company, client))
        assert options["recommended_option"] == "direct_edit"
        assert self._available(options) == {
            "direct_edit", "credit_note", "corrective_invoice", "void_and_reissue", "cancel",
        }

    def test_paid_invoice(self, company, client):
        options = self.service.get_modification_options(
            make_invoice(company, client, status=InvoiceStatus.PAID)
        )
        assert options["recommended_option"] == "credit_note"
        assert self._available(options) == {"credit_note", "corrective_invoice"}
        cancel = next(o for o in options["options"] if o["id"] == "cancel")
        assert cancel["reason"] == "Invoice is already paid"

    def test_cancelled_invoice(self, company, client):
        options = self.service.get_modification_options(make_invoice(company, client, is_active=False))
        assert self._available(options) == set()


class TestCreditNotes:

    def setup_method(self):
        self.service = InvoiceService()

    @pytest.mark.asyncio
    async def test_partial_credit(self, mock_db_session, company, client):
        original = make_invoice(company, client, lines=((2, 100.0, 20.0), (1, 50.0, 0.0)))
        line = original.items[0]
        mock_db_session.execute = AsyncMock(
            side_effect=[result_with(one=original), result_with(scalar=7)]
        )
        with patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            credit = await self.service.create_credit_note(
                mock_db_session,
                company,
                original.id,
                "ERR-01",
                "Wrong quantity",
                [{"original_item_id": str(line.id), "quantity": 1}],
            )

        assert credit.number == 8
        assert credit.raw_number == f"CN-{utcnow().year}-0008"
        assert credit.items[0].unit_price == -100.0
        assert credit.total_ht == -100.0
        assert credit.total_ttc == -120.0
        assert credit.is_credit_note
        assert CREDIT_NOTE_MARKER in credit.notes
        assert "Original Invoice: INV-2025-0001" in credit.notes
        assert "Correction Code: ERR-01" in credit.notes
        payload = mock_webhooks.safe_dispatch.await_args.args[2]
        assert payload["original_invoice_id"] == str(original.id)

    @pytest.mark.asyncio
    async def test_quantity_cannot_exceed_original(self, mock_db_session, company, client):
        original = make_invoice(company, client)
        mock_db_session.execute.return_value = result_with(one=original)
        with pytest.raises(ValidationError, match="cannot exceed"):
            await self.service.create_credit_note(
                mock_db_session, company, original.id, "ERR", None,
                [{"original_item_id": original.items[0].id, "quantity": 5}],
            )

    @pytest.mark.asyncio
    async def test_unknown_item(self, mock_db_session, company, client):
        original = make_invoice(company, client)
        mock_db_session.execute.return_value = result_with(one=original)
        with pytest.raises(ValidationError, match="not found in original invoice"):
            await self.service.create_credit_note(
                mock_db_session, company, original.id, "ERR", None,
                [{"original_item_id": uuid4(), "quantity": 1}],
            )


class TestOverdueSweep:

    def setup_method(self):
        self.service = InvoiceService()

    @pytest.mark.asyncio
    async def test_marks_past_due(self, mock_db_session, company, client):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        late = make_invoice(company, client, status=InvoiceStatus.SENT, due_date=now - timedelta(days=2))
        mock_db_session.execute.return_value = result_with(many=[late])
        with patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            marked = await self.service.mark_overdue_invoices(mock_db_session, now)

        assert marked == 1
        assert late.status == InvoiceStatus.OVERDUE
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.INVOICE_OVERDUE

    @pytest.mark.asyncio
    async def test_nothing_due(self, mock_db_session):
        mock_db_session.execute.return_value = result_with(many=[])
        assert await self.service.mark_overdue_invoices(mock_db_session) == 0
        mock_db_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_credit_notes_never_overdue(self, mock_db_session, company, client):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        credit_note = make_invoice(
            company, client,
            raw_number="CN-2025-0002",
            status=InvoiceStatus.SENT,
            due_date=now - timedelta(days=30),
            notes=f"Refund\n{CREDIT_NOTE_MARKER}",
        )
        mock_db_session.execute.return_value = result_with(many=[credit_note])
        with patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            marked = await self.service.mark_overdue_invoices(mock_db_session, now)

        assert marked == 0
        assert credit_note.status == InvoiceStatus.SENT
        mock_webhooks.safe_dispatch.assert_not_awaited()
        # the query itself filters on the marker
        query = str(mock_db_session.execute.await_args.args[0])
        assert "invoices.notes" in query and "LIKE" in query
