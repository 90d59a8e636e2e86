"""
Invoicerr Backend — Quote Service Unit Tests
==============================================

What:  Tests for quote creation/editing (server-side totals, numbering),
       signing and sending.
How:   Mock DB session; client lookup, mail, templates, plugins and the
       webhook dispatcher are patched.

What we test:
    ✅ Line item helpers: build, sync (update / create / drop)
    ✅ Totals recomputed server-side, VAT zeroed for exempt companies
    ✅ Quote gets the next number of its company
    ✅ Signing still succeeds when the storage upload fails
    ✅ Sending without a client email is reported, not raised
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError
from app.models.enums import ItemType, QuoteStatus, WebhookEvent
from app.models.quote import QuoteItem
from app.services.line_items import apply_totals, build_items, item_values, sync_items
from app.services.quote_service import QuoteService

from factories import make_company, make_quote, result_with

ITEMS = [
    {"description": "Design", "quantity": 2, "unit_price": 100, "vat_rate": 20},
    {"description": "Hosting", "quantity": 1, "unit_price": 50, "vat_rate": 10, "type": "PRODUCT"},
]


class TestLineItems:

    def test_item_values_defaults(self):
        values = item_values({})
        assert values["type"] == ItemType.SERVICE
        assert values["quantity"] == 0.0

    def test_vat_zeroed_when_exempt(self):
        assert item_values({"vat_rate": 20}, vat_exempt=True)["vat_rate"] == 0.0

    def test_build_items(self):
        items = build_items(QuoteItem, ITEMS)
        assert [i.description for i in items] == ["Design", "Hosting"]
        assert items[1].type == ItemType.PRODUCT

    def test_sync_updates_creates_and_drops(self):
        kept_id, dropped_id = uuid4(), uuid4()
        document = SimpleNamespace(
            items=[
                QuoteItem(id=kept_id, description="Old", quantity=1, unit_price=1, vat_rate=0),
                QuoteItem(id=dropped_id, description="Gone", quantity=1, unit_price=1, vat_rate=0),
            ]
        )
        sync_items(
            document,
            QuoteItem,
            [{"id": str(kept_id), "description": "Renamed", "quantity": 3}, {"description": "New"}],
        )

        assert [i.description for i in document.items] == ["Renamed", "New"]
        assert document.items[0].id == kept_id
        assert document.items[0].quantity == 3.0

    def test_apply_totals(self):
        document = SimpleNamespace(items=build_items(QuoteItem, ITEMS))
        apply_totals(document, 10, vat_exempt=False)

        assert document.discount_rate == 10
        assert document.total_ht == 225.0
        assert document.total_vat == 40.5
        assert document.total_ttc == 265.5


class TestQuoteService:

    def setup_method(self):
        self.service = QuoteService()

    @pytest.mark.asyncio
    async def test_get_quote_not_found(self, mock_db_session, company):
        mock_db_session.execute.return_value = result_with(one=None)
        with pytest.raises(NotFoundError):
            await self.service.get_quote(mock_db_session, company, uuid4())

    @pytest.mark.asyncio
    async def test_create_quote(self, mock_db_session, company, client):
        mock_db_session.execute.return_value = result_with(scalar=4)
        with patch("app.services.quote_service.client_service") as mock_clients, \
             patch("app.services.quote_service.webhook_dispatcher") as mock_webhooks:
            mock_clients.get_client = AsyncMock(return_value=client)
            mock_webhooks.safe_dispatch = AsyncMock()

            quote = await self.service.create_quote(
                mock_db_session,
                company,
                {"client_id": str(client.id), "title": "Website", "items": ITEMS, "discount_rate": 150},
            )

        assert quote.number == 5
        assert quote.raw_number.startswith("Q-")
        assert quote.status == QuoteStatus.DRAFT
        assert quote.discount_rate == 100
        assert quote.total_ttc == 0
        assert quote.currency == "EUR"
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.QUOTE_CREATED

    @pytest.mark.asyncio
    async def test_create_quote_vat_exempt(self, mock_db_session, client):
        company = make_company(country="France", exempt_vat=True)
        with patch("app.services.quote_service.client_service") as mock_clients, \
             patch("app.services.quote_service.webhook_dispatcher") as mock_webhooks:
            mock_clients.get_client = AsyncMock(return_value=client)
            mock_webhooks.safe_dispatch = AsyncMock()
            quote = await self.service.create_quote(
                mock_db_session, company, {"client_id": client.id, "items": ITEMS}
            )

        assert quote.total_vat == 0
        assert quote.total_ttc == quote.total_ht == 250.0
        assert all(item.vat_rate == 0 for item in quote.items)

    @pytest.mark.asyncio
    async def test_edit_recomputes_totals(self, mock_db_session, company, client):
        quote = make_quote(company, client, discount_rate=50)
        mock_db_session.execute.return_value = result_with(one=quote)
        with patch("app.services.quote_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.edit_quote(
                mock_db_session, company, quote.id, {"title": "Redesign", "items": ITEMS[:1]}
            )

        assert quote.title == "Redesign"
        assert quote.discount_rate == 50
        assert quote.total_ht == 100.0
        assert quote.total_ttc == 120.0

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, mock_db_session, company, client):
        quote = make_quote(company, client)
        mock_db_session.execute.return_value = result_with(one=quote)
        with patch("app.services.quote_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.delete_quote(mock_db_session, company, quote.id)

        assert quote.is_active is False
        mock_db_session.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signing_survives_upload_failure(self, mock_db_session, company, client):
        quote = make_quote(company, client, status=QuoteStatus.SENT)
        mock_db_session.execute.return_value = result_with(one=quote)
        with patch("app.services.quote_service.webhook_dispatcher") as mock_webhooks, \
             patch("app.services.quote_service.plugin_service") as mock_plugins:
            mock_webhooks.safe_dispatch = AsyncMock()
            mock_plugins.upload_signed_quote = AsyncMock(side_effect=RuntimeError("disk full"))

            signed = await self.service.mark_quote_as_signed(mock_db_session, company, quote.id)

        assert signed.status == QuoteStatus.SIGNED
        assert signed.signed_at is not None
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.QUOTE_SIGNED

    @pytest.mark.asyncio
    async def test_send_without_client_email(self, mock_db_session, company, client):
        client.contact_email = ""
        quote = make_quote(company, client)
        mock_db_session.execute.return_value = result_with(one=quote)
        with patch("app.services.quote_service.mail_service") as mock_mail:
            mock_mail.send_mail = AsyncMock()
            outcome = await self.service.send_quote(mock_db_session, company, quote.id)

        assert outcome["success"] is False
        assert quote.status == QuoteStatus.DRAFT
        mock_mail.send_mail.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_mails_signature_link(self, mock_db_session, company, client):
        quote = make_quote(company, client)
        mock_db_session.execute.return_value = result_with(one=quote)
        template = SimpleNamespace(
            subject="Quote {{SIGNATURE_NUMBER}}", body="Sign at {{SIGNATURE_URL}}"
        )
        with patch("app.services.quote_service.mail_service") as mock_mail, \
             patch("app.services.quote_service.company_service") as mock_company, \
             patch("app.services.quote_service.webhook_dispatcher") as mock_webhooks:
            mock_mail.send_mail = AsyncMock(return_value=True)
            mock_company.get_mail_template = AsyncMock(return_value=template)
            mock_webhooks.safe_dispatch = AsyncMock()

            outcome = await self.service.send_quote(mock_db_session, company, quote.id)

        assert outcome["success"] is True
        assert quote.status == QuoteStatus.SENT
        to, subject, body = mock_mail.send_mail.await_args.args
        assert to == client.contact_email
        assert subject == "Quote Q-2025-0001"
        assert "/signature/" in body
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.QUOTE_SENT
