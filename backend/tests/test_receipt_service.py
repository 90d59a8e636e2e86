"""
Invoicerr Backend — Receipt Service Unit Tests
================================================

What we test:
    ✅ Receipt lines must belong to the receipt's invoice
    ✅ Full receipt from an invoice pays every line VAT included
    ✅ Invoice status follows the receipts (PAID ↔ UNPAID)
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.models.enums import InvoiceStatus, WebhookEvent
from app.models.receipt import Receipt
from app.services.receipt_service import ReceiptService, line_amount

from factories import make_invoice, result_with


def make_receipt(invoice, total_paid):
    receipt = Receipt(
        id=uuid4(),
        invoice_id=invoice.id,
        number=1,
        raw_number="R-2025-0001",
        total_paid=total_paid,
        items=[],
        created_at=datetime(2025, 4, 1, tzinfo=timezone.utc),
    )
    receipt.invoice = invoice
    return receipt


def test_line_amount_includes_vat(company, client):
    invoice = make_invoice(company, client, lines=((3, 33.33, 5.5),))
    assert line_amount(invoice.items[0]) == 105.49


class TestCheckInvoiceAfterReceipt:

    def setup_method(self):
        self.service = ReceiptService()

    @pytest.mark.asyncio
    async def test_fully_covered_becomes_paid(self, mock_db_session, company, client):
        invoice = make_invoice(company, client)
        mock_db_session.execute.return_value = result_with(scalar=240.0)

        await self.service.check_invoice_after_receipt(mock_db_session, invoice)

        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_at is not None

    @pytest.mark.asyncio
    async def test_partial_payment_stays_unpaid(self, mock_db_session, company, client):
        invoice = make_invoice(company, client, status=InvoiceStatus.SENT)
        mock_db_session.execute.return_value = result_with(scalar=100.0)

        await self.service.check_invoice_after_receipt(mock_db_session, invoice)

        assert invoice.status == InvoiceStatus.SENT

    @pytest.mark.asyncio
    async def test_paid_invoice_no_longer_covered(self, mock_db_session, company, client):
        invoice = make_invoice(
            company, client, status=InvoiceStatus.PAID, paid_at=datetime(2025, 4, 1, tzinfo=timezone.utc)
        )
        mock_db_session.execute.return_value = result_with(scalar=0)

        await self.service.check_invoice_after_receipt(mock_db_session, invoice)

        assert invoice.status == InvoiceStatus.UNPAID
        assert invoice.paid_at is None


class TestReceiptService:

    def setup_method(self):
        self.service = ReceiptService()

    @pytest.mark.asyncio
    async def test_get_receipt_other_company(self, mock_db_session, company):
        mock_db_session.execute.return_value = result_with(one=None)
        with pytest.raises(NotFoundError):
            await self.service.get_receipt(mock_db_session, company, uuid4())

    @pytest.mark.asyncio
    async def test_foreign_line_rejected(self, mock_db_session, company, client):
        invoice = make_invoice(company, client)
        with patch("app.services.receipt_service.invoice_service") as mock_invoices:
            mock_invoices.get_invoice_by_id = AsyncMock(return_value=invoice)
            with pytest.raises(ValidationError, match="does not belong to invoice"):
                await self.service.create_receipt(
                    mock_db_session,
                    company,
                    {"invoice_id": invoice.id, "items": [{"invoice_item_id": uuid4(), "amount_paid": 10}]},
                )
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_partial_receipt(self, mock_db_session, company, client):
        invoice = make_invoice(company, client)
        mock_db_session.execute = AsyncMock(
            side_effect=[result_with(scalar=None), result_with(scalar=50.0)]
        )
        with patch("app.services.receipt_service.invoice_service") as mock_invoices, \
             patch("app.services.receipt_service.webhook_dispatcher") as mock_webhooks:
            mock_invoices.get_invoice_by_id = AsyncMock(return_value=invoice)
            mock_webhooks.safe_dispatch = AsyncMock()

            receipt = await self.service.create_receipt(
                mock_db_session,
                company,
                {
                    "invoice_id": invoice.id,
                    "payment_method": "Cash",
                    "items": [{"invoice_item_id": str(invoice.items[0].id), "amount_paid": 50}],
                },
            )

        assert receipt.number == 1
        assert receipt.raw_number.startswith("R-")
        assert receipt.total_paid == 50.0
        assert receipt.payment_method == "Cash"
        assert invoice.status == InvoiceStatus.UNPAID
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.RECEIPT_CREATED

    @pytest.mark.asyncio
    async def test_from_invoice_pays_in_full(self, mock_db_session, company, client):
        invoice = make_invoice(company, client, lines=((2, 100.0, 20.0), (1, 10.0, 0.0)))
        mock_db_session.execute = AsyncMock(
            side_effect=[result_with(scalar=3), result_with(scalar=250.0)]
        )
        with patch("app.services.receipt_service.invoice_service") as mock_invoices, \
             patch("app.services.receipt_service.webhook_dispatcher") as mock_webhooks:
            mock_invoices.get_invoice_by_id = AsyncMock(return_value=invoice)
            mock_webhooks.safe_dispatch = AsyncMock()

            receipt = await self.service.create_receipt_from_invoice(mock_db_session, company, invoice.id)

        assert receipt.number == 4
        assert [i.amount_paid for i in receipt.items] == [240.0, 10.0]
        assert receipt.total_paid == 250.0
        assert invoice.status == InvoiceStatus.PAID
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.RECEIPT_CREATED_FROM_INVOICE

    @pytest.mark.asyncio
    async def test_delete_rechecks_invoice(self, mock_db_session, company, client):
        invoice = make_invoice(company, client, status=InvoiceStatus.PAID)
        receipt = make_receipt(invoice, invoice.total_ttc)
        mock_db_session.execute = AsyncMock(
            side_effect=[result_with(one=receipt), result_with(scalar=0)]
        )
        with patch("app.services.receipt_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            outcome = await self.service.delete_receipt(mock_db_session, company, receipt.id)

        assert outcome == {"message": "Receipt deleted successfully"}
        mock_db_session.delete.assert_awaited_once_with(receipt)
        assert invoice.status == InvoiceStatus.UNPAID
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.RECEIPT_DELETED

    @pytest.mark.asyncio
    async def test_send_without_client_email(self, mock_db_session, company, client):
        client.contact_email = "  "
        receipt = make_receipt(make_invoice(company, client), 10.0)
        mock_db_session.execute.return_value = result_with(one=receipt)

        outcome = await self.service.send_receipt_by_email(mock_db_session, company, receipt.id)

        assert outcome["success"] is False
