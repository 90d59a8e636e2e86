"""Invoicerr Backend — Payment Method Service Unit Tests"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError
from app.models.client import PaymentMethod
from app.models.enums import PaymentMethodType, WebhookEvent
from app.services.payment_method_service import PaymentMethodService

from factories import result_with


@pytest.fixture
def method(company):
    return PaymentMethod(
        id=uuid4(),
        company_id=company.id,
        name="Main account",
        details="IBAN FR76 3000 6000 0112 3456 7890 189",
        type=PaymentMethodType.BANK_TRANSFER,
        is_active=True,
    )


class TestPaymentMethodService:

    def setup_method(self):
        self.service = PaymentMethodService()

    @pytest.mark.asyncio
    async def test_create_defaults_to_bank_transfer(self, mock_db_session, company):
        with patch("app.services.payment_method_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            created = await self.service.create(mock_db_session, company, {"name": "Cash box"})

        assert created.type == PaymentMethodType.BANK_TRANSFER
        assert created.details == ""
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.PAYMENT_METHOD_CREATED

    @pytest.mark.asyncio
    async def test_find_one_missing(self, mock_db_session, company):
        mock_db_session.execute.return_value = result_with(one=None)
        with pytest.raises(NotFoundError):
            await self.service.find_one(mock_db_session, company, uuid4())

    @pytest.mark.asyncio
    async def test_update_ignores_none_values(self, mock_db_session, company, method):
        mock_db_session.execute.return_value = result_with(one=method)
        with patch("app.services.payment_method_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.update(
                mock_db_session, company, method.id, {"name": "Savings", "details": None}
            )

        assert method.name == "Savings"
        assert method.details.startswith("IBAN")
        assert mock_webhooks.safe_dispatch.await_count == 1

    @pytest.mark.asyncio
    async def test_reactivation_fires_activated(self, mock_db_session, company, method):
        method.is_active = False
        mock_db_session.execute.return_value = result_with(one=method)
        with patch("app.services.payment_method_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.update(mock_db_session, company, method.id, {"is_active": True})

        events = [call.args[1] for call in mock_webhooks.safe_dispatch.await_args_list]
        assert events[-1] == WebhookEvent.PAYMENT_METHOD_ACTIVATED

    @pytest.mark.asyncio
    async def test_soft_delete(self, mock_db_session, company, method):
        mock_db_session.execute.return_value = result_with(one=method)
        with patch("app.services.payment_method_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.soft_delete(mock_db_session, company, method.id)

        assert method.is_active is False
        assert mock_webhooks.safe_dispatch.await_args.args[1] == WebhookEvent.PAYMENT_METHOD_DELETED
