"""
Invoicerr Backend — Client Service Unit Tests
===============================================

What:  Tests for client CRUD, required fields per client type and webhooks.
How:   Mock DB session; the webhook dispatcher is patched out.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.models.enums import ClientType, WebhookEvent
from app.services.client_service import ClientService, validate_client_fields

from factories import result_with


class TestValidateClientFields:

    def test_company_requires_name(self):
        with pytest.raises(ValidationError, match="Name is required"):
            validate_client_fields(ClientType.COMPANY, {"name": "  "})

    def test_individual_requires_both_names(self):
        with pytest.raises(ValidationError, match="First name and last name"):
            validate_client_fields(ClientType.INDIVIDUAL, {"contact_firstname": "Jane"})

    def test_valid_individual(self):
        validate_client_fields(
            ClientType.INDIVIDUAL, {"contact_firstname": "Jane", "contact_lastname": "Doe"}
        )

    def test_accepts_raw_string_type(self):
        validate_client_fields("COMPANY", {"name": "Initech"})


class TestClientService:

    def setup_method(self):
        self.service = ClientService()

    @pytest.mark.asyncio
    async def test_get_client_found(self, mock_db_session, company, client):
        mock_db_session.execute.return_value = result_with(one=client)
        assert await self.service.get_client(mock_db_session, company, client.id) is client

    @pytest.mark.asyncio
    async def test_get_client_other_tenant_is_not_found(self, mock_db_session, company):
        mock_db_session.execute.return_value = result_with(one=None)
        with pytest.raises(NotFoundError):
            await self.service.get_client(mock_db_session, company, uuid4())

    @pytest.mark.asyncio
    async def test_get_clients_paginates(self, mock_db_session, company, client):
        mock_db_session.execute = AsyncMock(
            side_effect=[result_with(scalar=23), result_with(many=[client])]
        )
        page = await self.service.get_clients(mock_db_session, company, page=2)

        assert page["page_count"] == 3
        assert page["clients"] == [client]

    @pytest.mark.asyncio
    async def test_create_client(self, mock_db_session, company):
        with patch("app.services.client_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            created = await self.service.create_client(
                mock_db_session,
                company,
                {"name": "Initech", "contact_email": "bill@initech.test"},
            )

        assert created.company_id == company.id
        assert created.type == ClientType.COMPANY
        mock_db_session.add.assert_called_once_with(created)
        event = mock_webhooks.safe_dispatch.await_args.args[1]
        assert event == WebhookEvent.CLIENT_CREATED

    @pytest.mark.asyncio
    async def test_create_individual_without_names_rejected(self, mock_db_session, company):
        with pytest.raises(ValidationError):
            await self.service.create_client(
                mock_db_session, company, {"type": "INDIVIDUAL", "contact_firstname": "Jane"}
            )
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_edit_deactivation_fires_extra_event(self, mock_db_session, company, client):
        mock_db_session.execute.return_value = result_with(one=client)
        with patch("app.services.client_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.edit_client(
                mock_db_session, company, client.id, {"is_active": False, "city": "Springfield"}
            )

        assert client.city == "Springfield"
        events = [call.args[1] for call in mock_webhooks.safe_dispatch.await_args_list]
        assert events == [WebhookEvent.CLIENT_UPDATED, WebhookEvent.CLIENT_DEACTIVATED]

    @pytest.mark.asyncio
    async def test_edit_cannot_move_client_to_other_company(self, mock_db_session, company, client):
        mock_db_session.execute.return_value = result_with(one=client)
        with patch("app.services.client_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            await self.service.edit_client(
                mock_db_session, company, client.id, {"company_id": uuid4()}
            )
        assert client.company_id == company.id

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, mock_db_session, company, client):
        mock_db_session.execute.return_value = result_with(one=client)
        with patch("app.services.client_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            deleted = await self.service.delete_client(mock_db_session, company, client.id)

        assert deleted.is_active is False
        mock_db_session.delete.assert_not_awaited()
