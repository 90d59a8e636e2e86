"""
Invoicerr Backend — Company Service Tests
===========================================

What we test:
    ✅ Logo upload: empty, oversized and non-image files are refused
    ✅ Logo upload: detection failures surface as FileStorageError
    ✅ Logo upload: accepted images are stored as a data URL and enabled
    ✅ Default company: only one membership stays default
"""

import base64
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from app.config import settings
from app.exceptions import FileStorageError, PermissionDeniedError, ValidationError
from app.models.company import UserCompany
from app.models.enums import UserRole
from app.services.company_service import CompanyService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestUploadLogo:

    def setup_method(self):
        self.service = CompanyService()

    @pytest.mark.asyncio
    async def test_empty(self, mock_db_session, company):
        with pytest.raises(ValidationError, match="empty"):
            await self.service.upload_logo(mock_db_session, company, b"")

    @pytest.mark.asyncio
    async def test_too_large(self, mock_db_session, company):
        content = b"\x00" * (settings.max_logo_size + 1)
        with patch("app.services.company_service.detect_mime") as mock_detect:
            with pytest.raises(ValidationError, match="exceeds maximum") as exc_info:
                await self.service.upload_logo(mock_db_session, company, content)

        assert exc_info.value.context["actual_size"] == len(content)
        mock_detect.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_an_image(self, mock_db_session, company):
        with patch("app.services.company_service.detect_mime", return_value="application/pdf"):
            with pytest.raises(ValidationError, match="not supported") as exc_info:
                await self.service.upload_logo(mock_db_session, company, b"%PDF-1.7")

        assert exc_info.value.context["detected_mime"] == "application/pdf"

    @pytest.mark.asyncio
    async def test_detection_unavailable(self, mock_db_session, company):
        with patch("app.services.company_service.detect_mime", side_effect=ImportError("no libmagic")):
            with pytest.raises(FileStorageError):
                await self.service.upload_logo(mock_db_session, company, PNG)

    @pytest.mark.asyncio
    async def test_stored_as_data_url(self, mock_db_session, company):
        with patch("app.services.company_service.detect_mime", return_value="image/png"), \
             patch.object(self.service, "edit_pdf_config", AsyncMock()) as mock_edit:
            await self.service.upload_logo(mock_db_session, company, PNG)

        changes = mock_edit.await_args.args[2]
        assert changes["include_logo"] is True
        assert changes["logo_b64"] == "data:image/png;base64," + base64.b64encode(PNG).decode("ascii")


class TestDefaultCompany:

    def setup_method(self):
        self.service = CompanyService()

    @pytest.mark.asyncio
    async def test_other_defaults_cleared(self, mock_db_session, user, company):
        membership = UserCompany(
            id=uuid4(),
            user_id=user.id,
            company_id=company.id,
            role=UserRole.ADMIN,
            is_default=False,
            joined_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        with patch("app.services.company_service.membership_service") as mock_membership:
            mock_membership.get_membership = AsyncMock(return_value=membership)
            outcome = await self.service.set_default_company(mock_db_session, user, company.id)

        assert outcome == {"success": True, "company_id": company.id}
        assert membership.is_default is True
        statement = mock_db_session.execute.await_args.args[0]
        compiled = statement.compile()
        assert statement.table.name == "user_companies"
        assert compiled.params["is_default"] is False
        assert membership.id in compiled.params.values()
        assert user.id in compiled.params.values()
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_a_member(self, mock_db_session, user, company):
        with patch("app.services.company_service.membership_service") as mock_membership:
            mock_membership.get_membership = AsyncMock(return_value=None)
            with pytest.raises(PermissionDeniedError):
                await self.service.set_default_company(mock_db_session, user, company.id)
        mock_db_session.execute.assert_not_awaited()
