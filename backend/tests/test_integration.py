"""
Invoicerr Backend — Database Integration Tests
================================================

What:  Services against a real SQLite database (aiosqlite), one file per test.
Why:   Mocked sessions cannot show what a commit, a rollback or a flush hook
       actually does to the rows.
How:   Tables are created from the ORM metadata; the numbering and webhook
       session hooks are installed as in the app. Mail and outbound HTTP
       stay mocked.

What we test:
    ✅ An expired session row is gone even though the request rolls back
    ✅ The overdue sweep skips credit notes; dashboard totals ignore them
    ✅ Sequence numbers and raw numbers come from real queries and the flush hook
    ✅ A company reset removes only that company's data
    ✅ Webhooks go out after commit and never after rollback
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401  registers every table on Base.metadata
from app.database import Base, get_db_session
from app.exceptions import AuthenticationError
from app.models.client import Client
from app.models.company import Company
from app.models.enums import InvoiceStatus, WebhookEvent
from app.models.invoice import CREDIT_NOTE_MARKER, Invoice, InvoiceItem
from app.models.user import UserSession
from app.services.auth_service import auth_service
from app.services.danger_service import DangerService
from app.services.invoice_service import invoice_service
from app.services.stats_service import stats_service
from app.services.webhooks.dispatcher import (
    PENDING_EVENTS_KEY,
    register_webhook_hooks,
    webhook_dispatcher,
)
from app.utils.dates import utcnow
from app.utils.numbering import next_number, register_numbering_hooks

from factories import make_client, make_company, make_invoice, make_user

PAST_DUE = datetime(2025, 4, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'invoicerr.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    register_numbering_hooks()
    register_webhook_hooks()
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def seed(factory, *objects):
    async with factory() as db:
        db.add_all(objects)
        await db.commit()


async def count(factory, model, *criteria):
    async with factory() as db:
        return await db.scalar(select(func.count()).select_from(model).where(*criteria))


class TestExpiredSession:

    @pytest.mark.asyncio
    async def test_removed_although_request_fails(self, session_factory):
        user = make_user()
        expired = UserSession(
            id=uuid4(),
            token="expired-token",
            user_id=user.id,
            expires_at=utcnow() - timedelta(minutes=5),
        )
        await seed(session_factory, user, expired)

        with patch("app.database.async_session_factory", session_factory):
            sessions = get_db_session()
            db = await sessions.__anext__()
            with pytest.raises(AuthenticationError) as exc_info:
                await auth_service.validate_session(db, "expired-token")
            # The dependency sees the 401 and rolls back
            with pytest.raises(AuthenticationError):
                await sessions.athrow(exc_info.value)

        assert await count(session_factory, UserSession) == 0


class TestOverdueAndDashboard:

    @pytest.mark.asyncio
    async def test_credit_notes_stay_out(self, session_factory):
        company = make_company()
        client = make_client(company)
        invoice = make_invoice(company, client, due_date=PAST_DUE)
        credit_note = make_invoice(
            company,
            client,
            lines=((-2, 100.0, 20.0),),
            number=2,
            raw_number="INV-2025-0002",
            due_date=PAST_DUE,
            notes=f"Refund\n{CREDIT_NOTE_MARKER}",
        )
        await seed(session_factory, invoice, credit_note)

        with patch("app.services.invoice_service.webhook_dispatcher") as mock_webhooks:
            mock_webhooks.safe_dispatch = AsyncMock()
            async with session_factory() as db:
                flagged = await invoice_service.mark_overdue_invoices(db)
                await db.commit()

        assert flagged == 1
        assert mock_webhooks.safe_dispatch.await_count == 1
        async with session_factory() as db:
            assert (await db.get(Invoice, invoice.id)).status == InvoiceStatus.OVERDUE
            assert (await db.get(Invoice, credit_note.id)).status == InvoiceStatus.UNPAID

            dashboard = await stats_service.dashboard(db, await db.get(Company, company.id))

        assert dashboard["overdue"] == 240.0
        assert dashboard["outstanding"] == 240.0
        assert len(dashboard["recent_invoices"]) == 2


class TestNumbering:

    @pytest.mark.asyncio
    async def test_next_number_and_flush_hook(self, session_factory):
        company = make_company()
        client = make_client(company)
        other = make_company(name="Initech")
        await seed(
            session_factory,
            make_invoice(company, client),
            make_invoice(company, client, number=2, raw_number="INV-2025-0002"),
            make_invoice(other, make_client(other), number=9, raw_number="INV-2025-0009"),
        )

        async with session_factory() as db:
            loaded = await db.get(Company, company.id)
            number = await next_number(db, Invoice, company.id)
            invoice = Invoice(
                company_id=company.id,
                client_id=client.id,
                number=number,
                created_at=datetime(2025, 6, 9, tzinfo=timezone.utc),
            )
            invoice.company = loaded
            db.add(invoice)
            await db.commit()

        assert number == 3
        async with session_factory() as db:
            stored = await db.get(Invoice, invoice.id)
        assert stored.raw_number == "INV-2025-0003"


class TestCompanyReset:

    @pytest.mark.asyncio
    async def test_only_that_company(self, session_factory):
        user = make_user()
        company = make_company()
        other = make_company(name="Initech")
        await seed(
            session_factory,
            user,
            make_invoice(company, make_client(company)),
            make_invoice(other, make_client(other, name="Initrode")),
        )
        service = DangerService()
        template = SimpleNamespace(subject="Code", body="{{OTP_CODE}}")

        async with session_factory() as db:
            with patch("app.services.danger_service.mail_service") as mock_mail, \
                 patch("app.services.danger_service.company_service") as mock_company:
                mock_mail.send_mail = AsyncMock(return_value=True)
                mock_company.get_mail_template = AsyncMock(return_value=template)
                await service.request_otp(db, user, company)
            code = mock_mail.send_mail.await_args.args[2]

            await service.reset_company_data(db, user, company, code)
            await db.commit()

        assert await count(session_factory, Company) == 2
        assert await count(session_factory, Client, Client.company_id == company.id) == 0
        assert await count(session_factory, Invoice, Invoice.company_id == company.id) == 0
        assert await count(session_factory, Client, Client.company_id == other.id) == 1
        assert await count(session_factory, Invoice, Invoice.company_id == other.id) == 1
        assert await count(session_factory, InvoiceItem) == 1


class TestPostCommitWebhooks:

    @pytest.mark.asyncio
    async def test_sent_after_commit(self, session_factory):
        payload = {"company_id": str(uuid4())}
        with patch.object(webhook_dispatcher, "dispatch", AsyncMock(return_value=0)) as mock_dispatch, \
             patch("app.services.webhooks.dispatcher.async_session_factory", session_factory):
            async with session_factory() as db:
                db.add(make_company())
                await webhook_dispatcher.safe_dispatch(db, WebhookEvent.COMPANY_UPDATED, payload)
                await db.flush()
                mock_dispatch.assert_not_awaited()
                await db.commit()
            await webhook_dispatcher.drain()

        mock_dispatch.assert_awaited_once()
        assert mock_dispatch.await_args.args[1:] == (WebhookEvent.COMPANY_UPDATED, payload)

    @pytest.mark.asyncio
    async def test_dropped_on_rollback(self, session_factory):
        with patch.object(webhook_dispatcher, "dispatch", AsyncMock(return_value=0)) as mock_dispatch, \
             patch("app.services.webhooks.dispatcher.async_session_factory", session_factory):
            async with session_factory() as db:
                db.add(make_company())
                await webhook_dispatcher.safe_dispatch(db, WebhookEvent.COMPANY_UPDATED, {})
                await db.flush()
                await db.rollback()
                assert PENDING_EVENTS_KEY not in db.info

                # A later commit on the same session must not resurrect it
                db.add(make_company(name="Initech"))
                await db.commit()
            await webhook_dispatcher.drain()

        mock_dispatch.assert_not_awaited()
        assert await count(session_factory, Company) == 1
