"""
Invoicerr Backend — Webhook Dispatcher
========================================

What:  Delivers a business event to every webhook subscribed to it.
Why:   Services announce what happened (QUOTE_SIGNED, INVOICE_OVERDUE...)
       without knowing who listens or how.
How:   1. Resolve the company from the payload (payload["company"]["id"]
          or payload["company_id"])
       2. Load that company's webhooks (all webhooks when no company is
          known) and keep those whose `events` list contains the event
       3. Build the request with the driver for each webhook type
       4. POST with tenacity retry behind a per-host circuit breaker

Error Isolation:
    A failing webhook is logged and skipped; the others still receive the
    event. Services call `safe_dispatch()`, which never raises, so a dead
    Discord channel cannot roll back an invoice.

Post-commit delivery:
    safe_dispatch() only queues the event on the session (session.info).
    A Session after_commit hook hands the queue to a background task that
    delivers with its own session; a rollback drops the queue. Retries
    therefore never hold a request transaction open, and nothing is
    announced for work that was rolled back.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
from fastapi.encoders import jsonable_encoder
from sqlalchemy import event as sa_event, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.config import settings
from app.database import async_session_factory
from app.exceptions import ExternalServiceError
from app.middleware.request_id import request_id_var
from app.models.enums import WebhookEvent
from app.models.integration import Webhook
from app.services.resilience import circuit_breakers
from app.services.webhooks.drivers import get_driver
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

PENDING_EVENTS_KEY = "pending_webhook_events"

QueuedEvent = Tuple[WebhookEvent, Dict[str, Any]]


def extract_company_id(payload: Dict[str, Any]) -> Optional[uuid.UUID]:
    raw = (payload.get("company") or {}).get("id") or payload.get("company_id")
    if raw is None:
        return None
    try:
        return raw if isinstance(raw, uuid.UUID) else uuid.UUID(str(raw))
    except ValueError:
        logger.warning("Ignoring malformed company id in webhook payload: %r", raw)
        return None


class WebhookDispatcher:
    """Fan-out of events to subscribed webhooks."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    async def find_subscribers(
        self,
        db: AsyncSession,
        event: WebhookEvent,
        company_id: Optional[uuid.UUID],
    ) -> List[Webhook]:
        query = select(Webhook)
        if company_id is not None:
            query = query.where(Webhook.company_id == company_id)
        result = await db.execute(query)
        # events is a JSON list; filtering in Python works on every backend
        return [w for w in result.scalars().all() if event.value in (w.events or [])]

    async def dispatch(
        self,
        db: AsyncSession,
        event: WebhookEvent,
        payload: Dict[str, Any],
    ) -> int:
        """
        Send `event` to its subscribers. Returns the number of successful
        deliveries. Per-webhook failures are logged, never raised.
        """
        event = WebhookEvent(event)
        company_id = extract_company_id(payload)
        webhooks = await self.find_subscribers(db, event, company_id)
        if not webhooks:
            logger.debug("No webhooks subscribed to %s", event.value)
            return 0

        body = {"event": event.value, "timestamp": utcnow().isoformat(), **payload}
        delivered = 0
        async with httpx.AsyncClient(timeout=settings.webhook_timeout) as client:
            for webhook in webhooks:
                try:
                    await self.deliver(client, webhook, event, body)
                    delivered += 1
                except Exception as e:
                    logger.warning(
                        "Webhook %s (%s) failed for %s: %s",
                        webhook.id,
                        webhook.type.value if webhook.type else "?",
                        event.value,
                        str(e),
                    )

        logger.info("Dispatched %s to %d/%d webhooks", event.value, delivered, len(webhooks))
        return delivered

    async def safe_dispatch(
        self,
        db: AsyncSession,
        event: WebhookEvent,
        payload: Dict[str, Any],
    ) -> None:
        """
        Queue `event` for delivery once `db` commits. Never raises.

        The payload is encoded now, while the instances it was built from
        are still loaded.
        """
        try:
            queued = (WebhookEvent(event), jsonable_encoder(payload))
            db.sync_session.info.setdefault(PENDING_EVENTS_KEY, []).append(queued)
        except Exception as e:
            logger.error("Webhook dispatch for %s failed: %s", event, str(e), exc_info=True)

    def schedule(self, events: List[QueuedEvent]) -> Optional[asyncio.Task]:
        """Deliver `events` in a background task; kept referenced until done."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No event loop; dropping %d webhook event(s)", len(events))
            return None
        task = loop.create_task(self.deliver_pending(events))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def deliver_pending(self, events: List[QueuedEvent]) -> None:
        async with async_session_factory() as session:
            for event, payload in events:
                try:
                    await self.dispatch(session, event, payload)
                except Exception as e:
                    logger.error("Webhook dispatch for %s failed: %s", event.value, str(e), exc_info=True)

    async def drain(self) -> None:
        """Wait for deliveries still in flight (shutdown)."""
        if self._tasks:
            logger.info("Waiting for %d webhook delivery task(s)", len(self._tasks))
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def deliver(
        self,
        client: httpx.AsyncClient,
        webhook: Webhook,
        event: WebhookEvent,
        payload: Dict[str, Any],
    ) -> None:
        """
        Build and POST one webhook request.

        Raises:
            CircuitBreakerOpenError: the host failed too often recently
            ExternalServiceError: every retry failed
        """
        breaker = circuit_breakers.for_url(webhook.url)
        breaker.can_execute()

        driver = get_driver(webhook.type)
        body = driver.build_body(event.value, payload)
        raw = json.dumps(jsonable_encoder(body)).encode("utf-8")
        headers = driver.build_headers(raw, webhook.secret)
        rid = request_id_var.get("")
        if rid:
            headers["X-Request-ID"] = rid

        try:
            await self._post_with_retry(client, webhook.url, raw, headers)
        except httpx.HTTPError as e:
            breaker.record_failure()
            raise ExternalServiceError(
                message=f"Webhook delivery failed: {e}",
                service="webhook",
                context={"webhook_id": str(webhook.id), "event": event.value},
            ) from e
        breaker.record_success()

    @retry(
        retry=retry_if_exception_type(httpx.HTTPError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _post_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        raw: bytes,
        headers: Dict[str, str],
    ) -> httpx.Response:
        response = await client.post(url, content=raw, headers=headers)
        response.raise_for_status()
        return response


# ── Singleton Instance ────────────────────────────────────────────────────
webhook_dispatcher = WebhookDispatcher()


# ── Session Hooks ─────────────────────────────────────────────────────────

def _deliver_after_commit(session: Session) -> None:
    events = session.info.pop(PENDING_EVENTS_KEY, None)
    if events:
        webhook_dispatcher.schedule(events)


def _drop_after_rollback(session: Session, previous_transaction) -> None:
    if previous_transaction.parent is None:
        session.info.pop(PENDING_EVENTS_KEY, None)


def register_webhook_hooks() -> None:
    """Install the post-commit delivery hooks once per process."""
    if not sa_event.contains(Session, "after_commit", _deliver_after_commit):
        sa_event.listen(Session, "after_commit", _deliver_after_commit)
    if not sa_event.contains(Session, "after_soft_rollback", _drop_after_rollback):
        sa_event.listen(Session, "after_soft_rollback", _drop_after_rollback)
