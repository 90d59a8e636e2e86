"""
Invoicerr Backend — Background Scheduler
==========================================

What:  In-process loop that generates due recurring invoices, flags
       overdue invoices and purges expired sessions.
How:   Started as an asyncio task from the application lifespan and
       cancelled on shutdown. Every tick uses its own session and commits
       on its own; a failing tick is logged and the loop keeps going.
       RECURRING_INTERVAL_SECONDS=0 disables the loop (run one instance with
       it enabled when scaling out). Super admins can also trigger a run
       through POST /api/admin/recurring-invoices/run.
"""

import asyncio
import logging
from typing import Dict, Optional

from app.config import settings
from app.database import async_session_factory
from app.services.auth_service import auth_service
from app.services.invoice_service import invoice_service
from app.services.recurring_invoice_service import recurring_invoice_service
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


async def run_scheduled_jobs() -> Dict[str, int]:
    now = utcnow()
    async with async_session_factory() as session:
        try:
            generated = await recurring_invoice_service.generate_due_invoices(session, now)
            overdue = await invoice_service.mark_overdue_invoices(session, now)
            sessions = await auth_service.cleanup_expired_sessions(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return {"generated": generated, "overdue": overdue, "sessions": sessions}


async def scheduler_loop(interval: Optional[float] = None) -> None:
    interval = settings.recurring_interval_seconds if interval is None else interval
    logger.info("Scheduler started (every %ss)", interval)
    while True:
        try:
            outcome = await run_scheduled_jobs()
            if outcome["generated"] or outcome["overdue"]:
                logger.info(
                    "Scheduler run: %d invoices generated, %d marked overdue",
                    outcome["generated"],
                    outcome["overdue"],
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Scheduler run failed: %s", str(e), exc_info=True)
        await asyncio.sleep(interval)


def start_scheduler() -> Optional[asyncio.Task]:
    if settings.recurring_interval_seconds <= 0:
        logger.info("Scheduler disabled (RECURRING_INTERVAL_SECONDS=0)")
        return None
    return asyncio.create_task(scheduler_loop(), name="invoicerr-scheduler")


async def stop_scheduler(task: Optional[asyncio.Task]) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("Scheduler stopped")
