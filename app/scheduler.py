from datetime import datetime
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from app.config import settings
from app.database import AsyncSessionLocal
from app.exceptions import ContentFlowError
from app.services.channels import ChannelRegistry
from app.services.notification_service import NotificationService
from app.services.publish_service import PublishCoordinator
from app.services.tenancy import Principal, TenancyResolver

scheduler = AsyncIOScheduler()

logger = logging.getLogger(__name__)


def _job_id(draft_id: int) -> str:
    return f"publish_draft_{draft_id}"


async def publish_scheduled_draft(
    draft_id: int,
    organization_id: int,
    scheduled_by: int,
    channels: list[str] | None = None,
    session_factory=AsyncSessionLocal,
    registry: ChannelRegistry | None = None,
):
    """
    Publish a draft at its scheduled time.

    Runs outside any request, so the organization is selected explicitly and
    the job acts as a platform principal recorded under the user who
    scheduled it.
    """
    async with session_factory() as db:
        principal = Principal(user_id=scheduled_by, is_platform_admin=True)
        try:
            context = await TenancyResolver(db).resolve(principal, organization_id)
            coordinator = PublishCoordinator(db, context, registry=registry, notifier=NotificationService())
            results = await coordinator.publish(draft_id, channels)
        except ContentFlowError as e:
            logger.warning("[Scheduler] Draft %d not published: %s", draft_id, e.message)
            return None

    published = [r.channel for r in results if r.succeeded]
    logger.info("[Scheduler] Draft %d processed; published to %s", draft_id, published or "no channel")
    return results


def schedule_draft_publish(
    draft_id: int,
    organization_id: int,
    run_at: datetime,
    scheduled_by: int,
    channels: list[str] | None = None,
):
    job = scheduler.add_job(
        publish_scheduled_draft,
        trigger=DateTrigger(run_date=run_at),
        args=[draft_id, organization_id, scheduled_by, channels],
        id=_job_id(draft_id),
        replace_existing=True,
    )
    logger.info("[Scheduler] Draft %d in org %d scheduled for %s", draft_id, organization_id, run_at)
    return job


def cancel_draft_publish(draft_id: int) -> bool:
    job = scheduler.get_job(_job_id(draft_id))
    if job is None:
        return False
    job.remove()
    logger.info("[Scheduler] Scheduled publish of draft %d cancelled", draft_id)
    return True


def get_publish_scheduler():
    """FastAPI dependency: the scheduling hook for approved drafts, or None when disabled."""
    if not settings.enable_scheduler:
        return None
    return schedule_draft_publish


def get_publish_canceller():
    """FastAPI dependency: drops a pending publish job for a draft, or None when disabled."""
    if not settings.enable_scheduler:
        return None
    return cancel_draft_publish
