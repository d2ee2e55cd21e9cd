"""
Publish Coordinator

Delivers an approved draft to external channels. Each channel is handled
independently under the injected RetryPolicy; every attempt is appended
as a DeliveryRecord. The draft becomes Published when at least one
channel succeeded.

Delivery is at-least-once: the external call happens before its record
is written, so a crash between the two can leave a live post without a
local record.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    AccessDeniedError,
    DeliveryError,
    DraftNotFoundError,
    NotApprovedError,
    ValidationError,
)
from app.models.content_draft import ContentDraft, DraftStatus
from app.models.delivery import DeliveryRecord, DeliveryStatus, PublishChannel
from app.permissions_config.permissions import PUBLISH_DRAFT
from app.services.channels import ChannelClient, ChannelRegistry, CredentialProvider
from app.services.notification_service import Notifier
from app.services.repository import ScopedRepository
from app.services.tenancy import OrganizationContext
from app.services.workflow_service import PublishCanceller, WorkflowService
from app.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class DeliveryResult:
    """Overall outcome of publishing to one channel."""

    channel: str
    status: DeliveryStatus
    attempts: int
    external_id: str | None = None
    external_url: str | None = None
    error: str | None = None
    status_code: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == DeliveryStatus.SUCCESS


class PublishCoordinator:
    """Pushes approved drafts to external channels with bounded retry."""

    def __init__(
        self,
        db: AsyncSession,
        context: OrganizationContext,
        registry: ChannelRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        credentials: CredentialProvider | None = None,
        notifier: Notifier | None = None,
        sleep: Sleep = asyncio.sleep,
        publish_canceller: PublishCanceller | None = None,
    ):
        self.db = db
        self.context = context
        self.repo = ScopedRepository(db, context)
        self.registry = registry or ChannelRegistry.default()
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.credentials = credentials or CredentialProvider(db, context)
        self.workflow = WorkflowService(db, context, notifier=notifier, publish_canceller=publish_canceller)
        self.sleep = sleep

    async def publish(
        self,
        draft_id: int,
        channels: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[DeliveryResult]:
        """
        Publish a draft to ``channels`` (the configured defaults when empty).

        Raises NotApprovedError, without contacting any channel, when the
        draft is not Approved. Channel failures are returned, not raised.
        """
        if not self.context.has_permission(PUBLISH_DRAFT):
            raise AccessDeniedError(
                "Your role may not publish content",
                details={"role": self.context.role.value, "permission": PUBLISH_DRAFT},
            )

        draft = await self.repo.get(ContentDraft, draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        if draft.status != DraftStatus.APPROVED:
            raise NotApprovedError(draft_id, draft.status.value)

        channel_names = self._normalize_channels(channels)
        body = draft.body

        results: list[DeliveryResult] = []
        for name in channel_names:
            if cancel_event is not None and cancel_event.is_set():
                results.append(
                    DeliveryResult(channel=name, status=DeliveryStatus.FAILED, attempts=0, error="Cancelled")
                )
                continue
            results.append(await self._publish_to_channel(draft_id, name, body, cancel_event))

        succeeded = [r.channel for r in results if r.succeeded]
        if succeeded:
            await self.workflow.mark_published(draft_id, succeeded)
            logger.info(
                "Draft %d published to %s (org %d)", draft_id, ", ".join(succeeded), self.context.organization_id
            )
        else:
            logger.warning(
                "Draft %d was not published; all channels failed (org %d)", draft_id, self.context.organization_id
            )
        return results

    async def list_deliveries(self, draft_id: int) -> list[DeliveryRecord]:
        """Delivery records for a draft, oldest first."""
        draft = await self.repo.get(ContentDraft, draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        return await self.repo.find(
            DeliveryRecord,
            DeliveryRecord.draft_id == draft_id,
            order_by=(DeliveryRecord.created_at.asc(), DeliveryRecord.id.asc()),
        )

    # ============== Private Methods ==============

    def _normalize_channels(self, channels: list[str] | None) -> list[str]:
        requested = channels or settings.default_publish_channels
        names: list[str] = []
        for raw in requested:
            name = str(raw).strip().lower()
            if name in names:
                continue
            if name not in {c.value for c in PublishChannel} or self.registry.get(name) is None:
                raise ValidationError(f"Unsupported publish channel: {raw}", field="channels")
            names.append(name)
        return names

    async def _publish_to_channel(
        self,
        draft_id: int,
        name: str,
        body: str,
        cancel_event: asyncio.Event | None,
    ) -> DeliveryResult:
        client: ChannelClient = self.registry.get(name)

        credentials = await self.credentials.get(name)
        if credentials is None:
            error = f"No active {name} connection for this organization"
            await self._record(draft_id, name, DeliveryStatus.FAILED, attempt=0, error=error)
            logger.warning("Skipping %s for draft %d: %s", name, draft_id, error)
            return DeliveryResult(channel=name, status=DeliveryStatus.FAILED, attempts=0, error=error)

        text = client.prepare_text(body)
        policy = self.retry_policy
        attempt = 0
        last_error: DeliveryError | None = None

        while attempt < policy.max_attempts:
            attempt += 1
            start_time = time.monotonic()
            try:
                receipt = await client.deliver(credentials, text)
            except DeliveryError as e:
                last_error = e
            except Exception as e:
                logger.exception("Unexpected error delivering draft %d to %s", draft_id, name)
                last_error = DeliveryError(f"Unexpected error: {e}")
            else:
                duration_ms = int((time.monotonic() - start_time) * 1000)
                await self._record(
                    draft_id,
                    name,
                    DeliveryStatus.SUCCESS,
                    attempt=attempt,
                    external_id=receipt.external_id,
                    external_url=receipt.url,
                    duration_ms=duration_ms,
                )
                logger.info("Draft %d delivered to %s on attempt %d (id=%s)", draft_id, name, attempt, receipt.external_id)
                return DeliveryResult(
                    channel=name,
                    status=DeliveryStatus.SUCCESS,
                    attempts=attempt,
                    external_id=receipt.external_id,
                    external_url=receipt.url,
                )

            duration_ms = int((time.monotonic() - start_time) * 1000)
            await self._record(
                draft_id,
                name,
                DeliveryStatus.FAILED,
                attempt=attempt,
                error=str(last_error),
                status_code=last_error.status_code,
                duration_ms=duration_ms,
            )

            if not policy.should_retry(last_error, attempt):
                break
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Publish of draft %d to %s cancelled after attempt %d", draft_id, name, attempt)
                break

            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %d to %s failed for draft %d (%s); retrying in %.2fs", attempt, name, draft_id, last_error, delay
            )
            await self.sleep(delay)
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    "Publish of draft %d to %s cancelled during backoff after attempt %d", draft_id, name, attempt
                )
                break

        logger.warning("Delivery of draft %d to %s failed after %d attempt(s): %s", draft_id, name, attempt, last_error)
        return DeliveryResult(
            channel=name,
            status=DeliveryStatus.FAILED,
            attempts=attempt,
            error=str(last_error),
            status_code=last_error.status_code,
        )

    async def _record(
        self,
        draft_id: int,
        channel: str,
        status: DeliveryStatus,
        attempt: int,
        external_id: str | None = None,
        external_url: str | None = None,
        error: str | None = None,
        status_code: int | None = None,
        duration_ms: int | None = None,
    ) -> None:
        """Append one DeliveryRecord and commit it."""
        await asyncio.shield(
            self._write_record(
                draft_id=draft_id,
                channel=PublishChannel(channel),
                status=status,
                attempt=attempt,
                external_id=external_id,
                external_url=external_url,
                error_message=error,
                status_code=status_code,
                duration_ms=duration_ms,
            )
        )

    async def _write_record(self, **data) -> None:
        try:
            self.repo.create(DeliveryRecord, **data)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
