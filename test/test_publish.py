"""
Tests for the Publish Coordinator

Channels are scripted FakeChannels and sleeps are recorded instead of
awaited, so retry schedules can be asserted exactly.
"""

import asyncio

import pytest
from sqlalchemy import select

from app.exceptions import (
    AccessDeniedError,
    DraftNotFoundError,
    NotApprovedError,
    PermanentDeliveryError,
    TransientDeliveryError,
    ValidationError,
)
from app.models.content_draft import ContentDraft, DraftStatus
from app.models.delivery import DeliveryRecord, DeliveryStatus, PublishChannel
from app.services.channels import ChannelRegistry
from app.services.publish_service import PublishCoordinator
from app.utils.retry import RetryPolicy
from utils.mocks import FakeChannel, receipt

POLICY = RetryPolicy(max_attempts=3, base_delay=0.5, multiplier=2.0, max_delay=8.0)


def coordinator(db, context, *channels, sleep, notifier=None, policy=POLICY, publish_canceller=None):
    registry = ChannelRegistry({channel.name: channel for channel in channels})
    return PublishCoordinator(
        db,
        context,
        registry=registry,
        retry_policy=policy,
        notifier=notifier,
        sleep=sleep,
        publish_canceller=publish_canceller,
    )


async def records_for(db, draft_id):
    rows = await db.execute(
        select(DeliveryRecord).where(DeliveryRecord.draft_id == draft_id).order_by(DeliveryRecord.id)
    )
    return rows.scalars().all()


async def status_of(db, draft_id):
    return (await db.get(ContentDraft, draft_id, populate_existing=True)).status


class TestSuccessfulPublish:
    async def test_first_attempt_success(self, db, contexts, driver, linkedin_connection, sleep, notifier):
        draft = await driver.draft(DraftStatus.APPROVED, body="Launch day is here")
        linkedin = FakeChannel("linkedin", [receipt("urn:li:share:42")])

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep, notifier=notifier).publish(
            draft.id, ["linkedin"]
        )

        assert len(results) == 1
        assert results[0].succeeded
        assert results[0].attempts == 1
        assert results[0].external_id == "urn:li:share:42"
        assert sleep.delays == []

        credentials, text = linkedin.calls[0]
        assert credentials.access_token == "acme-token"
        assert text == "Launch day is here"

        assert await status_of(db, draft.id) == DraftStatus.PUBLISHED
        records = await records_for(db, draft.id)
        assert [(r.channel, r.status, r.attempt) for r in records] == [
            (PublishChannel.LINKEDIN, DeliveryStatus.SUCCESS, 1)
        ]
        assert records[0].external_url == "https://www.linkedin.com/feed/update/urn:li:share:42"

    async def test_transient_failure_then_success(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel(
            "linkedin", [TransientDeliveryError("rate limited", status_code=429), receipt("urn:li:share:7")]
        )

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(draft.id, ["linkedin"])

        assert results[0].succeeded
        assert results[0].attempts == 2
        assert sleep.delays == [0.5]
        records = await records_for(db, draft.id)
        assert [(r.status, r.attempt, r.status_code) for r in records] == [
            (DeliveryStatus.FAILED, 1, 429),
            (DeliveryStatus.SUCCESS, 2, None),
        ]
        assert await status_of(db, draft.id) == DraftStatus.PUBLISHED

    async def test_default_channels_come_from_settings(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(draft.id)

        assert [r.channel for r in results] == ["linkedin"]

    async def test_duplicate_channels_are_published_once(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(
            draft.id, ["LinkedIn", "linkedin"]
        )

        assert len(results) == 1
        assert len(linkedin.calls) == 1

    async def test_publication_notifies_creator(self, db, contexts, driver, linkedin_connection, sleep, notifier):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])

        await coordinator(db, contexts.member, linkedin, sleep=sleep, notifier=notifier).publish(draft.id)

        assert "draft_published" in notifier.kinds()


class TestRetryBound:
    async def test_transient_failures_stop_after_max_attempts(
        self, db, contexts, driver, linkedin_connection, sleep
    ):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [TransientDeliveryError("service unavailable", status_code=503)])

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(draft.id, ["linkedin"])

        assert len(linkedin.calls) == 3
        assert sleep.delays == [0.5, 1.0]
        assert results[0].status == DeliveryStatus.FAILED
        assert results[0].attempts == 3
        assert results[0].status_code == 503
        assert "service unavailable" in results[0].error

        records = await records_for(db, draft.id)
        assert [r.attempt for r in records] == [1, 2, 3]
        assert all(r.status == DeliveryStatus.FAILED for r in records)
        assert await status_of(db, draft.id) == DraftStatus.APPROVED

    async def test_permanent_failure_is_not_retried(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [PermanentDeliveryError("invalid token", status_code=401)])

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(draft.id, ["linkedin"])

        assert len(linkedin.calls) == 1
        assert sleep.delays == []
        assert results[0].attempts == 1
        assert results[0].status_code == 401
        assert len(await records_for(db, draft.id)) == 1

    async def test_unexpected_client_errors_are_recorded_as_failures(
        self, db, contexts, driver, linkedin_connection, sleep
    ):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [KeyError("id")])

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(draft.id, ["linkedin"])

        assert results[0].status == DeliveryStatus.FAILED
        assert len(linkedin.calls) == 1

    async def test_custom_attempt_budget(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [TransientDeliveryError("timeout")])
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, multiplier=2.0, max_delay=4.0)

        await coordinator(db, contexts.member, linkedin, sleep=sleep, policy=policy).publish(draft.id, ["linkedin"])

        assert len(linkedin.calls) == 5
        assert sleep.delays == [1.0, 2.0, 4.0, 4.0]


class TestPartialSuccess:
    async def test_one_successful_channel_publishes_the_draft(
        self, db, contexts, driver, linkedin_connection, twitter_connection, sleep
    ):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt("urn:li:share:5")])
        twitter = FakeChannel("twitter", [PermanentDeliveryError("duplicate status", status_code=403)])

        results = await coordinator(db, contexts.member, linkedin, twitter, sleep=sleep).publish(
            draft.id, ["linkedin", "twitter"]
        )

        assert [(r.channel, r.succeeded) for r in results] == [("linkedin", True), ("twitter", False)]
        assert len(twitter.calls) == 1
        assert await status_of(db, draft.id) == DraftStatus.PUBLISHED

        records = await records_for(db, draft.id)
        assert len(records) == 2
        assert {(r.channel, r.status) for r in records} == {
            (PublishChannel.LINKEDIN, DeliveryStatus.SUCCESS),
            (PublishChannel.TWITTER, DeliveryStatus.FAILED),
        }

    async def test_missing_credentials_fail_without_calling_channel(
        self, db, contexts, driver, linkedin_connection, sleep
    ):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])
        twitter = FakeChannel("twitter", [receipt("tweet-1")])

        results = await coordinator(db, contexts.member, linkedin, twitter, sleep=sleep).publish(
            draft.id, ["twitter", "linkedin"]
        )

        assert twitter.calls == []
        assert results[0].channel == "twitter"
        assert results[0].attempts == 0
        assert results[1].succeeded

        twitter_records = [r for r in await records_for(db, draft.id) if r.channel == PublishChannel.TWITTER]
        assert [(r.status, r.attempt) for r in twitter_records] == [(DeliveryStatus.FAILED, 0)]

    async def test_all_channels_failing_leaves_draft_approved(self, db, contexts, driver, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(draft.id, ["linkedin"])

        assert not results[0].succeeded
        assert await status_of(db, draft.id) == DraftStatus.APPROVED


class TestPreconditions:
    @pytest.mark.parametrize(
        "status",
        [DraftStatus.DRAFT, DraftStatus.AWAITING_FEEDBACK, DraftStatus.REJECTED, DraftStatus.PUBLISHED],
    )
    async def test_only_approved_drafts_are_published(self, db, contexts, driver, linkedin_connection, sleep, status):
        draft = await driver.draft(status)
        linkedin = FakeChannel("linkedin", [receipt()])

        with pytest.raises(NotApprovedError):
            await coordinator(db, contexts.admin, linkedin, sleep=sleep).publish(draft.id, ["linkedin"])

        assert linkedin.calls == []
        assert await records_for(db, draft.id) == []

    @pytest.mark.parametrize("role", ["client", "viewer"])
    async def test_reviewer_roles_cannot_publish(self, db, contexts, driver, linkedin_connection, sleep, role):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])

        with pytest.raises(AccessDeniedError):
            await coordinator(db, getattr(contexts, role), linkedin, sleep=sleep).publish(draft.id)

        assert linkedin.calls == []

    async def test_other_organization_gets_not_found(self, db, contexts, driver, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])

        with pytest.raises(DraftNotFoundError):
            await coordinator(db, contexts.outsider, linkedin, sleep=sleep).publish(draft.id)

    @pytest.mark.parametrize("channels", [["myspace"], ["facebook"]])
    async def test_unknown_or_unregistered_channel(self, db, contexts, driver, linkedin_connection, sleep, channels):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [receipt()])

        with pytest.raises(ValidationError):
            await coordinator(db, contexts.member, linkedin, sleep=sleep).publish(draft.id, ["linkedin", *channels])

        assert linkedin.calls == []


class TestCancellation:
    async def test_cancel_stops_retries(self, db, contexts, driver, linkedin_connection):
        draft = await driver.draft(DraftStatus.APPROVED)
        cancel = asyncio.Event()
        linkedin = FakeChannel("linkedin", [TransientDeliveryError("busy", status_code=503)])

        async def cancelling_sleep(delay):
            cancel.set()

        results = await coordinator(db, contexts.member, linkedin, sleep=cancelling_sleep).publish(
            draft.id, ["linkedin"], cancel_event=cancel
        )

        assert len(linkedin.calls) == 1
        assert results[0].attempts == 1
        assert len(await records_for(db, draft.id)) == 1

    async def test_cancel_during_later_backoff_keeps_last_error(self, db, contexts, driver, linkedin_connection):
        draft = await driver.draft(DraftStatus.APPROVED)
        cancel = asyncio.Event()
        linkedin = FakeChannel(
            "linkedin",
            [TransientDeliveryError("busy", status_code=503), TransientDeliveryError("still busy", status_code=502)],
        )
        delays = []

        async def sleep_then_cancel_on_second(delay):
            delays.append(delay)
            if len(delays) == 2:
                cancel.set()

        results = await coordinator(db, contexts.member, linkedin, sleep=sleep_then_cancel_on_second).publish(
            draft.id, ["linkedin"], cancel_event=cancel
        )

        assert len(linkedin.calls) == 2
        assert delays == [0.5, 1.0]
        assert results[0].status == DeliveryStatus.FAILED
        assert results[0].attempts == 2
        assert results[0].status_code == 502
        assert "still busy" in results[0].error
        assert len(await records_for(db, draft.id)) == 2
        assert await status_of(db, draft.id) == DraftStatus.APPROVED

    async def test_cancel_skips_remaining_channels(
        self, db, contexts, driver, linkedin_connection, twitter_connection, sleep
    ):
        draft = await driver.draft(DraftStatus.APPROVED)
        cancel = asyncio.Event()
        cancel.set()
        linkedin = FakeChannel("linkedin", [receipt()])
        twitter = FakeChannel("twitter", [receipt("tweet-1")])

        results = await coordinator(db, contexts.member, linkedin, twitter, sleep=sleep).publish(
            draft.id, ["linkedin", "twitter"], cancel_event=cancel
        )

        assert linkedin.calls == [] and twitter.calls == []
        assert [r.error for r in results] == ["Cancelled", "Cancelled"]
        assert await records_for(db, draft.id) == []
        assert await status_of(db, draft.id) == DraftStatus.APPROVED


class TestListDeliveries:
    async def test_lists_attempts_in_order(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        linkedin = FakeChannel("linkedin", [TransientDeliveryError("busy"), receipt()])
        publisher = coordinator(db, contexts.member, linkedin, sleep=sleep)
        await publisher.publish(draft.id, ["linkedin"])

        deliveries = await publisher.list_deliveries(draft.id)

        assert [(d.attempt, d.status) for d in deliveries] == [
            (1, DeliveryStatus.FAILED),
            (2, DeliveryStatus.SUCCESS),
        ]

    async def test_scoped_to_organization(self, db, contexts, driver, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        outsider = coordinator(db, contexts.outsider, FakeChannel("linkedin", [receipt()]), sleep=sleep)

        with pytest.raises(DraftNotFoundError):
            await outsider.list_deliveries(draft.id)


class TestScheduledJobCleanup:
    async def test_manual_publish_drops_pending_job(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        cancelled = []
        linkedin = FakeChannel("linkedin", [receipt()])

        await coordinator(
            db, contexts.member, linkedin, sleep=sleep, publish_canceller=lambda draft_id: cancelled.append(draft_id)
        ).publish(draft.id, ["linkedin"])

        assert cancelled == [draft.id]

    async def test_failed_publish_keeps_pending_job(self, db, contexts, driver, linkedin_connection, sleep):
        draft = await driver.draft(DraftStatus.APPROVED)
        cancelled = []
        linkedin = FakeChannel("linkedin", [PermanentDeliveryError("bad token", status_code=401)])

        await coordinator(
            db, contexts.member, linkedin, sleep=sleep, publish_canceller=lambda draft_id: cancelled.append(draft_id)
        ).publish(draft.id, ["linkedin"])

        assert cancelled == []
