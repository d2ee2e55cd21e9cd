"""
Tests for publish channels and channel credentials

The LinkedIn client runs against httpx.MockTransport; no network access.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.exceptions import PermanentDeliveryError, TransientDeliveryError
from app.models.channel_connection import ChannelConnection
from app.models.delivery import PublishChannel
from app.services.channels import (
    ChannelCredentials,
    ChannelRegistry,
    CredentialProvider,
    LinkedInChannel,
    get_channel_registry,
)

CREDENTIALS = ChannelCredentials(access_token="token-123", account_urn="urn:li:organization:42")


def linkedin_with(handler) -> LinkedInChannel:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LinkedInChannel(client=client, base_url="https://api.linkedin.test", timeout=5, max_length=50)


class TestLinkedInChannel:
    async def test_successful_post(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["restli"] = request.headers["X-Restli-Protocol-Version"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, headers={"x-restli-id": "urn:li:share:777"}, json={})

        receipt = await linkedin_with(handler).deliver(CREDENTIALS, "Hello LinkedIn")

        assert receipt.external_id == "urn:li:share:777"
        assert receipt.url == "https://www.linkedin.com/feed/update/urn:li:share:777"
        assert seen["url"] == "https://api.linkedin.test/v2/ugcPosts"
        assert seen["auth"] == "Bearer token-123"
        assert seen["restli"] == "2.0.0"
        assert seen["body"]["author"] == "urn:li:organization:42"
        share = seen["body"]["specificContent"]["com.linkedin.ugc.ShareContent"]
        assert share["shareCommentary"]["text"] == "Hello LinkedIn"
        assert share["shareMediaCategory"] == "NONE"

    async def test_id_from_json_body(self):
        channel = linkedin_with(lambda request: httpx.Response(201, json={"id": "urn:li:share:9"}))
        receipt = await channel.deliver(CREDENTIALS, "Body id")
        assert receipt.external_id == "urn:li:share:9"

    @pytest.mark.parametrize("status_code", [429, 500, 501, 502, 503, 504, 505, 507, 599])
    async def test_rate_limit_and_server_errors_are_transient(self, status_code):
        channel = linkedin_with(lambda request: httpx.Response(status_code, text="try later"))
        with pytest.raises(TransientDeliveryError) as exc_info:
            await channel.deliver(CREDENTIALS, "Retry me")
        assert exc_info.value.status_code == status_code

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 408, 409, 422])
    async def test_client_errors_are_permanent(self, status_code):
        channel = linkedin_with(lambda request: httpx.Response(status_code, json={"message": "nope"}))
        with pytest.raises(PermanentDeliveryError) as exc_info:
            await channel.deliver(CREDENTIALS, "Give up")
        assert exc_info.value.status_code == status_code

    async def test_network_errors_are_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientDeliveryError):
            await linkedin_with(handler).deliver(CREDENTIALS, "Offline")

    async def test_timeouts_are_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(TransientDeliveryError):
            await linkedin_with(handler).deliver(CREDENTIALS, "Slow")

    async def test_empty_post_is_permanent(self):
        channel = linkedin_with(lambda request: httpx.Response(201, json={"id": "never"}))
        with pytest.raises(PermanentDeliveryError):
            await channel.deliver(CREDENTIALS, "   ")

    def test_prepare_text_truncates_to_limit(self):
        channel = LinkedInChannel(max_length=20)
        text = channel.prepare_text("A fairly long introduction that keeps going")
        assert len(text) <= 20
        assert text.endswith("…")
        assert channel.prepare_text("  Short  ") == "Short"


class TestChannelRegistry:
    def test_default_registry_has_linkedin(self):
        registry = get_channel_registry()
        assert registry.names() == ["linkedin"]
        assert isinstance(registry.get("linkedin"), LinkedInChannel)
        assert registry.get("twitter") is None

    def test_register(self):
        registry = ChannelRegistry()
        channel = LinkedInChannel()
        registry.register(channel)
        assert registry.get(PublishChannel.LINKEDIN.value) is channel


class TestCredentialProvider:
    async def test_returns_active_connection(self, db, contexts, linkedin_connection):
        credentials = await CredentialProvider(db, contexts.member).get("linkedin")
        assert credentials == ChannelCredentials(access_token="acme-token", account_urn="urn:li:organization:1001")

    async def test_other_organizations_do_not_see_it(self, db, contexts, linkedin_connection):
        assert await CredentialProvider(db, contexts.outsider).get("linkedin") is None

    async def test_expired_and_inactive_connections_are_skipped(self, db, contexts, tenants):
        db.add_all(
            [
                ChannelConnection(
                    organization_id=tenants.acme.id,
                    channel=PublishChannel.LINKEDIN,
                    access_token="expired",
                    account_urn="urn:li:organization:1",
                    expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
                ),
                ChannelConnection(
                    organization_id=tenants.acme.id,
                    channel=PublishChannel.LINKEDIN,
                    access_token="revoked",
                    account_urn="urn:li:organization:1",
                    is_active=False,
                ),
            ]
        )
        await db.commit()
        assert await CredentialProvider(db, contexts.member).get("linkedin") is None

    async def test_unknown_channel(self, db, contexts):
        assert await CredentialProvider(db, contexts.member).get("myspace") is None
