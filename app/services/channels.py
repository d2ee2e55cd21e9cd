"""
Publish Channels

Clients for the external channels content is published to, plus the
lookup of each organization's channel credentials.

A channel client performs exactly one delivery per call and classifies
failures as transient (worth retrying) or permanent. Retrying is the
publish coordinator's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import PermanentDeliveryError, TransientDeliveryError
from app.models.channel_connection import ChannelConnection
from app.models.delivery import PublishChannel
from app.services.repository import ScopedRepository
from app.services.tenancy import OrganizationContext

logger = logging.getLogger(__name__)


def is_retryable_status(status_code: int) -> bool:
    """Rate limiting and any server error; every other 4xx is final."""
    return status_code == 429 or 500 <= status_code <= 599


@dataclass(frozen=True)
class ChannelCredentials:
    access_token: str
    account_urn: str


@dataclass(frozen=True)
class DeliveryReceipt:
    """What a channel returns for a successful delivery."""

    external_id: str | None
    url: str | None = None


class ChannelClient(Protocol):
    name: str

    def prepare_text(self, body: str) -> str: ...

    async def deliver(self, credentials: ChannelCredentials, text: str) -> DeliveryReceipt: ...


# ============== LinkedIn ==============


class LinkedInChannel:
    """Posts a draft's body as a LinkedIn UGC share."""

    name = PublishChannel.LINKEDIN.value

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_length: int | None = None,
    ):
        self._client = client
        self.base_url = (base_url or settings.linkedin_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_length = max_length if max_length is not None else settings.linkedin_max_post_length

    def prepare_text(self, body: str) -> str:
        """Fit a draft body into LinkedIn's post length limit."""
        body = body.strip()
        if len(body) <= self.max_length:
            return body
        return body[: self.max_length - 1].rstrip() + "…"

    def build_payload(self, author_urn: str, text: str, visibility: str = "PUBLIC") -> dict:
        return {
            "author": author_urn,
            "lifecycleState": "PUBLISHED",
            "specificContent": {
                "com.linkedin.ugc.ShareContent": {
                    "shareCommentary": {"text": text},
                    "shareMediaCategory": "NONE",
                }
            },
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": visibility},
        }

    async def deliver(self, credentials: ChannelCredentials, text: str) -> DeliveryReceipt:
        if not text or not text.strip():
            raise PermanentDeliveryError("Cannot publish an empty post")

        headers = {
            "Authorization": f"Bearer {credentials.access_token}",
            "Content-Type": "application/json",
            "X-Restli-Protocol-Version": "2.0.0",
        }
        payload = self.build_payload(credentials.account_urn, text)

        try:
            if self._client is not None:
                response = await self._client.post(
                    f"{self.base_url}/v2/ugcPosts", json=payload, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        f"{self.base_url}/v2/ugcPosts", json=payload, headers=headers, timeout=self.timeout
                    )
        except httpx.TimeoutException as e:
            raise TransientDeliveryError("LinkedIn request timed out") from e
        except httpx.RequestError as e:
            raise TransientDeliveryError(f"LinkedIn request error: {e}") from e

        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: httpx.Response) -> DeliveryReceipt:
        status_code = response.status_code
        if 200 <= status_code < 300:
            external_id = response.headers.get("x-restli-id")
            if not external_id:
                try:
                    external_id = response.json().get("id")
                except ValueError:
                    external_id = None
            url = f"https://www.linkedin.com/feed/update/{external_id}" if external_id else None
            return DeliveryReceipt(external_id=external_id, url=url)

        message = f"LinkedIn returned HTTP {status_code}: {response.text[:500]}"
        if is_retryable_status(status_code):
            raise TransientDeliveryError(message, status_code=status_code)
        raise PermanentDeliveryError(message, status_code=status_code)


# ============== Registry ==============


class ChannelRegistry:
    """Maps channel names to clients."""

    def __init__(self, clients: dict[str, ChannelClient] | None = None):
        self._clients: dict[str, ChannelClient] = dict(clients or {})

    def register(self, client: ChannelClient) -> None:
        self._clients[client.name] = client

    def get(self, name: str) -> ChannelClient | None:
        return self._clients.get(name)

    def names(self) -> list[str]:
        return sorted(self._clients)

    @classmethod
    def default(cls) -> ChannelRegistry:
        return cls({PublishChannel.LINKEDIN.value: LinkedInChannel()})


def get_channel_registry() -> ChannelRegistry:
    """FastAPI dependency for the channel registry."""
    return ChannelRegistry.default()


# ============== Credentials ==============


class CredentialProvider:
    """Reads the organization's active, unexpired connection for a channel."""

    def __init__(self, db: AsyncSession, context: OrganizationContext):
        self.repo = ScopedRepository(db, context)
        self.context = context

    async def get(self, channel: str) -> ChannelCredentials | None:
        try:
            channel_enum = PublishChannel(channel)
        except ValueError:
            return None

        connections = await self.repo.find(
            ChannelConnection,
            ChannelConnection.channel == channel_enum,
            ChannelConnection.is_active.is_(True),
            order_by=ChannelConnection.created_at.desc(),
        )
        now = datetime.now(timezone.utc)
        for connection in connections:
            expires_at = connection.expires_at
            if expires_at is not None and expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at is not None and expires_at <= now:
                logger.info(
                    "Skipping expired %s connection %d for org %d", channel, connection.id, self.context.organization_id
                )
                continue
            return ChannelCredentials(access_token=connection.access_token, account_urn=connection.account_urn)
        return None
