"""
Slack adapter over the Web API.

The Web API reports most failures as HTTP 200 with {"ok": false, "error": ...};
both that and HTTP/transport failures are raised as ServiceError(service="slack").
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import httpx

from idwo.errors import ServiceError
from idwo.utils.logging import get_logger

logger = get_logger(__name__)

SLACK_API_URL = "https://slack.com/api"
CHANNEL_PAGE_SIZE = 1000
MAX_CHANNEL_PAGES = 10

# Slack errors that will not succeed on retry
PERMANENT_ERRORS = frozenset(
    {"channel_not_found", "not_in_channel", "invalid_auth", "not_authed", "account_inactive", "missing_scope"}
)


@dataclass
class SlackChannel:
    id: str
    name: str
    is_private: bool = False
    is_member: bool = False
    member_count: Optional[int] = None
    topic: Optional[str] = None
    purpose: Optional[str] = None


@dataclass
class NotificationField:
    title: str
    value: str
    short: bool = True


@dataclass
class Notification:
    """A titled, coloured message with optional key/value fields."""

    title: str
    message: str
    color: str = "good"
    fields: list[NotificationField] = field(default_factory=list)

    def to_attachment(self) -> dict[str, Any]:
        return {
            "color": self.color,
            "title": self.title,
            "text": self.message,
            "fields": [asdict(f) for f in self.fields],
        }

    def to_blocks(self) -> list[dict[str, Any]]:
        blocks = [
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*{self.title}*\n{self.message}"}}
        ]
        if self.fields:
            blocks.append(
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": "\n".join(f"*{f.title}*: {f.value}" for f in self.fields),
                    },
                }
            )
        return blocks


@dataclass
class SlackMessage:
    ts: str
    channel: str
    text: str


class SlackClient:
    """
    Async Slack Web API client authenticated with a bot token.

    Args:
        token: Bot token (xoxb-...).
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        token: str,
        timeout: float = 10.0,
        base_url: str = SLACK_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not token:
            raise ValueError("Slack bot token is required")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=utf-8",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SlackClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(
        self,
        method: str,
        operation: str,
        *,
        params: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        try:
            if payload is not None:
                response = await self._client.post(f"/{method}", json=payload)
            else:
                response = await self._client.get(f"/{method}", params=params)
        except httpx.HTTPError as e:
            logger.error("slack_request_failed", method=method, error=str(e))
            raise ServiceError(f"Failed to {operation}: {e}", service="slack", retryable=True) from e

        if response.is_error:
            logger.error("slack_http_error", method=method, status_code=response.status_code)
            raise ServiceError(
                f"Failed to {operation}: Slack returned {response.status_code}",
                service="slack",
                status_code=response.status_code,
                retryable=response.status_code >= 500 or response.status_code == 429,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error("slack_invalid_response", method=method, body=response.text[:200])
            raise ServiceError(
                f"Failed to {operation}: Slack returned a non-JSON response",
                service="slack",
                status_code=response.status_code,
                retryable=True,
            ) from e

        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            logger.error("slack_api_error", method=method, error=error)
            raise ServiceError(
                f"Failed to {operation}: Slack API error: {error}",
                service="slack",
                status_code=response.status_code,
                retryable=error not in PERMANENT_ERRORS,
            )
        return data

    async def find_channel_by_name(self, channel_name: str) -> Optional[SlackChannel]:
        """Resolve a channel by name. A leading '#' is ignored. Returns None if absent."""
        wanted = channel_name.lstrip("#")
        cursor: Optional[str] = None

        for _ in range(MAX_CHANNEL_PAGES):
            params: dict[str, Any] = {
                "types": "public_channel,private_channel",
                "limit": CHANNEL_PAGE_SIZE,
                "exclude_archived": "true",
            }
            if cursor:
                params["cursor"] = cursor
            data = await self._call("conversations.list", "list Slack channels", params=params)

            for ch in data.get("channels", []):
                if ch.get("name") == wanted:
                    return SlackChannel(
                        id=ch["id"],
                        name=ch["name"],
                        is_private=ch.get("is_private", False),
                        is_member=ch.get("is_member", False),
                        member_count=ch.get("num_members"),
                        topic=(ch.get("topic") or {}).get("value"),
                        purpose=(ch.get("purpose") or {}).get("value"),
                    )

            cursor = (data.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break

        logger.info("slack_channel_not_found", channel=wanted)
        return None

    async def send_notification(self, channel: str, notification: Notification) -> SlackMessage:
        """Post a notification as blocks plus a coloured attachment."""
        text = f"{notification.title}: {notification.message}"
        data = await self._call(
            "chat.postMessage",
            f"send Slack notification to {channel}",
            payload={
                "channel": channel,
                "text": text,
                "blocks": notification.to_blocks(),
                "attachments": [notification.to_attachment()],
            },
        )
        logger.info("slack_notification_sent", channel=channel, ts=data.get("ts"))
        return SlackMessage(ts=data.get("ts", ""), channel=data.get("channel", channel), text=text)
