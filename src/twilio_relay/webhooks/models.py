"""
Pydantic models for Twilio webhook relaying.
Inbound messages, the payload forwarded to the main app, and health status.
"""

import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Empty TwiML document: tells Twilio the message was received, send no reply.
TWIML_EMPTY_RESPONSE = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'
TWIML_MEDIA_TYPE = "text/xml"

# Canonical index spellings only: MediaUrl0, MediaUrl12, never MediaUrl01.
MEDIA_URL_FIELD = re.compile(r"^MediaUrl(0|[1-9]\d*)$")


def utc_timestamp(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = moment or datetime.now(timezone.utc)
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def parse_media_count(value: Any) -> int:
    """
    Parse Twilio's NumMedia field.

    Integral numbers are accepted in any spelling (``2``, ``"2"``, ``"2.0"``).
    Absent, non-numeric, fractional and negative values all count as zero.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(str(value).strip())
    except ValueError:
        return 0
    # False for nan and inf too
    if not number.is_integer():
        return 0
    return max(int(number), 0)


def extract_media_urls(data: Mapping[str, Any], count: int) -> list[str]:
    """
    Collect MediaUrl{i} values for 0 <= i < count in ascending index order.

    Missing and falsy entries are skipped, so the result may be shorter
    than ``count``.
    """
    indexed: list[tuple[int, str]] = []
    for key, value in data.items():
        match = MEDIA_URL_FIELD.match(str(key))
        if not match or not value:
            continue
        index = int(match.group(1))
        if index < count:
            indexed.append((index, str(value)))

    return [url for _, url in sorted(indexed)]


class InboundMessage(BaseModel):
    """A single Twilio messaging webhook callback."""

    model_config = ConfigDict(frozen=True)

    sender: str | None = Field(None, description="From address")
    recipient: str | None = Field(None, description="To address")
    body: str = Field(default="", description="Message text, may be empty")
    message_id: str | None = Field(None, description="Twilio MessageSid")
    media_count: int = Field(default=0, ge=0, description="Declared NumMedia")
    media_urls: list[str] = Field(
        default_factory=list, description="Present MediaUrl values in index order"
    )

    @classmethod
    def from_webhook_data(cls, data: Mapping[str, Any]) -> "InboundMessage":
        """
        Create a message from raw webhook fields.

        Args:
            data: Form or JSON fields as sent by Twilio

        Returns:
            InboundMessage instance

        Raises:
            ValueError: If data is not a mapping
        """
        if not isinstance(data, Mapping):
            raise ValueError("Webhook data must be a mapping of fields")

        media_count = parse_media_count(data.get("NumMedia", "0"))
        body = data.get("Body")

        return cls(
            sender=_optional_str(data.get("From")),
            recipient=_optional_str(data.get("To")),
            body="" if body is None else str(body),
            message_id=_optional_str(data.get("MessageSid")),
            media_count=media_count,
            media_urls=extract_media_urls(data, media_count),
        )


class ForwardPayload(BaseModel):
    """Normalized event sent to the main application."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: str | None = Field(None, alias="from")
    recipient: str | None = Field(None, alias="to")
    body: str = Field(default="")
    media_urls: list[str] = Field(default_factory=list, alias="mediaUrls")
    message_id: str | None = Field(None, alias="messageId")
    received_at: str = Field(..., alias="receivedAt")

    @classmethod
    def from_message(
        cls, message: InboundMessage, received_at: datetime | None = None
    ) -> "ForwardPayload":
        """Project an inbound message; the receipt time defaults to now."""
        return cls(
            sender=message.sender,
            recipient=message.recipient,
            body=message.body,
            media_urls=list(message.media_urls),
            message_id=message.message_id,
            received_at=utc_timestamp(received_at),
        )

    def to_wire(self) -> dict[str, Any]:
        """JSON body for the forward call; absent addresses and ids are omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class HealthStatus(BaseModel):
    """Liveness report."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(default="healthy", description="Overall health status")
    timestamp: str = Field(default_factory=utc_timestamp)
    main_app_url: str | None = Field(None, alias="mainAppUrl")


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)
