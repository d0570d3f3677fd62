"""Message data transfer objects.

Defines the shape of a message pulled from the broker (body plus the fixed
AMQP basic properties and delivery info) and the properties+headers envelope
that is persisted next to each body.
"""

import base64
from datetime import datetime
from decimal import Decimal
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

# Values an AMQP field table can carry, as decoded by pika.
HeaderValue = Union[
    None,
    bool,
    int,
    float,
    str,
    bytes,
    Decimal,
    datetime,
    list["HeaderValue"],
    dict[str, "HeaderValue"],
]


def to_json_value(value: HeaderValue) -> Any:
    """Convert a header value to something the json module can encode.

    Bytes become text when they are valid UTF-8 and base64 otherwise, decimals
    become their exact string form and datetimes ISO 8601 text. Raises
    TypeError for anything outside HeaderValue.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(value).decode("ascii")
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_json_value(item) for key, item in value.items()}
    raise TypeError(f"Unsupported header value of type {type(value).__name__}")


class Message(BaseModel):
    """A message fetched from a queue: raw body plus broker-assigned metadata."""

    model_config = ConfigDict(frozen=True)

    body: bytes = Field(b"", description="Raw message payload")
    app_id: str = Field("", description="Creating application id")
    content_encoding: str = Field("", description="MIME content encoding")
    content_type: str = Field("", description="MIME content type")
    correlation_id: str = Field("", description="Application correlation identifier")
    delivery_mode: int | None = Field(None, description="1 transient, 2 persistent")
    expiration: str = Field("", description="Per-message TTL in milliseconds")
    message_id: str = Field("", description="Application message identifier")
    priority: int | None = Field(None, description="Message priority, 0 to 9")
    reply_to: str = Field("", description="Address to reply to")
    type: str = Field("", description="Message type name")
    user_id: str = Field("", description="Creating user id")
    exchange: str = Field("", description="Exchange the message was published to")
    routing_key: str = Field("", description="Routing key the message was published with")
    timestamp: int | datetime | None = Field(None, description="Message timestamp, seconds since the epoch")
    headers: dict[str, Any] | None = Field(None, description="Application headers")

    @classmethod
    def from_delivery(cls, method, properties, body: bytes) -> "Message":
        """Build a Message from the (method, properties, body) triple of basic_get."""
        return cls(
            body=body or b"",
            app_id=properties.app_id or "",
            content_encoding=properties.content_encoding or "",
            content_type=properties.content_type or "",
            correlation_id=properties.correlation_id or "",
            delivery_mode=_as_int(properties.delivery_mode),
            expiration=properties.expiration or "",
            message_id=properties.message_id or "",
            priority=properties.priority,
            reply_to=properties.reply_to or "",
            type=properties.type or "",
            user_id=properties.user_id or "",
            exchange=method.exchange or "",
            routing_key=method.routing_key or "",
            timestamp=properties.timestamp,
            headers=properties.headers,
        )


def _as_int(value) -> int | None:
    # pika may hand back a DeliveryMode enum
    if value is None:
        return None
    return int(getattr(value, "value", value))


class DumpEnvelope(BaseModel):
    """What gets persisted next to a body: normalized properties and raw headers."""

    properties: dict[str, Any] = Field(default_factory=dict, description="Normalized message properties")
    headers: dict[str, Any] | None = Field(None, description="Raw application headers")
