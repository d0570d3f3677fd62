"""Normalize message metadata and build the properties+headers envelope."""

import json
from datetime import datetime, timezone

from amqp_dump.errors import SerializationError
from amqp_dump.message_model_dto import DumpEnvelope, Message, to_json_value

PROPERTY_FIELDS = (
    "app_id",
    "content_encoding",
    "content_type",
    "correlation_id",
    "delivery_mode",
    "expiration",
    "message_id",
    "priority",
    "reply_to",
    "type",
    "user_id",
    "exchange",
    "routing_key",
)


def format_timestamp(value: int | datetime) -> str:
    """Render an epoch timestamp or datetime as e.g. '2024-01-02 03:04:05 +0000 UTC'.

    Timestamps outside the range datetime can represent are rendered as the
    raw number of seconds followed by ' UTC'.
    """
    try:
        if isinstance(value, datetime):
            moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
            moment = moment.astimezone(timezone.utc)
        else:
            moment = datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return f"{value} UTC"
    return moment.strftime("%Y-%m-%d %H:%M:%S %z %Z")


def normalize(message: Message) -> dict:
    """Return the message's metadata, leaving out fields that are empty.

    The timestamp is only included when it is set and non-zero.
    """
    props = {}
    for name in PROPERTY_FIELDS:
        value = getattr(message, name)
        if value is None or value == "":
            continue
        props[name] = value

    if message.timestamp:
        props["timestamp"] = format_timestamp(message.timestamp)

    return props


def build_envelope(message: Message) -> DumpEnvelope:
    """Wrap the normalized properties and the raw headers of a message."""
    return DumpEnvelope(properties=normalize(message), headers=message.headers)


def envelope_to_json(envelope: DumpEnvelope) -> str:
    """Serialize an envelope as sorted, two-space indented JSON."""
    try:
        data = {
            "headers": to_json_value(envelope.headers),
            "properties": to_json_value(envelope.properties),
        }
        return json.dumps(data, indent=2, sort_keys=True, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Serialize properties and headers: {e}") from e
