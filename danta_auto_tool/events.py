"""Models and helpers for Lark event envelopes (schema 2.0)."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from danta_auto_tool.banners.models import BITABLE_RECORD_ADDED

EVENT_BITABLE_RECORD_CHANGED = "drive.file.bitable_record_changed_v1"
EVENT_CARD_ACTION_TRIGGER = "card.action.trigger"
EVENT_MESSAGE_RECEIVE = "im.message.receive_v1"


class EventHeader(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_id: str | None = None
    event_type: str
    token: str | None = None
    create_time: str | None = None
    app_id: str | None = None
    tenant_key: str | None = None


class EventEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    schema_version: str | None = Field(None, alias="schema")
    header: EventHeader
    event: Dict[str, Any] = Field(default_factory=dict)


def parse_envelope(payload: Mapping[str, Any]) -> EventEnvelope:
    try:
        return EventEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise ValueError("Invalid event envelope.") from exc


def added_record_ids(event: Mapping[str, Any]) -> List[str]:
    """Collect the ids of rows added in a bitable record-changed event."""

    record_ids: List[str] = []
    for action in event.get("action_list") or []:
        if not isinstance(action, Mapping):
            continue
        if action.get("action") != BITABLE_RECORD_ADDED:
            continue
        record_id = action.get("record_id")
        if isinstance(record_id, str) and record_id and record_id not in record_ids:
            record_ids.append(record_id)
    return record_ids


@dataclass(frozen=True)
class IncomingMessage:
    message_id: str
    chat_id: str
    chat_type: str
    text: str | None
    from_app: bool = False


def parse_incoming_message(event: Mapping[str, Any]) -> IncomingMessage:
    """Extract the text of an ``im.message.receive_v1`` event; text is None for non-text messages."""

    message = event.get("message")
    if not isinstance(message, Mapping):
        raise ValueError("Message payload missing.")
    message_id = message.get("message_id")
    chat_id = message.get("chat_id")
    if not isinstance(message_id, str) or not isinstance(chat_id, str):
        raise ValueError("Message identifiers missing.")

    text = None
    if message.get("message_type") == "text":
        try:
            content = json.loads(message.get("content") or "{}")
        except json.JSONDecodeError:
            content = {}
        if isinstance(content, dict) and isinstance(content.get("text"), str):
            text = content["text"]

    sender = event.get("sender") or {}
    return IncomingMessage(
        message_id=message_id,
        chat_id=chat_id,
        chat_type=str(message.get("chat_type") or ""),
        text=text,
        from_app=isinstance(sender, Mapping) and sender.get("sender_type") == "app",
    )
