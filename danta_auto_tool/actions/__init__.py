"""Utilities for handling Lark card callback payloads."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import ValidationError

from danta_auto_tool.banners.models import BannerApplication, BannerDecision

BUTTON_TAG = "button"

_REQUIRED_KEYS = ("action", "banner_title", "banner_action", "banner_button", "applicant_email")


@dataclass(frozen=True)
class CardActionContext:
    """Parsed context describing an approve/disapprove click."""

    decision: BannerDecision
    operator_id: str | None = None
    message_id: str | None = None
    chat_id: str | None = None


def _load_value(raw: Any) -> dict[str, Any]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError("Invalid action payload.") from exc
    if not isinstance(raw, dict):
        raise ValueError("Invalid action payload.")
    return raw


def parse_card_action(event: Mapping[str, Any]) -> CardActionContext | None:
    """Parse a ``card.action.trigger`` event body.

    Returns None for interactions other than button clicks.
    """

    action = event.get("action")
    if not isinstance(action, Mapping):
        raise ValueError("Invalid action payload.")
    tag = action.get("tag")
    if not tag:
        raise ValueError("Action tag is empty.")
    if tag != BUTTON_TAG:
        return None

    value = _load_value(action.get("value"))
    for key in _REQUIRED_KEYS:
        if not isinstance(value.get(key), str):
            raise ValueError(f"Invalid action payload: {key} is missing.")
    record_id = value.get("record_id")
    try:
        decision = BannerDecision(
            action=value["action"],
            application=BannerApplication(
                title=value["banner_title"],
                action=value["banner_action"],
                button=value["banner_button"],
                applicant_email=value["applicant_email"],
                record_id=record_id if isinstance(record_id, str) else None,
            ),
        )
    except ValidationError as exc:
        raise ValueError("Invalid action payload.") from exc

    operator = event.get("operator") or {}
    context = event.get("context") or {}
    return CardActionContext(
        decision=decision,
        operator_id=operator.get("open_id") if isinstance(operator, Mapping) else None,
        message_id=context.get("open_message_id") if isinstance(context, Mapping) else None,
        chat_id=context.get("open_chat_id") if isinstance(context, Mapping) else None,
    )
