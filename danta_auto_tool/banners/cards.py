"""Lark interactive card builders for banner applications."""

from __future__ import annotations

from typing import Any, Dict, List

from .models import (
    CARD_ACTION_APPROVE,
    CARD_ACTION_DISAPPROVE,
    BannerApplication,
    BannerDecision,
)

CARD_TITLE = "Banner application"
_MISSING_VALUE = "_Not provided_"

_DECISION_STYLE = {
    CARD_ACTION_APPROVE: ("green", "✅ Approved"),
    CARD_ACTION_DISAPPROVE: ("red", "🚫 Disapproved"),
}


def _format_field(label: str, value: str | None) -> str:
    if value is None or value.strip() == "":
        return f"**{label}:** {_MISSING_VALUE}"
    return f"**{label}:** {value}"


def _fields_block(application: BannerApplication) -> Dict[str, Any]:
    lines = [
        ("Title", application.title),
        ("Action", application.action),
        ("Button", application.button),
        ("Applicant", application.applicant_email),
    ]
    return {
        "tag": "div",
        "fields": [
            {"is_short": False, "text": {"tag": "lark_md", "content": _format_field(label, value)}}
            for label, value in lines
        ],
    }


def action_value(application: BannerApplication, action: str) -> Dict[str, str]:
    """Payload carried by a decision button; the card is the only workflow state."""

    value = {
        "action": action,
        "banner_title": application.title,
        "banner_action": application.action,
        "banner_button": application.button,
        "applicant_email": application.applicant_email,
    }
    if application.record_id:
        value["record_id"] = application.record_id
    return value


def _decision_buttons(application: BannerApplication) -> Dict[str, Any]:
    return {
        "tag": "action",
        "actions": [
            {
                "tag": "button",
                "text": {"tag": "plain_text", "content": "Approve"},
                "type": "primary",
                "value": action_value(application, CARD_ACTION_APPROVE),
            },
            {
                "tag": "button",
                "text": {"tag": "plain_text", "content": "Disapprove"},
                "type": "danger",
                "value": action_value(application, CARD_ACTION_DISAPPROVE),
                "confirm": {
                    "title": {"tag": "plain_text", "content": "Disapprove banner"},
                    "text": {
                        "tag": "plain_text",
                        "content": "Are you sure you want to disapprove this banner?",
                    },
                },
            },
        ],
    }


def _header(template: str, title: str) -> Dict[str, Any]:
    return {"template": template, "title": {"tag": "plain_text", "content": title}}


def build_approval_card(application: BannerApplication) -> Dict[str, Any]:
    """Build the interactive card asking approvers to decide on an application."""

    elements: List[Dict[str, Any]] = [
        _fields_block(application),
        {"tag": "hr"},
        _decision_buttons(application),
    ]
    if application.record_id:
        elements.insert(
            1,
            {
                "tag": "note",
                "elements": [{"tag": "plain_text", "content": f"Record: {application.record_id}"}],
            },
        )
    return {
        "config": {"wide_screen_mode": True, "update_multi": True},
        "header": _header("blue", CARD_TITLE),
        "elements": elements,
    }


def build_template_card(template_id: str, application: BannerApplication) -> Dict[str, Any]:
    """Reference a card template configured in the Lark card builder."""

    return {
        "type": "template",
        "data": {
            "template_id": template_id,
            "template_variable": {
                "banner_title": application.title,
                "banner_action": application.action,
                "banner_button": application.button,
                "applicant_email": application.applicant_email,
            },
        },
    }


def build_decision_card(
    decision: BannerDecision,
    *,
    operator_id: str | None = None,
    note: str | None = None,
) -> Dict[str, Any]:
    """Return the approval card with its buttons replaced by the decision."""

    template, label = _DECISION_STYLE[decision.action]
    decided_by = f" by <at id={operator_id}></at>" if operator_id else ""
    elements: List[Dict[str, Any]] = [
        _fields_block(decision.application),
        {"tag": "hr"},
        {"tag": "div", "text": {"tag": "lark_md", "content": f"**{label}**{decided_by}"}},
    ]
    if note:
        elements.append({"tag": "note", "elements": [{"tag": "plain_text", "content": note}]})
    return {
        "config": {"wide_screen_mode": True, "update_multi": True},
        "header": _header(template, f"{CARD_TITLE} · {label.split(' ', 1)[1]}"),
        "elements": elements,
    }


def build_toast(kind: str, content: str, zh_content: str | None = None) -> Dict[str, Any]:
    toast: Dict[str, Any] = {"type": kind, "content": content}
    i18n = {"en_us": content}
    if zh_content:
        i18n["zh_cn"] = zh_content
    toast["i18n"] = i18n
    return toast


def build_callback_response(
    toast: Dict[str, Any],
    card: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """Shape the synchronous answer to a ``card.action.trigger`` callback."""

    response: Dict[str, Any] = {"toast": toast}
    if card is not None:
        response["card"] = {"type": "raw", "data": card}
    return response
