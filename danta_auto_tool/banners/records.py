"""Conversion of Bitable application rows into banner applications."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from .models import BannerApplication, BannerValidationError

TITLE_FIELD = "Banner"
ACTION_FIELD = "action"
BUTTON_FIELD = "button"
EMAIL_FIELD = "联系邮箱"


def _raw_text(value: Any) -> str:
    # segments keep their own whitespace; only the joined cell is stripped
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        for key in ("text", "link", "name", "email"):
            inner = value.get(key)
            if isinstance(inner, str) and inner.strip():
                return inner
        return ""
    if isinstance(value, (list, tuple)):
        return "".join(_raw_text(item) for item in value)
    return str(value)


def field_text(value: Any) -> str:
    """Flatten a Bitable cell value into plain text.

    Text cells arrive either as plain strings or as lists of segments such as
    ``[{"type": "text", "text": "..."}]``; URL cells are ``{"link", "text"}``
    objects; number cells are numbers.
    """

    return _raw_text(value).strip()


def parse_application_record(record: Mapping[str, Any]) -> BannerApplication:
    """Build a BannerApplication from a ``{"record_id", "fields"}`` record."""

    fields = record.get("fields")
    if not isinstance(fields, Mapping):
        raise BannerValidationError("record has no fields")
    try:
        return BannerApplication(
            title=field_text(fields.get(TITLE_FIELD)),
            action=field_text(fields.get(ACTION_FIELD)),
            button=field_text(fields.get(BUTTON_FIELD)),
            applicant_email=field_text(fields.get(EMAIL_FIELD)).removeprefix("mailto:"),
            record_id=record.get("record_id"),
        )
    except ValidationError as exc:
        raise BannerValidationError(f"record {record.get('record_id')} is not a valid application") from exc
