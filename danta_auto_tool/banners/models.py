"""Pydantic models describing banners and banner applications."""

from __future__ import annotations

from email.utils import parseaddr

from pydantic import BaseModel, ConfigDict, field_validator

BANNER_STATUS_PENDING = "pending"
BANNER_STATUS_APPROVED = "approved"
BANNER_STATUS_DISAPPROVED = "disapproved"

CARD_ACTION_APPROVE = "approve"
CARD_ACTION_DISAPPROVE = "disapprove"
CARD_ACTIONS = (CARD_ACTION_APPROVE, CARD_ACTION_DISAPPROVE)

BITABLE_RECORD_ADDED = "record_added"
BITABLE_RECORD_EDITED = "record_edited"
BITABLE_RECORD_DELETED = "record_deleted"

_DECISION_STATUS = {
    CARD_ACTION_APPROVE: BANNER_STATUS_APPROVED,
    CARD_ACTION_DISAPPROVE: BANNER_STATUS_DISAPPROVED,
}


class BannerValidationError(ValueError):
    """Raised when a record, payload or config file does not describe a usable banner."""


class Banner(BaseModel):
    """A promotional slot shown by the Danta client: title, target action and button text."""

    model_config = ConfigDict(frozen=True)

    title: str
    action: str = ""
    button: str = ""

    @field_validator("title", "action", "button", mode="before")
    @classmethod
    def _strip(cls, value):
        if value is None:
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        return value.strip() if isinstance(value, str) else value

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        if not value:
            raise ValueError("banner title must not be empty")
        return value


class BannerApplication(Banner):
    applicant_email: str
    record_id: str | None = None

    @field_validator("applicant_email", mode="before")
    @classmethod
    def _validate_email(cls, value):
        if not isinstance(value, str):
            raise ValueError("applicant email must be a string")
        _, address = parseaddr(value.strip())
        local, _, domain = address.rpartition("@")
        if not local or "." not in domain or " " in address:
            raise ValueError(f"invalid applicant email {value!r}")
        return address

    @property
    def banner(self) -> Banner:
        return Banner(title=self.title, action=self.action, button=self.button)


class BannerDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    application: BannerApplication

    @field_validator("action")
    @classmethod
    def _validate_action(cls, value: str) -> str:
        if value not in CARD_ACTIONS:
            raise ValueError(f"unknown card action {value!r}")
        return value

    @property
    def approved(self) -> bool:
        return self.action == CARD_ACTION_APPROVE

    @property
    def status(self) -> str:
        return _DECISION_STATUS[self.action]
