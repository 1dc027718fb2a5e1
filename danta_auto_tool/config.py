"""Pydantic-based configuration helpers for the Danta auto tool."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class AppSettings(BaseModel):
    """Settings required to talk to Lark, GitHub and the applicants' mailboxes."""

    lark_app_id: str = Field(..., alias="LARK_APP_ID")
    lark_app_secret: str = Field(..., alias="LARK_APP_SECRET")
    lark_verification_token: str = Field(..., alias="LARK_VERIFICATION_TOKEN")
    lark_api_base_url: str = Field("https://open.feishu.cn/open-apis", alias="LARK_API_BASE_URL")

    bitable_app_token: str = Field(..., alias="LARK_BANNER_BITABLE_APP_TOKEN")
    application_table_id: str = Field(..., alias="LARK_BANNER_BITABLE_APPLICATION_TABLE_ID")
    usage_table_id: str = Field(..., alias="LARK_BANNER_BITABLE_USAGE_TABLE_ID")
    approve_group_id: str = Field(..., alias="LARK_BANNER_APPROVE_GROUP_ID")
    approve_card_id: str | None = Field(None, alias="LARK_BANNER_APPROVE_CARD_ID")

    user_access_token: str | None = Field(None, alias="LARK_USER_ACCESS_TOKEN")
    mailbox: str = Field("me", alias="LARK_MAILBOX")
    mail_sender_name: str = Field("Danta Team", alias="MAIL_SENDER_NAME")
    dev_email: str | None = Field(None, alias="DANTA_DEV_EMAIL")
    echo_messages: bool = Field(False, alias="LARK_ECHO_MESSAGES")

    github_token: str = Field(..., alias="GITHUB_PERSONAL_ACCESS_TOKEN")
    github_api_base_url: str = Field("https://api.github.com", alias="GITHUB_API_BASE_URL")
    repo_owner: str = Field(..., alias="GITHUB_DANXI_REPO_OWNER")
    repo_name: str = Field(..., alias="GITHUB_DANXI_REPO_NAME")
    repo_config_path: str = Field(..., alias="GITHUB_DANXI_REPO_APP_CONFIG_PATH")
    repo_branch: str | None = Field(None, alias="GITHUB_DANXI_REPO_BRANCH")
    committer_name: str | None = Field(None, alias="GITHUB_COMMITTER_NAME")
    committer_email: str | None = Field(None, alias="GITHUB_COMMITTER_EMAIL")

    http_timeout: float = Field(10.0, alias="HTTP_TIMEOUT_SECONDS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator(
        "approve_card_id",
        "user_access_token",
        "dev_email",
        "repo_branch",
        "committer_name",
        "committer_email",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = str(value).strip()
        return trimmed or None

    @field_validator("repo_config_path")
    @classmethod
    def _strip_leading_slash(cls, value: str) -> str:
        cleaned = value.strip().lstrip("/")
        if not cleaned:
            raise ValueError("config path must not be empty")
        return cleaned

    @field_validator("lark_api_base_url", "github_api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("http_timeout")
    @classmethod
    def _ensure_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("HTTP timeout must be greater than zero")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @model_validator(mode="after")
    def _committer_pair(self):
        if bool(self.committer_name) != bool(self.committer_email):
            raise ValueError("GITHUB_COMMITTER_NAME and GITHUB_COMMITTER_EMAIL must be set together")
        return self

    @property
    def committer(self) -> dict[str, str] | None:
        if not self.committer_name or not self.committer_email:
            return None
        return {"name": self.committer_name, "email": self.committer_email}


def _format_missing(fields: Iterable[str]) -> str:
    """Return a human-friendly comma-separated list of missing env vars."""

    unique: List[str] = []
    for field in fields:
        if field not in unique:
            unique.append(field)
    return ", ".join(unique)


@lru_cache()
def get_settings() -> AppSettings:
    """Fetch and cache settings from environment variables."""

    try:
        return AppSettings.model_validate(os.environ)
    except ValidationError as exc:
        missing = [str(error["loc"][0]) for error in exc.errors() if error["type"] == "missing"]
        if not missing:
            raise RuntimeError(f"Invalid configuration: {exc}") from exc
        message = (
            "Missing required environment variables: "
            f"{_format_missing(missing)}"
        )
        raise RuntimeError(message) from exc
