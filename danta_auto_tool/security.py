"""Helpers for validating Lark event callbacks."""

from __future__ import annotations

import hmac
from typing import Any, Mapping

URL_VERIFICATION_TYPE = "url_verification"


def is_valid_token(expected: str, provided: str | None) -> bool:
    """Compare the shared verification token in constant time."""

    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def is_url_verification(payload: Mapping[str, Any]) -> bool:
    """Return True for the challenge Lark sends when the callback URL is saved."""

    return payload.get("type") == URL_VERIFICATION_TYPE and "challenge" in payload


def is_encrypted(payload: Mapping[str, Any]) -> bool:
    return "encrypt" in payload


def extract_token(payload: Mapping[str, Any]) -> str | None:
    """Return the verification token from either the v2 header or a v1 body."""

    header = payload.get("header")
    if isinstance(header, Mapping):
        token = header.get("token")
        if isinstance(token, str):
            return token
    token = payload.get("token")
    return token if isinstance(token, str) else None
