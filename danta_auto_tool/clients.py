"""Cached factories for the external API clients."""

from __future__ import annotations

from functools import lru_cache

from danta_auto_tool.config import get_settings
from danta_auto_tool.github_client import GithubClient
from danta_auto_tool.lark_client import LarkClient


@lru_cache()
def get_lark_client() -> LarkClient:
    """Create or return a cached Lark client bound to the configured app."""

    settings = get_settings()
    return LarkClient(
        app_id=settings.lark_app_id,
        app_secret=settings.lark_app_secret,
        base_url=settings.lark_api_base_url,
        timeout=settings.http_timeout,
    )


@lru_cache()
def get_github_client() -> GithubClient:
    """Create or return a cached GitHub contents client."""

    settings = get_settings()
    return GithubClient(
        token=settings.github_token,
        base_url=settings.github_api_base_url,
        timeout=settings.http_timeout,
    )
