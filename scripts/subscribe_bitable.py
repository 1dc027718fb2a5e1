"""Subscribe the Lark app to change events of the banner application Bitable.

Usage:
    python scripts/subscribe_bitable.py

Environment:
    Ensure LARK_APP_ID, LARK_APP_SECRET, LARK_BANNER_BITABLE_APP_TOKEN (and the
    other required settings) are available in the current shell or a .env file.
    Record-changed events are only delivered for subscribed files.
"""

from __future__ import annotations

from dotenv import load_dotenv

from danta_auto_tool.clients import get_lark_client
from danta_auto_tool.config import get_settings


def subscribe_application_table() -> None:
    settings = get_settings()
    get_lark_client().subscribe_file(file_token=settings.bitable_app_token, file_type="bitable")
    print(f"Subscribed to bitable {settings.bitable_app_token}.")


if __name__ == "__main__":
    load_dotenv()
    subscribe_application_table()
