"""Thin wrapper around the Lark (Feishu) open platform HTTP API."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

DEFAULT_BASE_URL = "https://open.feishu.cn/open-apis"
TOKEN_REFRESH_MARGIN = 60
BATCH_GET_LIMIT = 100

RECEIVE_ID_TYPE_CHAT_ID = "chat_id"
RECEIVE_ID_TYPE_OPEN_ID = "open_id"
RECEIVE_ID_TYPE_EMAIL = "email"

MSG_TYPE_TEXT = "text"
MSG_TYPE_INTERACTIVE = "interactive"


class LarkApiError(Exception):
    """Raised when Lark answers with an HTTP error or a non-zero ``code``."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        status_code: int | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.operation = operation


@dataclass(frozen=True)
class MailAddress:
    mail_address: str
    name: str | None = None

    def as_payload(self) -> dict[str, str]:
        payload = {"mail_address": self.mail_address}
        if self.name:
            payload["name"] = self.name
        return payload


def _encode_content(content: str | Mapping[str, Any]) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, separators=(",", ":"))


class LarkClient:
    """Encapsulate Lark API calls (IM, Bitable, Mail, Drive) for easier testing."""

    def __init__(
        self,
        *,
        app_id: str,
        app_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not app_id or not app_secret:
            raise ValueError("Both an app id and an app secret must be provided.")
        self._app_id = app_id
        self._app_secret = app_secret
        self._base_url = base_url.rstrip("/")
        self._http = client or httpx.Client(timeout=timeout)
        self._lock = threading.Lock()
        self._token: str | None = None
        self._token_expires_at = 0.0

    @property
    def client(self) -> httpx.Client:
        """Expose the underlying HTTP client for advanced use cases."""

        return self._http

    def close(self) -> None:
        self._http.close()

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    @staticmethod
    def _decode(response: httpx.Response, *, operation: str) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise LarkApiError(
                f"{operation} returned a non-JSON response",
                status_code=response.status_code,
                operation=operation,
            )
        code = payload.get("code")
        if response.is_error or code not in (0, None):
            raise LarkApiError(
                str(payload.get("msg") or f"{operation} failed"),
                code=code,
                status_code=response.status_code,
                operation=operation,
            )
        return payload

    def _send(self, method: str, path: str, *, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            raise LarkApiError(f"{operation} request failed: {exc}", operation=operation) from exc

    def tenant_access_token(self) -> str:
        """Return a cached tenant access token, refreshing it shortly before expiry."""

        with self._lock:
            now = time.monotonic()
            if self._token and now < self._token_expires_at:
                return self._token
            response = self._send(
                "POST",
                "/auth/v3/tenant_access_token/internal",
                operation="tenant_access_token",
                json={"app_id": self._app_id, "app_secret": self._app_secret},
            )
            payload = self._decode(response, operation="tenant_access_token")
            token = payload.get("tenant_access_token")
            if not isinstance(token, str) or not token:
                raise LarkApiError(
                    "tenant_access_token missing from response",
                    status_code=response.status_code,
                    operation="tenant_access_token",
                )
            expire = int(payload.get("expire") or 0)
            self._token = token
            self._token_expires_at = now + max(expire - TOKEN_REFRESH_MARGIN, 0)
            return token

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Mapping[str, Any] | None = None,
        json_body: Mapping[str, Any] | None = None,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        token = access_token or self.tenant_access_token()
        response = self._send(
            method,
            path,
            operation=operation,
            params=params,
            json=json_body,
            headers={"Authorization": f"Bearer {token}"},
        )
        payload = self._decode(response, operation=operation)
        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    def send_message(
        self,
        *,
        receive_id_type: str,
        receive_id: str,
        msg_type: str,
        content: str | Mapping[str, Any],
    ) -> dict[str, Any]:
        """Send a message to a chat or user."""

        return self._request(
            "POST",
            "/im/v1/messages",
            operation="send_message",
            params={"receive_id_type": receive_id_type},
            json_body={
                "receive_id": receive_id,
                "msg_type": msg_type,
                "content": _encode_content(content),
            },
        )

    def reply_message(
        self,
        *,
        message_id: str,
        msg_type: str,
        content: str | Mapping[str, Any],
    ) -> dict[str, Any]:
        """Reply in the thread of an existing message."""

        return self._request(
            "POST",
            f"/im/v1/messages/{message_id}/reply",
            operation="reply_message",
            json_body={"msg_type": msg_type, "content": _encode_content(content)},
        )

    def send_card(self, *, receive_id_type: str, receive_id: str, card: Mapping[str, Any]) -> dict[str, Any]:
        return self.send_message(
            receive_id_type=receive_id_type,
            receive_id=receive_id,
            msg_type=MSG_TYPE_INTERACTIVE,
            content=card,
        )

    def send_text(self, *, receive_id_type: str, receive_id: str, text: str) -> dict[str, Any]:
        return self.send_message(
            receive_id_type=receive_id_type,
            receive_id=receive_id,
            msg_type=MSG_TYPE_TEXT,
            content={"text": text},
        )

    def batch_get_records(
        self,
        *,
        app_token: str,
        table_id: str,
        record_ids: Sequence[str],
    ) -> list[dict[str, Any]]:
        """Fetch Bitable records by id, chunking to the API's batch limit."""

        records: list[dict[str, Any]] = []
        ids = [record_id for record_id in record_ids if record_id]
        for start in range(0, len(ids), BATCH_GET_LIMIT):
            data = self._request(
                "POST",
                f"/bitable/v1/apps/{app_token}/tables/{table_id}/records/batch_get",
                operation="batch_get_records",
                json_body={
                    "record_ids": ids[start : start + BATCH_GET_LIMIT],
                    "user_id_type": "open_id",
                    "with_shared_url": False,
                    "automatic_fields": False,
                },
            )
            records.extend(record for record in data.get("records") or [] if isinstance(record, dict))
        return records

    def add_record(self, *, app_token: str, table_id: str, fields: Mapping[str, Any]) -> str | None:
        """Append a row to a Bitable table and return its record id."""

        data = self._request(
            "POST",
            f"/bitable/v1/apps/{app_token}/tables/{table_id}/records",
            operation="add_record",
            json_body={"fields": dict(fields)},
        )
        record = data.get("record") or {}
        return record.get("record_id")

    def send_mail(
        self,
        *,
        mailbox: str,
        subject: str,
        to: Sequence[MailAddress],
        user_access_token: str,
        cc: Sequence[MailAddress] = (),
        head_from_name: str | None = None,
        body_html: str = "",
        body_plain_text: str = "",
    ) -> dict[str, Any]:
        """Send an email from a user mailbox; requires a user access token."""

        body: dict[str, Any] = {
            "subject": subject,
            "to": [address.as_payload() for address in to],
        }
        if cc:
            body["cc"] = [address.as_payload() for address in cc]
        if head_from_name:
            body["head_from"] = {"name": head_from_name}
        if body_html:
            body["body_html"] = body_html
        if body_plain_text:
            body["body_plain_text"] = body_plain_text
        return self._request(
            "POST",
            f"/mail/v1/user_mailboxes/{mailbox or 'me'}/messages/send",
            operation="send_mail",
            json_body=body,
            access_token=user_access_token,
        )

    def subscribe_file(self, *, file_token: str, file_type: str = "bitable") -> dict[str, Any]:
        """Subscribe the app to change events of a drive file."""

        return self._request(
            "POST",
            f"/drive/v1/files/{file_token}/subscribe",
            operation="subscribe_file",
            params={"file_type": file_type},
        )
