"""Client for the GitHub repository contents API."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote

import httpx

DEFAULT_BASE_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


class GithubApiError(Exception):
    """Raised when GitHub answers with an unexpected status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GithubConflictError(GithubApiError):
    """Raised when the file changed since it was read (stale ``sha``)."""


@dataclass(frozen=True)
class RepoContent:
    path: str
    sha: str
    text: str
    html_url: str | None = None


def _content_path(owner: str, repo: str, path: str) -> str:
    # keep '/' unescaped so nested paths resolve
    return f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/contents/{quote(path.lstrip('/'), safe='/')}"


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase


def _json_body(response: httpx.Response, *, path: str) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise GithubApiError(
            f"GitHub returned a non-JSON response for {path}",
            status_code=response.status_code,
        ) from exc
    if not isinstance(payload, dict):
        raise GithubApiError(f"Unexpected GitHub response for {path}", status_code=response.status_code)
    return payload


class GithubClient:
    """Read and conditionally overwrite single files in a repository."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not token:
            raise ValueError("A GitHub personal access token must be provided.")
        self._base_url = base_url.rstrip("/")
        self._http = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"token {token}",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def close(self) -> None:
        self._http.close()

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._http.request(method, f"{self._base_url}{path}", headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise GithubApiError(f"GitHub request failed: {exc}") from exc

    def get_file(self, *, owner: str, repo: str, path: str, ref: str | None = None) -> RepoContent:
        """Fetch a file and decode its base64 content."""

        params = {"ref": ref} if ref else None
        response = self._send("GET", _content_path(owner, repo, path), params=params)
        if response.status_code != 200:
            raise GithubApiError(
                f"Failed to get {path}: {_error_message(response)}",
                status_code=response.status_code,
            )
        payload = _json_body(response, path=path)
        if payload.get("type") != "file":
            raise GithubApiError(f"{path} is not a file", status_code=response.status_code)
        if payload.get("encoding") != "base64":
            raise GithubApiError(
                f"Unsupported content encoding for {path}: {payload.get('encoding')!r}",
                status_code=response.status_code,
            )
        try:
            text = base64.b64decode(payload.get("content") or "").decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise GithubApiError(f"Failed to decode {path}") from exc
        sha = payload.get("sha")
        if not isinstance(sha, str) or not sha:
            raise GithubApiError(f"{path} has no sha", status_code=response.status_code)
        return RepoContent(
            path=payload.get("path") or path,
            sha=sha,
            text=text,
            html_url=payload.get("html_url"),
        )

    def put_file(
        self,
        *,
        owner: str,
        repo: str,
        path: str,
        message: str,
        content: str,
        sha: str | None = None,
        branch: str | None = None,
        committer: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create or update a file; *sha* guards against overwriting concurrent edits."""

        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha:
            body["sha"] = sha
        if branch:
            body["branch"] = branch
        if committer:
            body["committer"] = dict(committer)
        response = self._send("PUT", _content_path(owner, repo, path), json=body)
        if response.status_code in (200, 201):
            return _json_body(response, path=path)
        message_text = _error_message(response)
        if response.status_code == 409 or (response.status_code == 422 and "sha" in message_text):
            raise GithubConflictError(
                f"{path} changed since it was read: {message_text}",
                status_code=response.status_code,
            )
        raise GithubApiError(
            f"Failed to update {path}: {message_text}",
            status_code=response.status_code,
        )
