"""Unit tests for the GitHub repository contents client."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from danta_auto_tool.github_client import GithubApiError, GithubClient, GithubConflictError

TOML_TEXT = 'user_agent = "DanXi"\n\n[[banners]]\ntitle = "欢迎"\naction = "https://danxi.dev"\nbutton = "Go"\n'


def _encoded(text: str) -> str:
    raw = base64.b64encode(text.encode("utf-8")).decode("ascii")
    # GitHub wraps base64 content at 60 characters
    return "\n".join(raw[i : i + 60] for i in range(0, len(raw), 60)) + "\n"


def _client(handler) -> GithubClient:
    return GithubClient(
        token="ghp_token",
        base_url="https://github.test",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_requires_token():
    with pytest.raises(ValueError):
        GithubClient(token="")


def test_get_file_decodes_wrapped_base64():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "type": "file",
                "encoding": "base64",
                "path": "public/app_config.toml",
                "sha": "abc123",
                "content": _encoded(TOML_TEXT),
            },
        )

    content = _client(handler).get_file(
        owner="DanXi-Dev", repo="DanXi-Backend", path="public/app_config.toml", ref="main"
    )

    assert content.text == TOML_TEXT
    assert content.sha == "abc123"
    request = seen[0]
    assert request.url.path == "/repos/DanXi-Dev/DanXi-Backend/contents/public/app_config.toml"
    assert request.url.params["ref"] == "main"
    assert request.headers["Authorization"] == "token ghp_token"
    assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"


def test_get_file_rejects_unsupported_encoding():
    def handler(request):
        return httpx.Response(200, json={"type": "file", "encoding": "none", "sha": "abc", "content": ""})

    with pytest.raises(GithubApiError):
        _client(handler).get_file(owner="o", repo="r", path="big.toml")


def test_get_file_missing_raises_with_status():
    def handler(request):
        return httpx.Response(404, json={"message": "Not Found"})

    with pytest.raises(GithubApiError) as err:
        _client(handler).get_file(owner="o", repo="r", path="missing.toml")

    assert err.value.status_code == 404
    assert "Not Found" in str(err.value)


def test_put_file_sends_sha_guarded_update():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"content": {"sha": "def456"}})

    result = _client(handler).put_file(
        owner="o",
        repo="r",
        path="public/app_config.toml",
        message="chore(banner): add \"欢迎\"",
        content=TOML_TEXT,
        sha="abc123",
        branch="main",
        committer={"name": "Danta Bot", "email": "bot@example.com"},
    )

    assert result["content"]["sha"] == "def456"
    request = seen[0]
    assert request.method == "PUT"
    body = json.loads(request.content)
    assert base64.b64decode(body["content"]).decode("utf-8") == TOML_TEXT
    assert body["sha"] == "abc123"
    assert body["branch"] == "main"
    assert body["committer"] == {"name": "Danta Bot", "email": "bot@example.com"}


@pytest.mark.parametrize(
    "status, message",
    [
        (409, "public/app_config.toml does not match abc123"),
        (422, "Invalid request.\n\n\"sha\" wasn't supplied."),
    ],
)
def test_put_file_conflicts_raise_conflict_error(status, message):
    def handler(request):
        return httpx.Response(status, json={"message": message})

    with pytest.raises(GithubConflictError) as err:
        _client(handler).put_file(owner="o", repo="r", path="a.toml", message="m", content="x", sha="abc123")

    assert err.value.status_code == status


def test_put_file_other_errors_raise_api_error():
    def handler(request):
        return httpx.Response(403, json={"message": "Resource not accessible by personal access token"})

    with pytest.raises(GithubApiError) as err:
        _client(handler).put_file(owner="o", repo="r", path="a.toml", message="m", content="x", sha="abc")

    assert not isinstance(err.value, GithubConflictError)
    assert err.value.status_code == 403


def test_transport_failure_raises_api_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GithubApiError):
        _client(handler).get_file(owner="o", repo="r", path="a.toml")


def test_get_file_rejects_non_json_body():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(GithubApiError) as err:
        _client(handler).get_file(owner="o", repo="r", path="a.toml")

    assert err.value.status_code == 200


def test_get_file_requires_sha():
    def handler(request):
        return httpx.Response(200, json={"type": "file", "encoding": "base64", "content": _encoded("x = 1\n")})

    with pytest.raises(GithubApiError):
        _client(handler).get_file(owner="o", repo="r", path="a.toml")


def test_put_file_rejects_non_json_success_body():
    def handler(request):
        return httpx.Response(201, text="created")

    with pytest.raises(GithubApiError) as err:
        _client(handler).put_file(owner="o", repo="r", path="a.toml", message="m", content="x", sha="abc")

    assert not isinstance(err.value, GithubConflictError)
    assert err.value.status_code == 201
