"""Tests for the banner approval workflow."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from danta_auto_tool.banners import decisions
from danta_auto_tool.banners.config_file import BannerConfigDocument
from danta_auto_tool.banners.models import BannerApplication, BannerDecision
from danta_auto_tool.config import AppSettings
from danta_auto_tool.github_client import GithubConflictError, RepoContent
from danta_auto_tool.lark_client import LarkApiError

BASE_ENV = {
    "LARK_APP_ID": "cli_app",
    "LARK_APP_SECRET": "secret",
    "LARK_VERIFICATION_TOKEN": "verify",
    "LARK_BANNER_BITABLE_APP_TOKEN": "bascn",
    "LARK_BANNER_BITABLE_APPLICATION_TABLE_ID": "tblApply",
    "LARK_BANNER_BITABLE_USAGE_TABLE_ID": "tblUsage",
    "LARK_BANNER_APPROVE_GROUP_ID": "oc_group",
    "GITHUB_PERSONAL_ACCESS_TOKEN": "ghp_token",
    "GITHUB_DANXI_REPO_OWNER": "DanXi-Dev",
    "GITHUB_DANXI_REPO_NAME": "DanXi-Backend",
    "GITHUB_DANXI_REPO_APP_CONFIG_PATH": "public/app_config.toml",
}

CONFIG_TEXT = '# app content\n\n[[banners]]\ntitle = "Old"\naction = "https://danxi.dev"\nbutton = "Open"\n'


def _settings(**overrides) -> AppSettings:
    return AppSettings.model_validate({**BASE_ENV, **overrides})


class DummyLark:
    def __init__(self, records=None, *, fail_usage_log=False, fail_mail=False) -> None:
        self.records = records or []
        self.batch_calls: list[list[str]] = []
        self.cards: list[dict] = []
        self.rows: list[dict] = []
        self.mails: list[dict] = []
        self.fail_usage_log = fail_usage_log
        self.fail_mail = fail_mail

    def batch_get_records(self, *, app_token, table_id, record_ids):
        self.batch_calls.append(list(record_ids))
        return self.records

    def send_card(self, **kwargs):
        self.cards.append(kwargs)
        return {"message_id": f"om_{len(self.cards)}"}

    def add_record(self, *, app_token, table_id, fields):
        if self.fail_usage_log:
            raise LarkApiError("table not found", code=1254004, operation="add_record")
        self.rows.append({"app_token": app_token, "table_id": table_id, "fields": fields})
        return "recUsage"

    def send_mail(self, **kwargs):
        if self.fail_mail:
            raise LarkApiError("mailbox not found", code=1234, operation="send_mail")
        self.mails.append(kwargs)
        return {}


class DummyGithub:
    def __init__(self, *, conflict=False) -> None:
        self.puts: list[dict] = []
        self.gets: list[dict] = []
        self.conflict = conflict

    def get_file(self, **kwargs):
        self.gets.append(kwargs)
        return RepoContent(path=kwargs["path"], sha="sha-old", text=CONFIG_TEXT)

    def put_file(self, **kwargs):
        if self.conflict:
            raise GithubConflictError("stale sha", status_code=409)
        self.puts.append(kwargs)
        return {"content": {"sha": "sha-new"}}


def _record(record_id, title="Welcome", email="alice@example.com"):
    return {
        "record_id": record_id,
        "fields": {"Banner": title, "action": "https://danxi.dev/new", "button": "Go", "联系邮箱": email},
    }


def _decision(action="approve") -> BannerDecision:
    return BannerDecision(
        action=action,
        application=BannerApplication(
            title="Welcome",
            action="https://danxi.dev/new",
            button="Go",
            applicant_email="alice@example.com",
            record_id="recA",
        ),
    )


def test_handle_new_records_publishes_one_card_per_valid_record():
    lark = DummyLark(records=[_record("recA"), _record("recB", email="broken"), _record("recC", title="Second")])

    with capture_logs() as logs:
        sent = decisions.handle_new_records(lark=lark, settings=_settings(), record_ids=["recA", "recB", "recC"])

    assert sent == 2
    assert lark.batch_calls == [["recA", "recB", "recC"]]
    assert len(lark.cards) == 2
    invalid = [entry for entry in logs if entry["event"] == "application_record_invalid"]
    assert [entry["record_id"] for entry in invalid] == ["recB"]


def test_handle_new_records_without_ids_does_nothing():
    lark = DummyLark()

    assert decisions.handle_new_records(lark=lark, settings=_settings(), record_ids=[]) == 0
    assert lark.batch_calls == []


def test_append_banner_to_config_writes_with_fetched_sha():
    github = DummyGithub()
    settings = _settings(
        GITHUB_DANXI_REPO_BRANCH="main",
        GITHUB_COMMITTER_NAME="Danta Bot",
        GITHUB_COMMITTER_EMAIL="bot@example.com",
    )

    new_sha = decisions.append_banner_to_config(
        github=github, settings=settings, banner=_decision().application.banner
    )

    assert new_sha == "sha-new"
    assert github.gets[0]["ref"] == "main"
    put = github.puts[0]
    assert put["sha"] == "sha-old"
    assert put["branch"] == "main"
    assert put["message"] == 'chore(banner): add "Welcome"'
    assert put["committer"] == {"name": "Danta Bot", "email": "bot@example.com"}
    titles = [banner.title for banner in BannerConfigDocument.parse(put["content"]).banners]
    assert titles == ["Old", "Welcome"]
    assert put["content"].startswith("# app content")


def test_approve_runs_all_steps():
    lark = DummyLark()
    github = DummyGithub()

    outcome = decisions.approve(
        lark=lark,
        github=github,
        settings=_settings(LARK_USER_ACCESS_TOKEN="u-abc"),
        decision=_decision(),
    )

    assert outcome.complete is True
    assert outcome.status == "approved"
    assert outcome.config_updated and outcome.usage_logged and outcome.applicant_notified
    assert lark.rows == [
        {
            "app_token": "bascn",
            "table_id": "tblUsage",
            "fields": {
                "Banner": "Welcome",
                "联系邮箱": "alice@example.com",
                "action": "https://danxi.dev/new",
                "button": "Go",
            },
        }
    ]
    assert len(lark.mails) == 1


def test_approve_reports_follow_up_failures():
    lark = DummyLark(fail_usage_log=True, fail_mail=True)

    outcome = decisions.approve(
        lark=lark,
        github=DummyGithub(),
        settings=_settings(LARK_USER_ACCESS_TOKEN="u-abc"),
        decision=_decision(),
    )

    assert outcome.config_updated is True
    assert outcome.complete is False
    assert outcome.failures == ["usage log: table not found", "applicant email: mailbox not found"]


def test_approve_propagates_config_conflicts():
    lark = DummyLark()

    with pytest.raises(GithubConflictError):
        decisions.approve(lark=lark, github=DummyGithub(conflict=True), settings=_settings(), decision=_decision())

    assert lark.rows == []
    assert lark.mails == []


def test_disapprove_only_notifies():
    lark = DummyLark()

    outcome = decisions.disapprove(
        lark=lark,
        settings=_settings(LARK_USER_ACCESS_TOKEN="u-abc"),
        decision=_decision("disapprove"),
    )

    assert outcome.status == "disapproved"
    assert outcome.config_updated is False
    assert outcome.applicant_notified is True
    assert lark.rows == []


def test_append_banner_to_config_skips_banner_already_present():
    github = DummyGithub()
    existing = BannerApplication(
        title="Old",
        action="https://danxi.dev",
        button="Open",
        applicant_email="alice@example.com",
    ).banner

    with capture_logs() as logs:
        sha = decisions.append_banner_to_config(github=github, settings=_settings(), banner=existing)

    assert sha == "sha-old"
    assert github.puts == []
    assert any(entry["event"] == "banner_config_unchanged" for entry in logs)
