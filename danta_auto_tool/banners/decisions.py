"""Approval workflow: new applications in, config update and notifications out."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import structlog

from danta_auto_tool.config import AppSettings
from danta_auto_tool.github_client import GithubClient
from danta_auto_tool.lark_client import LarkApiError, LarkClient

from .config_file import BannerConfigDocument
from .models import Banner, BannerApplication, BannerDecision, BannerValidationError
from .notifications import notify_applicant, publish_application_card
from .records import ACTION_FIELD, BUTTON_FIELD, EMAIL_FIELD, TITLE_FIELD, parse_application_record


@dataclass
class DecisionOutcome:
    status: str
    config_updated: bool = False
    usage_logged: bool = False
    applicant_notified: bool = False
    failures: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


def handle_new_records(
    *,
    lark: LarkClient,
    settings: AppSettings,
    record_ids: Sequence[str],
) -> int:
    """Send one approval card per newly added application row."""

    log = structlog.get_logger().bind(table_id=settings.application_table_id)
    if not record_ids:
        log.info("no_added_records")
        return 0
    records = lark.batch_get_records(
        app_token=settings.bitable_app_token,
        table_id=settings.application_table_id,
        record_ids=record_ids,
    )
    sent = 0
    for record in records:
        try:
            application = parse_application_record(record)
        except BannerValidationError as exc:
            log.warning("application_record_invalid", record_id=record.get("record_id"), error=str(exc))
            continue
        publish_application_card(lark=lark, settings=settings, application=application)
        sent += 1
    log.info("application_cards_published", requested=len(record_ids), fetched=len(records), sent=sent)
    return sent


def commit_message(banner: Banner) -> str:
    return f'chore(banner): add "{banner.title}"'


def append_banner_to_config(*, github: GithubClient, settings: AppSettings, banner: Banner) -> str:
    """Append *banner* to the remote TOML file; returns the new blob sha.

    The write is guarded by the sha read just before, so a concurrent edit
    surfaces as GithubConflictError instead of being overwritten. A banner
    already in the file is not written twice and the current sha is returned.
    """

    log = structlog.get_logger().bind(
        repo=f"{settings.repo_owner}/{settings.repo_name}",
        path=settings.repo_config_path,
        banner_title=banner.title,
    )
    current = github.get_file(
        owner=settings.repo_owner,
        repo=settings.repo_name,
        path=settings.repo_config_path,
        ref=settings.repo_branch,
    )
    document = BannerConfigDocument.parse(current.text)
    if document.contains(banner):
        log.info("banner_config_unchanged", sha=current.sha, reason="banner already present")
        return current.sha
    document.append_banner(banner)
    result = github.put_file(
        owner=settings.repo_owner,
        repo=settings.repo_name,
        path=settings.repo_config_path,
        message=commit_message(banner),
        content=document.dumps(),
        sha=current.sha,
        branch=settings.repo_branch,
        committer=settings.committer,
    )
    new_sha = (result.get("content") or {}).get("sha") or ""
    log.info("banner_config_updated", previous_sha=current.sha, sha=new_sha, banner_count=len(document.banners))
    return new_sha


def _usage_log_fields(application: BannerApplication) -> dict[str, str]:
    return {
        TITLE_FIELD: application.title,
        EMAIL_FIELD: application.applicant_email,
        ACTION_FIELD: application.action,
        BUTTON_FIELD: application.button,
    }


def _notify(*, lark: LarkClient, settings: AppSettings, decision: BannerDecision, outcome: DecisionOutcome) -> None:
    try:
        outcome.applicant_notified = notify_applicant(lark=lark, settings=settings, decision=decision)
    except LarkApiError as exc:
        outcome.failures.append(f"applicant email: {exc}")


def approve(
    *,
    lark: LarkClient,
    github: GithubClient,
    settings: AppSettings,
    decision: BannerDecision,
) -> DecisionOutcome:
    """Publish the banner, log its usage and tell the applicant.

    The config update must succeed; its errors propagate. The follow-up steps
    are recorded on the outcome instead.
    """

    application = decision.application
    log = structlog.get_logger().bind(banner_title=application.title, record_id=application.record_id)
    outcome = DecisionOutcome(status=decision.status)

    append_banner_to_config(github=github, settings=settings, banner=application.banner)
    outcome.config_updated = True

    try:
        record_id = lark.add_record(
            app_token=settings.bitable_app_token,
            table_id=settings.usage_table_id,
            fields=_usage_log_fields(application),
        )
    except LarkApiError as exc:
        log.error("banner_usage_log_failed", error=str(exc), code=exc.code)
        outcome.failures.append(f"usage log: {exc}")
    else:
        outcome.usage_logged = True
        log.info("banner_usage_logged", usage_record_id=record_id)

    _notify(lark=lark, settings=settings, decision=decision, outcome=outcome)
    log.info("banner_approved", complete=outcome.complete, failures=outcome.failures)
    return outcome


def disapprove(
    *,
    lark: LarkClient,
    settings: AppSettings,
    decision: BannerDecision,
) -> DecisionOutcome:
    outcome = DecisionOutcome(status=decision.status)
    _notify(lark=lark, settings=settings, decision=decision, outcome=outcome)
    structlog.get_logger().info(
        "banner_disapproved",
        banner_title=decision.application.title,
        complete=outcome.complete,
    )
    return outcome
