"""Publishing approval cards and notifying applicants."""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from danta_auto_tool.config import AppSettings
from danta_auto_tool.lark_client import RECEIVE_ID_TYPE_CHAT_ID, LarkApiError, LarkClient, MailAddress

from .cards import build_approval_card, build_template_card
from .emails import build_decision_email
from .models import BannerApplication, BannerDecision


def publish_application_card(
    *,
    lark: LarkClient,
    settings: AppSettings,
    application: BannerApplication,
) -> Mapping[str, Any]:
    """Post the approval card for *application* to the approvers' group chat."""

    log = structlog.get_logger().bind(
        record_id=application.record_id,
        banner_title=application.title,
        chat_id=settings.approve_group_id,
    )
    if settings.approve_card_id:
        card = build_template_card(settings.approve_card_id, application)
    else:
        card = build_approval_card(application)
    try:
        response = lark.send_card(
            receive_id_type=RECEIVE_ID_TYPE_CHAT_ID,
            receive_id=settings.approve_group_id,
            card=card,
        )
    except LarkApiError as exc:
        log.error(
            "banner_card_failed",
            operation=exc.operation,
            error=str(exc),
            code=exc.code,
            status_code=exc.status_code,
        )
        raise
    log.info("banner_card_sent", message_id=response.get("message_id"))
    return response


def notify_applicant(
    *,
    lark: LarkClient,
    settings: AppSettings,
    decision: BannerDecision,
) -> bool:
    """Email the applicant about *decision*; returns False when mail is not configured."""

    application = decision.application
    log = structlog.get_logger().bind(
        applicant_email=application.applicant_email,
        decision=decision.action,
    )
    if not settings.user_access_token:
        log.warning("applicant_email_skipped", reason="LARK_USER_ACCESS_TOKEN is not set")
        return False

    email = build_decision_email(decision, sender_name=settings.mail_sender_name)
    cc = []
    if decision.approved and settings.dev_email:
        cc.append(MailAddress(mail_address=settings.dev_email))
    try:
        lark.send_mail(
            mailbox=settings.mailbox,
            subject=email.subject,
            to=[MailAddress(mail_address=application.applicant_email)],
            cc=cc,
            head_from_name=settings.mail_sender_name,
            body_html=email.body_html,
            body_plain_text=email.body_plain_text,
            user_access_token=settings.user_access_token,
        )
    except LarkApiError as exc:
        log.error("applicant_email_failed", error=str(exc), code=exc.code, status_code=exc.status_code)
        raise
    log.info("applicant_email_sent")
    return True
