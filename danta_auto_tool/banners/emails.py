"""Email templates for applicant notifications."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape

from .models import BannerDecision

APPROVED_SUBJECT = "Your banner application has been approved"
DISAPPROVED_SUBJECT = "Your banner application was not approved"


@dataclass(frozen=True)
class EmailContent:
    subject: str
    body_plain_text: str
    body_html: str


def _summary_lines(decision: BannerDecision) -> list[tuple[str, str]]:
    application = decision.application
    return [
        ("Title", application.title),
        ("Action", application.action or "-"),
        ("Button", application.button or "-"),
    ]


def build_decision_email(decision: BannerDecision, *, sender_name: str) -> EmailContent:
    """Render the notification sent to the applicant once a decision is taken."""

    if decision.approved:
        subject = APPROVED_SUBJECT
        lead = (
            "Good news! Your banner has been approved and added to the app configuration. "
            "It will show up in the app once the new configuration is rolled out."
        )
    else:
        subject = DISAPPROVED_SUBJECT
        lead = (
            "Thank you for your application. Unfortunately your banner was not approved this time. "
            "Feel free to reply to this email if you would like to know more."
        )

    summary = _summary_lines(decision)
    plain_lines = ["Hello,", "", lead, ""]
    plain_lines.extend(f"{label}: {value}" for label, value in summary)
    plain_lines.extend(["", "Best regards,", sender_name])

    rows = "".join(
        f"<tr><th align=\"left\">{escape(label)}</th><td>{escape(value)}</td></tr>"
        for label, value in summary
    )
    html = (
        "<p>Hello,</p>"
        f"<p>{escape(lead)}</p>"
        f"<table>{rows}</table>"
        f"<p>Best regards,<br/>{escape(sender_name)}</p>"
    )
    return EmailContent(subject=subject, body_plain_text="\n".join(plain_lines), body_html=html)
