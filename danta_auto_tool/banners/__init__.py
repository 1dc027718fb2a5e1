"""Banner application models, cards and the approval workflow."""

from .cards import build_approval_card, build_decision_card, build_template_card
from .config_file import BannerConfigDocument
from .decisions import DecisionOutcome, approve, disapprove, handle_new_records
from .models import (
    Banner,
    BannerApplication,
    BannerDecision,
    BannerValidationError,
    CARD_ACTION_APPROVE,
    CARD_ACTION_DISAPPROVE,
)
from .records import parse_application_record

__all__ = [
    "Banner",
    "BannerApplication",
    "BannerDecision",
    "BannerValidationError",
    "BannerConfigDocument",
    "CARD_ACTION_APPROVE",
    "CARD_ACTION_DISAPPROVE",
    "DecisionOutcome",
    "approve",
    "disapprove",
    "handle_new_records",
    "build_approval_card",
    "build_decision_card",
    "build_template_card",
    "parse_application_record",
]
