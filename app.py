"""Application entry point for the Danta banner approval bridge."""

from __future__ import annotations

import logging
from pathlib import Path
from uuid import uuid4

from dotenv import load_dotenv
from flask import Flask, jsonify, request
import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from danta_auto_tool.actions import parse_card_action
from danta_auto_tool.background import run_async
from danta_auto_tool.banners.cards import build_callback_response, build_decision_card, build_toast
from danta_auto_tool.banners.decisions import approve, disapprove, handle_new_records
from danta_auto_tool.banners.models import BannerValidationError
from danta_auto_tool.clients import get_github_client, get_lark_client
from danta_auto_tool.config import AppSettings, get_settings
from danta_auto_tool.events import (
    EVENT_BITABLE_RECORD_CHANGED,
    EVENT_CARD_ACTION_TRIGGER,
    EVENT_MESSAGE_RECEIVE,
    added_record_ids,
    parse_envelope,
    parse_incoming_message,
)
from danta_auto_tool.github_client import GithubApiError, GithubClient, GithubConflictError
from danta_auto_tool.lark_client import (
    MSG_TYPE_TEXT,
    RECEIVE_ID_TYPE_CHAT_ID,
    LarkApiError,
    LarkClient,
)
from danta_auto_tool.logging_config import configure_logging
from danta_auto_tool.security import extract_token, is_encrypted, is_url_verification, is_valid_token

logger = logging.getLogger(__name__)

UNPARSABLE_MESSAGE_REPLY = "Failed to parse the message, please send a text message."


def _register_error_handlers(flask_app: Flask) -> None:
    """Register a JSON error handler that attaches a trace identifier."""

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        trace_id = str(uuid4())
        flask_app.logger.exception(
            "Unhandled application error", extra={"trace_id": trace_id}, exc_info=error
        )
        response = jsonify({"error": "internal_server_error", "trace_id": trace_id})
        response.status_code = 500
        return response


def _error_response(error: str, status_code: int):
    response = jsonify({"error": error})
    response.status_code = status_code
    return response


def _handle_bitable_record_changed(event: dict, *, lark: LarkClient, settings: AppSettings) -> int:
    log = structlog.get_logger()
    file_token = event.get("file_token")
    if not file_token:
        log.error("bitable_event_missing_file_token")
        return 0
    table_id = event.get("table_id")
    log = log.bind(file_token=file_token, table_id=table_id)
    if file_token != settings.bitable_app_token or (table_id and table_id != settings.application_table_id):
        log.info("bitable_event_ignored", reason="not the application table")
        return 0
    record_ids = added_record_ids(event)
    log.info("bitable_records_changed", added=len(record_ids))
    return handle_new_records(lark=lark, settings=settings, record_ids=record_ids)


def _handle_card_action(
    event: dict,
    *,
    lark: LarkClient,
    github: GithubClient,
    settings: AppSettings,
) -> dict:
    log = structlog.get_logger()
    try:
        context = parse_card_action(event)
    except ValueError as exc:
        log.warning("invalid_card_action", error=str(exc))
        return build_callback_response(
            build_toast("error", "This card action is invalid.", "卡片操作无效")
        )
    if context is None:
        log.info("card_action_ignored", tag=(event.get("action") or {}).get("tag"))
        return {}

    decision = context.decision
    log = log.bind(
        decision=decision.action,
        banner_title=decision.application.title,
        operator_id=context.operator_id,
        message_id=context.message_id,
    )
    log.info("card_action_received")

    if not decision.approved:
        outcome = disapprove(lark=lark, settings=settings, decision=decision)
        note = None if outcome.complete else "Follow-up failed: " + "; ".join(outcome.failures)
        return build_callback_response(
            build_toast("info", "Disapproved!", "已驳回"),
            build_decision_card(decision, operator_id=context.operator_id, note=note),
        )

    try:
        outcome = approve(lark=lark, github=github, settings=settings, decision=decision)
    except GithubConflictError as exc:
        log.warning("banner_config_conflict", error=str(exc))
        return build_callback_response(
            build_toast(
                "error",
                "The config file changed in the meantime, please approve again.",
                "配置文件已被修改，请重新审批",
            )
        )
    except (GithubApiError, BannerValidationError) as exc:
        log.error("banner_config_update_failed", error=str(exc))
        return build_callback_response(
            build_toast("error", "Failed to update the banner config.", "更新 Banner 配置失败")
        )

    if outcome.complete:
        toast = build_toast("success", "Approved!", "已通过")
        note = None
    else:
        toast = build_toast("warning", "Approved, but some follow-up steps failed.", "已通过，但部分后续步骤失败")
        note = "Follow-up failed: " + "; ".join(outcome.failures)
    return build_callback_response(
        toast,
        build_decision_card(decision, operator_id=context.operator_id, note=note),
    )


def _handle_message_receive(event: dict, *, lark: LarkClient, settings: AppSettings) -> None:
    log = structlog.get_logger()
    if not settings.echo_messages:
        log.debug("message_echo_disabled")
        return
    message = parse_incoming_message(event)
    if message.from_app:
        return
    reply = UNPARSABLE_MESSAGE_REPLY if message.text is None else f"Received message: {message.text}"
    if message.chat_type == "p2p":
        lark.send_text(receive_id_type=RECEIVE_ID_TYPE_CHAT_ID, receive_id=message.chat_id, text=reply)
    else:
        lark.reply_message(message_id=message.message_id, msg_type=MSG_TYPE_TEXT, content={"text": reply})
    log.info("message_echoed", chat_type=message.chat_type, message_id=message.message_id)


_BACKGROUND_HANDLERS = {
    EVENT_BITABLE_RECORD_CHANGED: _handle_bitable_record_changed,
    EVENT_MESSAGE_RECEIVE: _handle_message_receive,
}


def _process_event(event_type: str, event: dict, settings: AppSettings) -> None:
    """Run a queued event handler and log, rather than raise, its failures."""

    log = structlog.get_logger().bind(event_type=event_type)
    handler = _BACKGROUND_HANDLERS[event_type]
    try:
        handler(event, lark=get_lark_client(), settings=settings)
    except (LarkApiError, GithubApiError) as exc:
        log.error(
            "event_handler_failed",
            error=str(exc),
            status_code=getattr(exc, "status_code", None),
            code=getattr(exc, "code", None),
        )
    except ValueError as exc:
        log.warning("event_payload_invalid", error=str(exc))
    except Exception:
        logger.exception("Unexpected error while handling Lark event", extra={"event_type": event_type})


_LOGGING_CONFIGURED = False


def _load_version() -> str:
    version_file = Path(__file__).resolve().parent / "VERSION"
    if version_file.exists():
        return version_file.read_text(encoding="utf-8").strip()
    return "unknown"


def create_app() -> Flask:
    """Create and configure the Flask application."""

    global _LOGGING_CONFIGURED
    load_dotenv()
    settings = get_settings()
    if not _LOGGING_CONFIGURED:
        configure_logging(settings.log_level)
        _LOGGING_CONFIGURED = True

    flask_app = Flask(__name__)
    flask_app.config["APP_VERSION"] = _load_version()
    flask_app.logger.setLevel(settings.log_level)

    _register_error_handlers(flask_app)

    @flask_app.route("/lark/events", methods=["POST"])
    @flask_app.route("/lark/cards", methods=["POST"], endpoint="lark_cards")
    def lark_events():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return _error_response("invalid_payload", 400)
        if is_encrypted(payload):
            return _error_response("encrypted_payload_unsupported", 400)
        if not is_valid_token(settings.lark_verification_token, extract_token(payload)):
            return _error_response("invalid_token", 401)
        if is_url_verification(payload):
            return jsonify({"challenge": payload["challenge"]})

        try:
            envelope = parse_envelope(payload)
        except ValueError:
            return _error_response("invalid_payload", 400)

        event_type = envelope.header.event_type
        trace_id = envelope.header.event_id or str(uuid4())
        log = structlog.get_logger().bind(trace_id=trace_id, event_type=event_type)

        if event_type == EVENT_CARD_ACTION_TRIGGER:
            bind_contextvars(trace_id=trace_id)
            try:
                response = _handle_card_action(
                    envelope.event,
                    lark=get_lark_client(),
                    github=get_github_client(),
                    settings=settings,
                )
            finally:
                unbind_contextvars("trace_id")
            return jsonify(response)

        if event_type in _BACKGROUND_HANDLERS:
            log.info("event_queued")
            run_async(
                _process_event,
                event_type,
                envelope.event,
                settings,
                trace_id=trace_id,
                log_context={"event_type": event_type},
            )
        else:
            log.info("event_ignored")
        return jsonify({})

    @flask_app.route("/healthz", methods=["GET"])
    def healthz():
        health: dict[str, object] = {"ok": True}
        health["version"] = flask_app.config.get("APP_VERSION", "unknown")
        try:
            get_settings()
            health["config"] = "valid"
        except Exception as exc:
            health["config"] = "invalid"
            health["config_error"] = str(exc)
            health["ok"] = False
        status = 200 if health["ok"] else 503
        return jsonify(health), status

    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application = create_app()
    application.run(host="0.0.0.0", port=3000)
