"""AI assistant routes."""

from __future__ import annotations

from typing import Any, Mapping

from flask import Blueprint, jsonify

from lookups import service as lookups_service
from routes.api_utils import (
    BadRequestError,
    ServiceUnavailableError,
    UpstreamServiceError,
    get_json_payload,
    handle_api_errors,
)
from services import chat as chat_service

chat_blueprint = Blueprint("chat", __name__, url_prefix="/api/chat")

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"chat routes missing context value: {key}")
    return _context[key]


@chat_blueprint.route("/status")
@handle_api_errors
def chat_status():
    return jsonify({"available": _ctx("services").chat.available})


@chat_blueprint.route("", methods=["POST"])
@handle_api_errors
def chat_reply():
    services = _ctx("services")
    payload = get_json_payload()
    try:
        transcript = chat_service.normalize_transcript(payload.get("messages"))
    except chat_service.InvalidTranscriptError as exc:
        raise BadRequestError(str(exc)) from exc
    if not services.chat.available:
        raise ServiceUnavailableError("AI chat is not configured")

    with services.db.sa_connection() as conn:
        providers = lookups_service.list_all_entries(conn, "providers")
        brands = lookups_service.list_all_entries(conn, "brands")
        designers = lookups_service.list_all_entries(conn, "designers")
    prompt = chat_service.build_system_prompt(
        services.store.snapshot(),
        providers=providers,
        brands=brands,
        designers=designers,
    )

    try:
        reply = services.chat.reply(transcript, system_prompt=prompt)
    except chat_service.ChatServiceError as exc:
        raise UpstreamServiceError("AI assistant request failed") from exc
    return jsonify({"reply": reply, "role": "assistant"})
