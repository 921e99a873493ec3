"""AI assistant answering questions about the tracked assets."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from tracker.models import STATUS_LABELS, Asset

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_MESSAGES = 40

BASE_PROMPT = """You are the assistant for the missing-assets tracker, a tool for tracking missing game assets in an online casino/gaming company.

Your knowledge is LIMITED to these topics only:
- Missing game assets (images, thumbnails, banners) for casino games
- Asset statuses: not-started, ongoing, completed, exported, uploaded
- Designers who work on assets
- Brands that need assets reflected
- Providers (game studios)
- Workflow: Finding missing assets -> Assigning to designer -> Design work -> Export -> Upload -> Reflect to brands

You can help with:
- Answering questions about current assets and their statuses
- Telling users which assets are assigned to which designer
- Reporting on asset progress
- Explaining asset tracking workflows
- Suggesting how to prioritize missing assets
- Drafting messages to designers about pending work

DO NOT answer questions unrelated to asset management, game assets, or this application. Politely redirect users back to asset-related topics.

Keep responses concise and professional. Use Markdown formatting for better readability."""


class ChatServiceError(RuntimeError):
    """Raised when the chat completion request fails."""


class ChatUnavailableError(ChatServiceError):
    """Raised when no OpenAI client is configured."""


class InvalidTranscriptError(ValueError):
    """Raised when the submitted transcript cannot be sent."""


def _names(entries: Iterable[Mapping[str, Any]]) -> str:
    return ", ".join(str(entry.get("name")) for entry in entries if entry.get("name"))


def _asset_line(asset: Asset) -> str:
    designer = asset.designer.name if asset.designer else "Unassigned"
    line = (
        f'- "{asset.game_name}" ({asset.provider or "Unknown"}) - Status: {asset.status}, '
        f"Designer: {designer}, Found by: {asset.found_by} on {asset.date_found}"
    )
    if asset.notes:
        line += f", Notes: {asset.notes}"
    return line


def build_system_prompt(
    assets: Sequence[Asset] | None = None,
    *,
    providers: Iterable[Mapping[str, Any]] = (),
    brands: Iterable[Mapping[str, Any]] = (),
    designers: Iterable[Mapping[str, Any]] = (),
) -> str:
    """Return the system prompt with a snapshot of the current data embedded."""

    if assets is None:
        return BASE_PROMPT

    status_lines = "\n".join(
        f"- {label}: {sum(1 for asset in assets if asset.status == status)}"
        for status, label in STATUS_LABELS.items()
    )
    asset_lines = "\n".join(_asset_line(asset) for asset in assets)
    return (
        f"{BASE_PROMPT}\n\n"
        "CURRENT DATABASE STATE (Use this to answer user questions):\n\n"
        f"PROVIDERS: {_names(providers)}\n\n"
        f"BRANDS: {_names(brands)}\n\n"
        f"DESIGNERS: {_names(designers)}\n\n"
        f"MISSING ASSETS ({len(assets)} total):\n{asset_lines}\n\n"
        f"STATUS SUMMARY:\n{status_lines}"
    )


def normalize_transcript(messages: Any) -> list[dict[str, str]]:
    """Validate the visible transcript; the last message must come from the user."""

    if not isinstance(messages, list) or not messages:
        raise InvalidTranscriptError("messages must be a non-empty list")
    transcript: list[dict[str, str]] = []
    for entry in messages:
        if not isinstance(entry, Mapping):
            raise InvalidTranscriptError("each message must be an object")
        role = entry.get("role")
        content = entry.get("content")
        if role not in {"user", "assistant"}:
            raise InvalidTranscriptError(f"unsupported role: {role}")
        if not isinstance(content, str) or not content.strip():
            raise InvalidTranscriptError("message content must be a non-empty string")
        transcript.append({"role": role, "content": content.strip()})
    if transcript[-1]["role"] != "user":
        raise InvalidTranscriptError("the last message must come from the user")
    return transcript[-MAX_TRANSCRIPT_MESSAGES:]


class ChatAssistant:
    """Send a transcript plus the data snapshot to the chat completions API."""

    def __init__(self, client: Any | None, *, model: str = "gpt-4o-mini"):
        self.client = client
        self.model = model

    @property
    def available(self) -> bool:
        return self.client is not None

    def reply(self, messages: Any, *, system_prompt: str) -> str:
        transcript = normalize_transcript(messages)
        if self.client is None:
            raise ChatUnavailableError("AI chat is not configured")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": system_prompt}, *transcript],
                temperature=0.4,
            )
        except Exception as exc:  # pragma: no cover - relies on external service
            logger.warning("OpenAI chat completion failed: %s", exc)
            raise ChatServiceError("chat completion failed") from exc

        choice = (response.choices or [None])[0]
        message = getattr(choice, "message", None)
        content = getattr(message, "content", None)
        if not content:
            logger.warning("OpenAI chat response missing content")
            raise ChatServiceError("chat completion returned no content")
        return content.strip()


__all__ = [
    "BASE_PROMPT",
    "ChatAssistant",
    "ChatServiceError",
    "ChatUnavailableError",
    "InvalidTranscriptError",
    "build_system_prompt",
    "normalize_transcript",
]
