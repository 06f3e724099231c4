from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from bizready_chat.config import (
    HISTORY_TURNS,
    OPENAI_API_KEY,
    OPENAI_CHAT_URL,
    OPENAI_MODEL,
    OPENAI_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a data-grounded assistant for the Business Ready 2025 dataset. "
    "Answer ONLY using the provided CONTEXT. "
    "If the context is insufficient, say what is missing and suggest a more specific question. "
    "When you use a fact, cite the row IDs like (E3) or (S2). "
    "If the question misspells an economy, use the corrected name from the context. "
    "Prefer precise values and Markdown tables when comparing economies; avoid speculation."
)

ALLOWED_ROLES = frozenset({"user", "assistant"})


class SummarizerError(Exception):
    """Raised when the language model call fails or returns an unexpected shape."""


class SummarizerNotConfigured(SummarizerError):
    """Raised when no API key is available."""


def trim_history(history: Any, turns: int = HISTORY_TURNS) -> List[Dict[str, str]]:
    """
    Keep the last `turns` well-formed {role, content} messages.

    Anything that is not a user/assistant message with string content is
    dropped (a caller cannot inject its own system prompt).
    """
    if not isinstance(history, (list, tuple)):
        return []

    cleaned: List[Dict[str, str]] = []
    for item in history:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if role not in ALLOWED_ROLES or not isinstance(content, str):
            logger.warning("Dropping history entry with role=%r", role)
            continue
        cleaned.append({"role": role, "content": content})

    return cleaned[-turns:] if turns > 0 else []


def build_messages(question: str, history: Sequence[Dict[str, str]], context: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        *history,
        {"role": "user", "content": f"QUESTION:\n{question}\n\nCONTEXT:\n{context}"},
    ]


def _build_session() -> requests.Session:
    """
    Session with connection pooling and no automatic retries: a failed
    completion is reported to the caller, never re-sent.
    """
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False), pool_connections=4, pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class Summarizer:
    """Thin client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENAI_MODEL,
        url: str = OPENAI_CHAT_URL,
        timeout_seconds: int = OPENAI_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = OPENAI_API_KEY if api_key is None else api_key
        self.model = model
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session = session

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = _build_session()
        return self._session

    def summarize(self, question: str, history: Sequence[Dict[str, str]], context: str) -> str:
        if not self.is_configured:
            raise SummarizerNotConfigured("OPENAI_API_KEY is not set.")

        payload = {"model": self.model, "messages": build_messages(question, history, context)}
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        try:
            resp = self._get_session().post(self.url, json=payload, headers=headers, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise SummarizerError(f"HTTP error while calling the language model: {exc}") from exc

        if not resp.ok:
            preview = (resp.text or "")[:200]
            raise SummarizerError(f"Language model API error ({resp.status_code}): {preview}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise SummarizerError(f"Non-JSON response from language model (status={resp.status_code})") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise SummarizerError(f"Unexpected language model response shape: {str(data)[:200]}") from exc

        return (content or "").strip() or "(No output)"
