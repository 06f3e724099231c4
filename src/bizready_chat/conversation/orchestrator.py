from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from bizready_chat.core.query_engine import QueryEngine, QueryResult, Route
from bizready_chat.conversation.summarizer import Summarizer, SummarizerError, trim_history

logger = logging.getLogger(__name__)

NOT_CONFIGURED_NOTICE = (
    "The language model service is not configured (OPENAI_API_KEY is not set), "
    "so I can't generate a natural-language answer yet.\n\n"
    "Here are the most relevant dataset rows I found:\n\n"
)

MISSING_MESSAGE_ERROR = "Missing message"
DATASET_ERROR = "Failed to search the dataset. Please try again later."


@dataclass
class ChatTurn:
    response: Dict[str, str]            # {"answer": ...} or {"error": ...}
    result: Optional[QueryResult] = None


class ChatOrchestrator:
    """
    Handles one chat request: {message, history} in, {answer} or {error} out.

    Direct lookups are answered from the score row itself; searches go to the
    summarizer, or come back as the raw context when it is not configured.
    """

    def __init__(self, engine: QueryEngine, summarizer: Optional[Summarizer] = None) -> None:
        self.engine = engine
        self.summarizer = summarizer or Summarizer()

    def handle(self, payload: Any) -> Dict[str, str]:
        return self.respond(payload).response

    def respond(self, payload: Any) -> ChatTurn:
        if not isinstance(payload, Mapping):
            return ChatTurn({"error": MISSING_MESSAGE_ERROR})

        raw = payload.get("message")
        message = raw.strip() if isinstance(raw, str) else ""
        if not message:
            return ChatTurn({"error": MISSING_MESSAGE_ERROR})

        history = trim_history(payload.get("history"))

        try:
            result = self.engine.run(message)
        except Exception:
            # Any scan failure is logged with its traceback and reported generically
            logger.exception("Dataset scan failed for message=%r", message)
            return ChatTurn({"error": DATASET_ERROR})

        if result.route is Route.DIRECT_LOOKUP:
            return ChatTurn({"answer": result.context}, result)

        if not self.summarizer.is_configured:
            return ChatTurn({"answer": NOT_CONFIGURED_NOTICE + result.context}, result)

        try:
            answer = self.summarizer.summarize(message, history, result.context)
        except SummarizerError as exc:
            logger.error("Summarizer failed: %s", exc)
            return ChatTurn({"error": f"Summarizer request failed: {exc}"}, result)

        return ChatTurn({"answer": answer}, result)
