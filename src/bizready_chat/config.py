from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Root of the project (repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Data directory holding the two pre-built gzip JSONL files
DATA_DIR = Path(os.getenv("BIZREADY_DATA_DIR", "").strip() or PROJECT_ROOT / "data")

# One row per (economy, topic) with the numeric overall/pillar scores
SCORES_PATH = Path(os.getenv("BIZREADY_SCORES_PATH", "").strip() or DATA_DIR / "topic_scores.jsonl.gz")

# One row per (economy, topic, survey variable) with question + response text
ANSWERS_PATH = Path(os.getenv("BIZREADY_ANSWERS_PATH", "").strip() or DATA_DIR / "econ_answers.jsonl.gz")

# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "Business Ready 2025 Data Chatbot"
APP_VERSION = "0.1.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# ---------------------------------------------------------------------------
# Language model (summarizer) configuration
#
# Any OpenAI-compatible chat-completions endpoint works. When OPENAI_API_KEY
# is empty the chatbot answers with the raw retrieved context instead.
# ---------------------------------------------------------------------------

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o").strip() or "gpt-4o"
OPENAI_CHAT_URL = os.getenv(
    "OPENAI_CHAT_URL",
    "https://api.openai.com/v1/chat/completions",
).strip()
OPENAI_TIMEOUT_SECONDS = int(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

# ---------------------------------------------------------------------------
# Retrieval limits
#
# MIN_KEYWORD_SCORE only applies to keyword (non-ranking) searches; ranking
# questions ("top", "best", ...) keep every row of the matching economy/topic.
# ---------------------------------------------------------------------------

MAX_SCORE_ROWS = 50
MAX_ANSWER_ROWS = 40
GLOBAL_TOP_ROWS = 10
MIN_KEYWORD_SCORE = 1

HISTORY_TURNS = 8
RESPONSE_SNIPPET_CHARS = 400
