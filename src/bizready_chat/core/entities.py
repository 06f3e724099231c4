from __future__ import annotations

import logging
import re
import string
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from rapidfuzz.distance import Levenshtein

from bizready_chat.core.line_source import iter_records

logger = logging.getLogger(__name__)

# Economy names shorter than this never take part in substring matching,
# and question words shorter than this are never fuzzy-matched.
MIN_ECONOMY_CHARS = 4
FUZZY_THRESHOLD = 0.85

# ---------------------------------------------------------------------------
# Topic rules
#
# Ordered: the first group with a keyword present in the question wins.
# Keywords match at a word start, so "tax" hits "taxation" but not "syntax".
# ---------------------------------------------------------------------------

TOPIC_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("business location", "property transfer", "land registry", "cadastre"), "Business Location"),
    (("business entry", "incorporation", "starting a business", "start a business"), "Business Entry"),
    (("labor", "labour", "employment"), "Labor"),
    (("utility", "utilities", "electric", "water"), "Utility Services"),
    (("financial services", "credit", "lending", "collateral"), "Financial Services"),
    (("international trade", "export", "imports", "importing", "customs"), "International Trade"),
    (("tax",), "Taxation"),
    (("dispute resolution", "court", "litigation", "arbitration"), "Dispute Resolution"),
    (("market competition", "competition", "procurement"), "Market Competition"),
    (("insolvency", "bankruptcy"), "Business Insolvency"),
)

_TOPIC_PATTERNS = [
    (re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + ")"), label)
    for keywords, label in TOPIC_RULES
]


def normalize_name(text: object) -> str:
    """Case- and whitespace-fold a name for comparisons."""
    if text is None:
        return ""
    return " ".join(str(text).split()).lower()


class VocabularyCache:
    """
    Economy and topic vocabulary derived from the score file.

    Built lazily on first use and then read-only for the life of the process.
    The build is guarded by a lock, so concurrent first requests trigger one
    scan, not several interleaved ones.
    """

    def __init__(self, scores_path: Union[str, Path]) -> None:
        self.scores_path = Path(scores_path)
        self._lock = threading.Lock()
        self._initialized = False
        self._display: Dict[str, str] = {}
        self._economies: List[str] = []
        self._topics: Set[str] = set()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def ensure_loaded(self, refresh: bool = False) -> "VocabularyCache":
        if self._initialized and not refresh:
            return self

        with self._lock:
            if self._initialized and not refresh:
                return self
            self._build()
        return self

    def _build(self) -> None:
        logger.info("Building economy/topic vocabulary from %s", self.scores_path)

        display: Dict[str, str] = {}
        topics: Set[str] = set()
        for row in iter_records(self.scores_path):
            econ = row.get("Economy") or row.get("economy")
            if econ:
                key = normalize_name(econ)
                if key and key not in display:
                    display[key] = " ".join(str(econ).split())
            topic = row.get("topic")
            if topic:
                topics.add(normalize_name(topic))

        # Publish only once the scan has completed
        self._display = display
        self._economies = list(display)
        self._topics = topics
        self._initialized = True

        logger.info("Vocabulary ready: %s economies, %s topics", len(display), len(topics))

    @property
    def economies(self) -> List[str]:
        """Normalized economy names in the order they first appear in the score file."""
        self.ensure_loaded()
        return list(self._economies)

    @property
    def topics(self) -> List[str]:
        self.ensure_loaded()
        return sorted(self._topics)

    def display_name(self, economy: str) -> str:
        self.ensure_loaded()
        return self._display.get(normalize_name(economy), economy)


# ---------------------------------------------------------------------------
# Economy detection
# ---------------------------------------------------------------------------

def _match_substring(text: str, economies: Sequence[str]) -> Optional[str]:
    best = ""
    for econ in economies:
        if len(econ) < MIN_ECONOMY_CHARS:
            continue
        if econ in text and len(econ) > len(best):
            best = econ
    return best or None


def _match_fuzzy(text: str, economies: Sequence[str]) -> Optional[str]:
    for raw in text.split():
        word = raw.strip(string.punctuation)
        if len(word) < MIN_ECONOMY_CHARS:
            continue
        for econ in economies:
            if Levenshtein.normalized_similarity(word, econ) > FUZZY_THRESHOLD:
                logger.info("Fuzzy economy match: %r -> %r", word, econ)
                return econ
    return None


def detect_economy(question: str, economies: Sequence[str]) -> Optional[str]:
    """
    Find the economy a question is about.

    Longest exact (normalized) substring first; otherwise the first economy,
    in the order given, whose normalized Levenshtein similarity to a question
    word exceeds FUZZY_THRESHOLD. Returns the normalized economy name or None.
    """
    text = normalize_name(question)
    if not text:
        return None
    return _match_substring(text, economies) or _match_fuzzy(text, economies)


def detect_topic(question: str) -> Optional[str]:
    q = normalize_name(question)
    for pattern, label in _TOPIC_PATTERNS:
        if pattern.search(q):
            return label
    return None


def strip_economy(question: str, economy: Optional[str]) -> str:
    """Remove the economy phrase so it does not count towards keyword scores."""
    if not economy or not economy.split():
        return question
    pattern = r"\s+".join(re.escape(part) for part in economy.split())
    return re.sub(pattern, " ", question, flags=re.IGNORECASE)
