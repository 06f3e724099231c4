from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Sequence, Union

# ---------------------------------------------------------------------------
# Query vocabulary
#
# Plain data so the tables can be tested and extended without touching the
# scoring functions. Synonym targets may contain spaces ("utility services");
# they are matched as one phrase against the record haystack.
# ---------------------------------------------------------------------------

SYNONYMS: Mapping[str, str] = {
    "jobs": "labor",
    "employment": "labor",
    "work": "labor",
    "electricity": "utility services",
    "power": "utility services",
    "starting": "business entry",
    "incorporation": "business entry",
    "property": "business location",
    "taxes": "taxation",
}

STOP_WORDS = frozenset(
    {
        # function words
        "the", "and", "for", "with", "what", "does", "say", "about", "from",
        "into", "that", "this", "are", "was", "were", "how", "when", "which",
        "give", "show", "list", "tell", "summarize", "summary", "compare",
        "between", "across", "all", "any", "please",
        # domain filler
        "data", "dataset", "topic", "topics", "economy", "economies",
    }
)

MIN_TOKEN_LENGTH = 3

# Designated haystack fields, fixed per file family
SCORE_HAYSTACK_FIELDS = ("economy", "Economy", "Economy Code", "topic")
ANSWER_HAYSTACK_FIELDS = ("economy", "Economy", "topic", "var", "question", "response")

_NON_WORD_RE = re.compile(r"[^a-z0-9_]+")


def _resolve_terms(terms: Iterable[str]) -> List[str]:
    tokens: List[str] = []
    for raw in terms:
        term = raw.strip()
        term = SYNONYMS.get(term, term)
        if len(term) < MIN_TOKEN_LENGTH or term in STOP_WORDS:
            continue
        tokens.append(term)
    return tokens


def tokenize(query: Union[str, Sequence[str], None]) -> List[str]:
    """
    Turn a query into scoring tokens.

    A string is lower-cased, split on runs of non [a-z0-9_] characters, mapped
    through SYNONYMS and filtered (length >= 3, not a stop word). Order and
    repeats are preserved.

    A list of tokens is treated as already split: each element is one term, so
    tokenize(tokenize(q)) == tokenize(q) even for multi-word synonyms.
    """
    if query is None:
        return []
    if isinstance(query, str):
        return _resolve_terms(_NON_WORD_RE.sub(" ", query.lower()).split(" "))
    return _resolve_terms(str(t).lower() for t in query)


def build_haystack(record: Mapping[str, Any], fields: Sequence[str]) -> str:
    """Join the non-empty designated fields of a record with ' | '."""
    parts = []
    for f in fields:
        v = record.get(f)
        if v is None or v == "":
            continue
        parts.append(str(v))
    return " | ".join(parts)


def score_text(haystack: str, tokens: Sequence[str]) -> int:
    """
    Count the tokens that occur anywhere in the haystack (substring match,
    case-insensitive). A token repeated in the query counts once per repeat.
    """
    if not haystack or not tokens:
        return 0
    text = haystack.lower()
    return sum(1 for tok in tokens if tok in text)
