from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Mapping, Sequence

from bizready_chat.config import RESPONSE_SNIPPET_CHARS
from bizready_chat.core.topk import ScoredCandidate

if TYPE_CHECKING:
    from bizready_chat.core.query_engine import DirectLookupResult

# Section headers. The S<n>/E<n> labels below them are the only citation keys
# the summarizer is allowed to use.
GLOBAL_HEADER = "GLOBAL TOP PERFORMERS:"
SCORES_HEADER = "SCORES (topic-level and pillar/category scores):"
ANSWERS_HEADER = "ECONOMY ANSWERS (survey questions + economy responses):"

ELLIPSIS = "..."

# Keys that signal a summary metric on a score row
METRIC_KEY_MARKERS = ("overall", "score", "index", "pillar")

# Identity fields are printed once at the start of the line, not repeated
_IDENTITY_KEYS = frozenset({"economy", "Economy", "Economy Code", "topic"})


def _economy_of(record: Mapping[str, Any]) -> str:
    return str(record.get("Economy") or record.get("economy") or "")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_metric_key(key: str) -> bool:
    k = key.lower()
    return any(m in k for m in METRIC_KEY_MARKERS)


def score_fields(record: Mapping[str, Any]) -> List[str]:
    """'key: value' strings for the metric-named or numeric fields of a score row."""
    entries: List[str] = []
    for k, v in record.items():
        if k in _IDENTITY_KEYS or v is None or v == "":
            continue
        if is_metric_key(k) or _is_number(v):
            entries.append(f"{k}: {v}")
    return entries


def truncate(text: str, limit: int = RESPONSE_SNIPPET_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def format_score_line(label: str, record: Mapping[str, Any]) -> str:
    parts = [f"Economy={_economy_of(record)}", f"Topic={record.get('topic') or ''}"]
    parts.extend(score_fields(record))
    return f"{label}. " + "; ".join(parts)


def format_answer_line(label: str, record: Mapping[str, Any]) -> str:
    response = truncate(str(record.get("response") or ""))
    return (
        f"{label}. Economy={_economy_of(record)}; Topic={record.get('topic') or ''}; "
        f"Var={record.get('var') or ''}; Q={record.get('question') or ''}; A={response}"
    )


def assemble_context(
    score_matches: Sequence[ScoredCandidate],
    answer_matches: Sequence[ScoredCandidate],
    global_matches: Sequence[ScoredCandidate] = (),
) -> str:
    """
    Render retrieved rows as one citation-indexed text block.

    Sections, in order and only when non-empty:
      - GLOBAL TOP PERFORMERS (benchmark rows, labelled S1..Sg)
      - SCORES (labels continue after the benchmark rows)
      - ECONOMY ANSWERS (labelled E1..En)

    Labels follow the order of the input sequences. The output depends only
    on the inputs, so the same candidates always give the same string.
    """
    blocks: List[str] = []
    n = 0

    if global_matches:
        lines = [GLOBAL_HEADER]
        for cand in global_matches:
            n += 1
            lines.append(format_score_line(f"S{n}", cand.record))
        blocks.append("\n".join(lines))

    if score_matches:
        lines = [SCORES_HEADER]
        for cand in score_matches:
            n += 1
            lines.append(format_score_line(f"S{n}", cand.record))
        blocks.append("\n".join(lines))

    if answer_matches:
        lines = [ANSWERS_HEADER]
        for i, cand in enumerate(answer_matches, start=1):
            lines.append(format_answer_line(f"E{i}", cand.record))
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks)


def format_lookup_answer(result: "DirectLookupResult") -> str:
    """Deterministic answer text for a direct (economy, topic) score lookup."""
    if result.record is None:
        return (
            f"No score row found for economy '{result.economy_display}' "
            f"and topic '{result.topic}'."
        )

    heading = f"{_economy_of(result.record) or result.economy_display} — {result.record.get('topic') or result.topic}"
    source = format_score_line("S1", result.record)

    if not result.overall_fields:
        return (
            f"{heading}\n"
            "The score row was found but it has no overall field.\n\n"
            f"Source:\n{source}"
        )

    key, value = result.overall_fields[0]
    lines = [heading, f"Overall: {value} ({key}) (S1)"]
    others = result.overall_fields[1:]
    if others:
        lines.append("Other overall fields: " + "; ".join(f"{k}: {v}" for k, v in others))
    lines.append("")
    lines.append(f"Source:\n{source}")
    return "\n".join(lines)
