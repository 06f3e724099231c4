from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import logging
import math
import re

import pandas as pd

from bizready_chat.config import (
    ANSWERS_PATH,
    GLOBAL_TOP_ROWS,
    MAX_ANSWER_ROWS,
    MAX_SCORE_ROWS,
    MIN_KEYWORD_SCORE,
    SCORES_PATH,
)
from bizready_chat.core.context import assemble_context, format_lookup_answer
from bizready_chat.core.entities import (
    VocabularyCache,
    detect_economy,
    detect_topic,
    normalize_name,
    strip_economy,
)
from bizready_chat.core.line_source import iter_records
from bizready_chat.core.scoring import (
    ANSWER_HAYSTACK_FIELDS,
    SCORE_HAYSTACK_FIELDS,
    build_haystack,
    score_text,
    tokenize,
)
from bizready_chat.core.topk import ScoredCandidate, TopK

logger = logging.getLogger(__name__)

# Questions asking for a leaderboard rather than a keyword match. Anchored at a
# word start, so "ranking" and "leaders" count but "stop" and "desktop" do not;
# a bare substring test would also fire on those.
RANKING_RE = re.compile(r"\b(?:top|best|highest|rank|leader)", re.IGNORECASE)

# Questions asking for "the overall score" of one economy
OVERALL_INTENT_RE = re.compile(r"\b(?:overall|scores?)\b", re.IGNORECASE)

# Topics whose score rows can answer an overall-score question directly
DIRECT_LOOKUP_TOPICS = frozenset({"Business Location"})

# Designated ranking fields, tried after "<record topic> Overall"
RANKING_FIELDS = ("Business Location Overall", "Business Entry Overall", "Overall Score")

GLOBAL_BENCHMARK_QUERY = "overall score"


class QueryEngineError(Exception):
    """Raised for questions the engine cannot process."""


class Route(str, Enum):
    DIRECT_LOOKUP = "direct_lookup"
    RANKED_SEARCH = "ranked_search"


@dataclass(frozen=True)
class QueryContext:
    """Everything derived from the question once, before any scan."""
    question: str
    economy: Optional[str]            # normalized economy name
    economy_display: Optional[str]    # original-case form from the dataset
    topic: Optional[str]
    scoring_text: str                 # question with the economy phrase removed
    tokens: Tuple[str, ...]
    is_ranking: bool


@dataclass
class DirectLookupResult:
    economy: str
    economy_display: str
    topic: str
    record: Optional[Dict[str, Any]]
    overall_fields: List[Tuple[str, Any]] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.record is not None

    @property
    def overall_value(self) -> Any:
        return self.overall_fields[0][1] if self.overall_fields else None


@dataclass
class SearchResult:
    score_matches: List[ScoredCandidate]
    answer_matches: List[ScoredCandidate]
    global_matches: List[ScoredCandidate]


@dataclass
class QueryResult:
    query: QueryContext
    route: Route
    context: str
    lookup: Optional[DirectLookupResult] = None
    search: Optional[SearchResult] = None


# ---------------------------------------------------------------------------
# Record helpers
# ---------------------------------------------------------------------------

def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def overall_value(record: Dict[str, Any]) -> float:
    """
    Numeric ranking key of a score row.

    Tries "<topic> Overall", then the designated RANKING_FIELDS, then any
    other key containing "overall"; 0.0 when none parses.
    """
    keys: List[str] = []
    topic = record.get("topic")
    if topic:
        keys.append(f"{topic} Overall")
    keys.extend(RANKING_FIELDS)
    keys.extend(k for k in record if "overall" in k.lower())

    for k in keys:
        v = _to_float(record.get(k))
        if v is not None:
            return v
    return 0.0


def _matches_filter(record: Dict[str, Any], value: Optional[str], *fields: str) -> bool:
    """Case-insensitive equality filter; records lacking the field pass."""
    if not value:
        return True
    for f in fields:
        raw = record.get(f)
        if raw:
            return normalize_name(raw) == normalize_name(value)
    return True


def candidates_frame(candidates: Sequence[ScoredCandidate]) -> pd.DataFrame:
    """Tabular view of candidates (rank, score, then record fields) for display."""
    rows = []
    for rank, cand in enumerate(candidates, start=1):
        rows.append({"rank": rank, "score": cand.score, **cand.record})
    if not rows:
        return pd.DataFrame(columns=["rank", "score"])
    return pd.DataFrame.from_records(rows)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class QueryEngine:
    """
    Routes one question to a direct score lookup or a ranked multi-row search
    and builds the context block handed to the summarizer.

    The vocabulary cache is injected so that one instance can be shared by
    every request of the process.
    """

    def __init__(
        self,
        scores_path: Union[str, Path] = SCORES_PATH,
        answers_path: Union[str, Path] = ANSWERS_PATH,
        vocabulary: Optional[VocabularyCache] = None,
        *,
        max_score_rows: int = MAX_SCORE_ROWS,
        max_answer_rows: int = MAX_ANSWER_ROWS,
        global_top_rows: int = GLOBAL_TOP_ROWS,
        min_keyword_score: float = MIN_KEYWORD_SCORE,
    ) -> None:
        self.scores_path = Path(scores_path)
        self.answers_path = Path(answers_path)
        self.vocabulary = vocabulary or VocabularyCache(self.scores_path)
        self.max_score_rows = max_score_rows
        self.max_answer_rows = max_answer_rows
        self.global_top_rows = global_top_rows
        self.min_keyword_score = min_keyword_score

    # -- analysis -----------------------------------------------------------

    def analyze(self, question: str) -> QueryContext:
        question = (question or "").strip()
        if not question:
            raise QueryEngineError("Question must not be empty.")

        economy = detect_economy(question, self.vocabulary.economies)
        topic = detect_topic(question)
        scoring_text = strip_economy(question, economy)

        return QueryContext(
            question=question,
            economy=economy,
            economy_display=self.vocabulary.display_name(economy) if economy else None,
            topic=topic,
            scoring_text=scoring_text,
            tokens=tuple(tokenize(scoring_text)),
            is_ranking=bool(RANKING_RE.search(question)),
        )

    def choose_route(self, ctx: QueryContext) -> Route:
        if (
            ctx.economy
            and ctx.topic in DIRECT_LOOKUP_TOPICS
            and OVERALL_INTENT_RE.search(ctx.question)
        ):
            return Route.DIRECT_LOOKUP
        return Route.RANKED_SEARCH

    def run(self, question: str) -> QueryResult:
        ctx = self.analyze(question)
        route = self.choose_route(ctx)
        logger.info(
            "Running %s (economy=%s, topic=%s, ranking=%s, tokens=%s)",
            route.value, ctx.economy, ctx.topic, ctx.is_ranking, list(ctx.tokens),
        )

        if route is Route.DIRECT_LOOKUP:
            lookup = self.direct_lookup(ctx)
            return QueryResult(query=ctx, route=route, context=format_lookup_answer(lookup), lookup=lookup)

        search = self.ranked_search(ctx)
        context = assemble_context(search.score_matches, search.answer_matches, search.global_matches)
        return QueryResult(query=ctx, route=route, context=context, search=search)

    # -- direct lookup ------------------------------------------------------

    def direct_lookup(self, ctx: QueryContext) -> DirectLookupResult:
        if not ctx.economy or not ctx.topic:
            raise QueryEngineError("Direct lookup needs both an economy and a topic.")

        result = DirectLookupResult(
            economy=ctx.economy,
            economy_display=ctx.economy_display or ctx.economy,
            topic=ctx.topic,
            record=None,
        )
        want_topic = normalize_name(ctx.topic)

        for row in iter_records(self.scores_path):
            econ = normalize_name(row.get("Economy") or row.get("economy"))
            if econ != ctx.economy or normalize_name(row.get("topic")) != want_topic:
                continue
            result.record = row
            result.overall_fields = [(k, v) for k, v in row.items() if "overall" in k.lower()]
            break

        if result.record is None:
            logger.info("No score row for economy=%s topic=%s", ctx.economy, ctx.topic)
        return result

    # -- ranked search ------------------------------------------------------

    def search_file(
        self,
        path: Union[str, Path],
        tokens: Sequence[str],
        haystack_fields: Sequence[str],
        k: int,
        *,
        economy: Optional[str] = None,
        topic: Optional[str] = None,
        ranking: bool = False,
    ) -> List[ScoredCandidate]:
        """
        One full streaming scan of a dataset file into a private TopK.

        Ranking scans sort by the row's overall value and keep every row that
        passes the economy/topic filters; keyword scans sort by keyword score
        and drop rows below min_keyword_score.
        """
        best = TopK(k, min_score=None if ranking else self.min_keyword_score)

        def keyword_score(row: Dict[str, Any]) -> float:
            return score_text(build_haystack(row, haystack_fields), tokens)

        sort_key: Callable[[Dict[str, Any]], float] = overall_value if ranking else keyword_score

        scanned = 0
        for row in iter_records(path):
            scanned += 1
            if not _matches_filter(row, economy, "economy", "Economy"):
                continue
            if not _matches_filter(row, topic, "topic"):
                continue
            best.offer(sort_key(row), row)

        logger.info("Scanned %s rows of %s, kept %s", scanned, Path(path).name, len(best))
        return best.candidates

    def ranked_search(self, ctx: QueryContext) -> SearchResult:
        with_global = not ctx.economy and not ctx.is_ranking and bool(ctx.tokens)

        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="scan") as pool:
            scores_f = pool.submit(
                self.search_file,
                self.scores_path,
                ctx.tokens,
                SCORE_HAYSTACK_FIELDS,
                self.max_score_rows,
                economy=ctx.economy,
                topic=ctx.topic,
                ranking=ctx.is_ranking,
            )
            answers_f = pool.submit(
                self.search_file,
                self.answers_path,
                ctx.tokens,
                ANSWER_HAYSTACK_FIELDS,
                self.max_answer_rows,
                economy=ctx.economy,
                topic=ctx.topic,
                ranking=ctx.is_ranking,
            )
            global_f: Optional[Future] = None
            if with_global:
                global_f = pool.submit(
                    self.search_file,
                    self.scores_path,
                    tokenize(GLOBAL_BENCHMARK_QUERY),
                    SCORE_HAYSTACK_FIELDS,
                    self.global_top_rows,
                    ranking=True,
                )

            return SearchResult(
                score_matches=scores_f.result(),
                answer_matches=answers_f.result(),
                global_matches=global_f.result() if global_f is not None else [],
            )
