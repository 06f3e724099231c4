from __future__ import annotations

import gzip
import json
from pathlib import Path
from typing import Any, Iterable

import pytest

from bizready_chat.core.entities import VocabularyCache
from bizready_chat.core.query_engine import QueryEngine

SCORE_ROWS = [
    {"Economy": "Rwanda", "Economy Code": "RWA", "topic": "Business Location",
     "Business Location Overall": 72.4, "Pillar I Score": 70.1},
    {"Economy": "Kenya", "Economy Code": "KEN", "topic": "Business Location",
     "Business Location Overall": 65.0},
    {"Economy": "Angola", "Economy Code": "AGO", "topic": "Labor", "Labor Overall": 55.5},
    {"Economy": "Rwanda", "Economy Code": "RWA", "topic": "Labor", "Labor Overall": 61.2},
    {"Economy": "Kenya", "Economy Code": "KEN", "topic": "Labor", "Labor Overall": "70.3"},
    {"Economy": "Congo", "Economy Code": "COG", "topic": "Labor", "Labor Overall": 45.0},
    {"Economy": "Democratic Republic of the Congo", "Economy Code": "COD", "topic": "Labor",
     "Labor Overall": 40.0},
    {"Economy": "Peru", "Economy Code": "PER", "topic": "Taxation", "Taxation Overall": 80.0},
    {"Economy": "Chile", "Economy Code": "CHL", "topic": "Business Location", "Pillar I Score": 50},
]

ANSWER_ROWS = [
    {"economy": "Rwanda", "topic": "Business Location", "var": "BL1",
     "question": "Is the land registry digitized?", "response": "Yes, the land registry is fully digital."},
    {"economy": "Kenya", "topic": "Labor", "var": "LB2",
     "question": "What is the minimum wage?", "response": "Minimum wage varies by region."},
    {"economy": "Angola", "topic": "Labor", "var": "LB3",
     "question": "Are fixed-term contracts allowed?", "response": "x" * 500},
    {"economy": "Rwanda", "topic": "Labor", "var": "LB1",
     "question": "What is the maximum probation period for employment contracts?",
     "response": "Six months."},
]


def write_jsonl_gz(path: Path, rows: Iterable[Any], extra_lines: Iterable[str] = ()) -> Path:
    with gzip.open(path, "wt", encoding="utf-8") as fh:
        for row in rows:
            fh.write(json.dumps(row) + "\n")
        for line in extra_lines:
            fh.write(line + "\n")
    return path


@pytest.fixture
def scores_path(tmp_path: Path) -> Path:
    # Malformed lines at the end must be skipped by every scan
    return write_jsonl_gz(tmp_path / "topic_scores.jsonl.gz", SCORE_ROWS, ["", "{not json", "[1, 2]"])


@pytest.fixture
def answers_path(tmp_path: Path) -> Path:
    return write_jsonl_gz(tmp_path / "econ_answers.jsonl.gz", ANSWER_ROWS, ["garbage"])


@pytest.fixture
def vocabulary(scores_path: Path) -> VocabularyCache:
    return VocabularyCache(scores_path)


@pytest.fixture
def engine(scores_path: Path, answers_path: Path, vocabulary: VocabularyCache) -> QueryEngine:
    return QueryEngine(scores_path, answers_path, vocabulary=vocabulary)
