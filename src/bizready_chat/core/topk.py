from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional


@dataclass(frozen=True)
class ScoredCandidate:
    score: float
    record: Dict[str, Any]


class TopK:
    """
    Bounded best-of-K collection filled during one streaming scan.

    Candidates are kept in descending score order. Python's sort is stable, so
    among equal scores the earlier arrival stays ahead, and when the
    collection overflows the newest of the tied tail is the one dropped.

    min_score=None disables the minimum filter (used for ranking questions).
    """

    def __init__(self, k: int, min_score: Optional[float] = None) -> None:
        if k <= 0:
            raise ValueError(f"k must be positive, got {k}")
        self.k = int(k)
        self.min_score = min_score
        self._items: List[ScoredCandidate] = []

    def offer(self, score: float, record: Dict[str, Any]) -> bool:
        """Insert a candidate; return True if it is still held afterwards."""
        if self.min_score is not None and score < self.min_score:
            return False

        cand = ScoredCandidate(score=score, record=record)
        self._items.append(cand)
        self._items.sort(key=lambda c: c.score, reverse=True)
        if len(self._items) > self.k:
            dropped = self._items.pop()
            return dropped is not cand
        return True

    @property
    def candidates(self) -> List[ScoredCandidate]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ScoredCandidate]:
        return iter(list(self._items))
