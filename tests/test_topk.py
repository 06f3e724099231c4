from __future__ import annotations

import pytest

from bizready_chat.core.topk import TopK


def test_never_exceeds_k_and_stays_sorted():
    best = TopK(3)
    for i, score in enumerate([1, 5, 3, 9, 2, 7, 7, 0]):
        best.offer(score, {"i": i})
        assert len(best) <= 3
        scores = [c.score for c in best]
        assert scores == sorted(scores, reverse=True)

    assert [c.score for c in best] == [9, 7, 7]
    assert [c.record["i"] for c in best] == [3, 5, 6]


def test_ties_keep_first_seen_order():
    best = TopK(2)
    assert best.offer(1, {"id": "a"})
    assert best.offer(1, {"id": "b"})
    # Equal score arriving last is the one dropped
    assert best.offer(1, {"id": "c"}) is False
    assert [c.record["id"] for c in best.candidates] == ["a", "b"]


def test_min_score_rejects_before_insert():
    best = TopK(5, min_score=1)
    assert best.offer(0, {"id": "zero"}) is False
    assert best.offer(1, {"id": "one"})
    assert [c.record["id"] for c in best] == ["one"]


def test_without_min_score_everything_is_eligible():
    best = TopK(5)
    best.offer(0, {"id": "zero"})
    best.offer(0.0, {"id": "also zero"})
    assert len(best) == 2


def test_candidates_is_a_copy():
    best = TopK(2)
    best.offer(1, {})
    snapshot = best.candidates
    snapshot.clear()
    assert len(best) == 1


def test_k_must_be_positive():
    with pytest.raises(ValueError):
        TopK(0)
