from __future__ import annotations

import json

from bizready_chat.conversation.orchestrator import (
    DATASET_ERROR,
    MISSING_MESSAGE_ERROR,
    NOT_CONFIGURED_NOTICE,
    ChatOrchestrator,
)
from bizready_chat.conversation.summarizer import Summarizer, SummarizerError
from bizready_chat.core.query_engine import QueryEngine, Route

from conftest import ANSWER_ROWS, write_jsonl_gz


class RecordingSummarizer(Summarizer):
    def __init__(self, answer="summary", exc=None):
        super().__init__(api_key="sk-test")
        self.answer = answer
        self.exc = exc
        self.calls = []

    def summarize(self, question, history, context):
        self.calls.append((question, history, context))
        if self.exc is not None:
            raise self.exc
        return self.answer


def test_missing_message_is_rejected_before_any_scan(tmp_path):
    # Paths do not exist: any scan would fail
    engine = QueryEngine(tmp_path / "a.jsonl.gz", tmp_path / "b.jsonl.gz")
    orch = ChatOrchestrator(engine, RecordingSummarizer())

    assert orch.handle({}) == {"error": MISSING_MESSAGE_ERROR}
    assert orch.handle({"message": "   "}) == {"error": MISSING_MESSAGE_ERROR}
    assert orch.handle({"message": 42}) == {"error": MISSING_MESSAGE_ERROR}
    assert orch.handle("hello") == {"error": MISSING_MESSAGE_ERROR}
    assert not engine.vocabulary.initialized


def test_fallback_when_summarizer_not_configured(engine):
    orch = ChatOrchestrator(engine, Summarizer(api_key=""))
    turn = orch.respond({"message": "For Rwanda, what is the probation period for employment contracts?"})

    answer = turn.response["answer"]
    assert answer.startswith(NOT_CONFIGURED_NOTICE)
    assert answer[len(NOT_CONFIGURED_NOTICE):] == turn.result.context


def test_search_goes_through_summarizer_with_trimmed_history(engine):
    summarizer = RecordingSummarizer(answer="Rwanda allows six months (E1).")
    orch = ChatOrchestrator(engine, summarizer)
    history = [{"role": "user", "content": f"turn {i}"} for i in range(12)]

    response = orch.handle({"message": "Rwanda probation period?", "history": history})

    assert response == {"answer": "Rwanda allows six months (E1)."}
    question, sent_history, context = summarizer.calls[0]
    assert question == "Rwanda probation period?"
    assert len(sent_history) == 8
    assert sent_history[-1]["content"] == "turn 11"
    assert "E1. Economy=Rwanda" in context


def test_direct_lookup_answers_without_summarizer(engine):
    summarizer = RecordingSummarizer()
    orch = ChatOrchestrator(engine, summarizer)

    turn = orch.respond({"message": "What is the overall score for Rwanda in business location?"})

    assert turn.result.route is Route.DIRECT_LOOKUP
    assert "Rwanda — Business Location" in turn.response["answer"]
    assert "Overall: 72.4" in turn.response["answer"]
    assert summarizer.calls == []


def test_summarizer_failure_becomes_error(engine):
    orch = ChatOrchestrator(engine, RecordingSummarizer(exc=SummarizerError("Language model API error (500): boom")))
    response = orch.handle({"message": "Labor contracts in Kenya"})

    assert set(response) == {"error"}
    assert response["error"].startswith("Summarizer request failed:")
    assert "500" in response["error"]


def test_dataset_failure_becomes_generic_error(tmp_path, scores_path):
    engine = QueryEngine(scores_path, tmp_path / "missing.jsonl.gz")
    summarizer = RecordingSummarizer()
    orch = ChatOrchestrator(engine, summarizer)

    assert orch.handle({"message": "labor contracts"}) == {"error": DATASET_ERROR}
    assert summarizer.calls == []


def test_deeply_nested_answer_line_is_skipped(tmp_path, scores_path):
    answers = write_jsonl_gz(
        tmp_path / "answers.jsonl.gz", [], ["[" * 200000, json.dumps(ANSWER_ROWS[-1])]
    )
    summarizer = RecordingSummarizer()
    orch = ChatOrchestrator(QueryEngine(scores_path, answers), summarizer)

    assert orch.handle({"message": "Rwanda labor contracts"}) == {"answer": "summary"}
    assert "E1. Economy=Rwanda; Topic=Labor; Var=LB1" in summarizer.calls[0][2]


class ExplodingEngine(QueryEngine):
    def run(self, question):
        raise RuntimeError("unexpected")


def test_unexpected_engine_failure_becomes_generic_error(scores_path, answers_path):
    summarizer = RecordingSummarizer()
    orch = ChatOrchestrator(ExplodingEngine(scores_path, answers_path), summarizer)

    turn = orch.respond({"message": "labor contracts"})
    assert turn.response == {"error": DATASET_ERROR}
    assert turn.result is None
    assert summarizer.calls == []
