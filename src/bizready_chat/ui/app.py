from __future__ import annotations

import logging
import time
import traceback
from typing import Dict, List

import streamlit as st

from bizready_chat.config import (
    ANSWERS_PATH,
    APP_NAME,
    APP_VERSION,
    HISTORY_TURNS,
    LOG_LEVEL,
    OPENAI_MODEL,
    SCORES_PATH,
)
from bizready_chat.conversation.orchestrator import ChatOrchestrator, ChatTurn
from bizready_chat.conversation.summarizer import Summarizer
from bizready_chat.core.entities import VocabularyCache
from bizready_chat.core.query_engine import QueryEngine, Route, candidates_frame

QUICK_PROMPTS = [
    "What is the Business Location overall score for Rwanda?",
    "For Nigeria, what does the dataset say about land registry digital services?",
    "Which economies have the highest scores in Market Competition?",
    "In Business Entry, what is the reported minimum capital requirement for a standard LLC in India?",
    "For Brazil, summarize the key constraints reported in International Trade.",
]


@st.cache_resource(show_spinner=False)
def _get_orchestrator() -> ChatOrchestrator:
    # One engine (and one vocabulary cache) per server process
    vocabulary = VocabularyCache(SCORES_PATH)
    engine = QueryEngine(SCORES_PATH, ANSWERS_PATH, vocabulary=vocabulary)
    return ChatOrchestrator(engine, Summarizer())


def _history() -> List[Dict[str, str]]:
    if "messages" not in st.session_state:
        st.session_state["messages"] = []
    return st.session_state["messages"]


def _render_sidebar(orchestrator: ChatOrchestrator) -> None:
    with st.sidebar:
        st.subheader("Dataset")
        st.write(f"Scores: `{SCORES_PATH.name}`")
        st.write(f"Answers: `{ANSWERS_PATH.name}`")

        vocab = orchestrator.engine.vocabulary
        if vocab.initialized:
            st.write(f"Economies: {len(vocab.economies)}")
            st.write(f"Topics: {len(vocab.topics)}")
        else:
            st.caption("Vocabulary loads with the first question.")

        st.subheader("Language model")
        if orchestrator.summarizer.is_configured:
            st.success(f"Configured ({OPENAI_MODEL})")
        else:
            st.warning("OPENAI_API_KEY not set: answers show the retrieved rows only.")

        if st.button("Clear conversation"):
            st.session_state["messages"] = []
            st.session_state.pop("last_turn", None)


def _render_developer_panel(turn: ChatTurn, elapsed: float) -> None:
    result = turn.result
    with st.expander("Retrieval details (developer view)", expanded=False):
        st.write(f"Completed in {elapsed:0.2f}s")
        if result is None:
            st.write("No retrieval was performed.")
            return

        q = result.query
        st.write(
            f"Route: `{result.route.value}` | economy: {q.economy_display or '-'} | "
            f"topic: {q.topic or '-'} | ranking: {q.is_ranking} | tokens: {list(q.tokens)}"
        )
        st.text_area("Context block", value=result.context, height=240)

        if result.route is Route.RANKED_SEARCH and result.search is not None:
            if result.search.global_matches:
                st.write("Global top performers")
                st.dataframe(candidates_frame(result.search.global_matches), use_container_width=True)
            st.write("Score rows")
            st.dataframe(candidates_frame(result.search.score_matches), use_container_width=True)
            st.write("Answer rows")
            st.dataframe(candidates_frame(result.search.answer_matches), use_container_width=True)


def _ask(orchestrator: ChatOrchestrator, text: str) -> None:
    messages = _history()
    payload = {"message": text, "history": messages[-HISTORY_TURNS:]}
    messages.append({"role": "user", "content": text})

    t0 = time.perf_counter()
    try:
        with st.spinner("Searching the dataset..."):
            turn = orchestrator.respond(payload)
    except Exception:
        st.error("Unexpected error while answering.")
        st.text_area("Traceback", value=traceback.format_exc(), height=220)
        return
    elapsed = time.perf_counter() - t0

    if "answer" in turn.response:
        messages.append({"role": "assistant", "content": turn.response["answer"]})
    else:
        messages.append({"role": "assistant", "content": f"Error: {turn.response.get('error', 'Request failed')}"})

    st.session_state["last_turn"] = (turn, elapsed)


def _render_chat(orchestrator: ChatOrchestrator) -> None:
    st.write("Try one of these:")
    cols = st.columns(len(QUICK_PROMPTS))
    clicked = None
    for i, (col, prompt) in enumerate(zip(cols, QUICK_PROMPTS)):
        with col:
            if st.button(prompt, key=f"quick_{i}"):
                clicked = prompt

    typed = st.chat_input("Ask about an economy, a topic or a ranking...")
    text = typed or clicked
    if text:
        _ask(orchestrator, text)

    for m in _history():
        with st.chat_message(m["role"]):
            st.markdown(m["content"])

    last = st.session_state.get("last_turn")
    if last is not None:
        _render_developer_panel(*last)


def run_app() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    st.set_page_config(page_title=APP_NAME, page_icon="📊", layout="wide")
    st.title(APP_NAME)
    st.caption(f"Prototype version {APP_VERSION}")

    orchestrator = _get_orchestrator()
    _render_sidebar(orchestrator)
    _render_chat(orchestrator)
