"""Study assistant graph: validate the question, ask the LLM, shape the reply."""

from __future__ import annotations

from langgraph.graph import StateGraph

from studybuddy.config import config
from studybuddy.graphs.base_graph import BaseGraph
from studybuddy.state import StudyAssistantState
from studybuddy.tools.llm_client import get_llm, get_llm_provider_info
from studybuddy.tools.llm_tools import (
    FALLBACK_REPLY,
    build_study_messages,
    log_llm_error,
)

MAX_MESSAGE_LENGTH = 4000


def _with_state(state: StudyAssistantState, **updates) -> StudyAssistantState:
    return {**state, **updates}


class StudyAssistantGraph(BaseGraph):
    """Single-turn chat with optional replayed history."""

    name = "study_assistant"

    def build_graph(self) -> StateGraph:
        graph = StateGraph(StudyAssistantState)

        graph.add_node("validate_input", self.node_validate_input)
        graph.add_node("generate_reply", self.node_generate_reply)

        graph.set_entry_point("validate_input")
        graph.add_edge("validate_input", "generate_reply")
        graph.set_finish_point("generate_reply")

        return graph

    def node_validate_input(self, state: StudyAssistantState) -> StudyAssistantState:
        self._log_node_execution("validate_input", state)

        message = str(state.get("message") or "").strip()
        if not message:
            return _with_state(state, error="Message is required")
        if len(message) > MAX_MESSAGE_LENGTH:
            return _with_state(
                state,
                error=f"Message is too long (max {MAX_MESSAGE_LENGTH} characters)",
            )

        history = state.get("conversation_history") or []
        if not isinstance(history, list):
            return _with_state(state, error="conversation_history must be a list")
        if not all(isinstance(turn, dict) for turn in history):
            return _with_state(
                state,
                error="conversation_history entries must be objects with role and content",
            )

        return _with_state(state, message=message, conversation_history=history)

    def node_generate_reply(self, state: StudyAssistantState) -> StudyAssistantState:
        """Call the LLM. Failures yield a fallback reply plus an error."""

        if state.get("error"):
            return state

        self._log_node_execution("generate_reply", state)
        try:
            llm = get_llm(temperature=0.7, timeout=self.timeout)
            response = llm.invoke(
                build_study_messages(
                    state["message"], state.get("conversation_history")
                )
            )
            reply = str(response.content or "").strip() or FALLBACK_REPLY
        except Exception as exc:
            log_llm_error("study_assistant", exc)
            return _with_state(
                state,
                reply=FALLBACK_REPLY,
                error="Failed to get AI response",
            )

        return _with_state(
            state,
            reply=reply,
            provider=get_llm_provider_info()["primary_provider"],
        )


def create_study_assistant_graph():
    """Build and compile the study assistant graph for server usage."""

    graph_builder = StudyAssistantGraph(timeout=config.GRAPH_TIMEOUT)
    return graph_builder.compile()
