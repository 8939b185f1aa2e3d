"""Unit tests for the study assistant graph and its prompt builder."""

import pytest
from unittest.mock import MagicMock
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from studybuddy.graphs import study_assistant
from studybuddy.graphs.study_assistant import create_study_assistant_graph
from studybuddy.tools.llm_tools import (
    FALLBACK_REPLY,
    MAX_HISTORY_MESSAGES,
    STUDY_ASSISTANT_PROMPT,
    build_study_messages,
)


@pytest.fixture
def llm(monkeypatch, mock_llm_response):
    client = MagicMock()
    client.invoke.return_value = mock_llm_response
    monkeypatch.setattr(study_assistant, "get_llm", MagicMock(return_value=client))
    return client


class TestBuildStudyMessages:

    def test_system_prompt_then_message(self):
        messages = build_study_messages("What is a derivative?")
        assert isinstance(messages[0], SystemMessage)
        assert messages[0].content == STUDY_ASSISTANT_PROMPT
        assert isinstance(messages[-1], HumanMessage)
        assert messages[-1].content == "What is a derivative?"

    def test_history_roles(self):
        history = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello! What are you studying?"},
            {"role": "system", "content": "ignored"},
            {"role": "user", "content": "   "},
        ]
        messages = build_study_messages("Chemistry", history)
        assert [type(m) for m in messages] == [
            SystemMessage,
            HumanMessage,
            AIMessage,
            HumanMessage,
        ]

    def test_only_recent_history_replayed(self):
        history = [{"role": "user", "content": f"q{i}"} for i in range(25)]
        messages = build_study_messages("latest", history)

        replayed = [m.content for m in messages[1:-1]]
        assert len(replayed) == MAX_HISTORY_MESSAGES
        assert replayed[0] == "q15"
        assert replayed[-1] == "q24"


class TestStudyAssistantGraph:

    def test_reply_from_llm(self, llm, mock_llm_response):
        result = create_study_assistant_graph().invoke(
            {"message": "  Explain photosynthesis  ", "conversation_history": []}
        )

        assert result["reply"] == mock_llm_response.content
        assert result["provider"] == "deepseek"
        assert "error" not in result

        sent = llm.invoke.call_args[0][0]
        assert sent[-1].content == "Explain photosynthesis"

    def test_history_forwarded(self, llm):
        create_study_assistant_graph().invoke(
            {
                "message": "And for plants?",
                "conversation_history": [
                    {"role": "user", "content": "How do cells make energy?"},
                    {"role": "assistant", "content": "Through respiration."},
                ],
            }
        )
        sent = llm.invoke.call_args[0][0]
        assert [m.content for m in sent[1:]] == [
            "How do cells make energy?",
            "Through respiration.",
            "And for plants?",
        ]

    def test_empty_message_rejected(self, llm):
        result = create_study_assistant_graph().invoke({"message": "   "})
        assert result["error"] == "Message is required"
        llm.invoke.assert_not_called()

    def test_long_message_rejected(self, llm):
        result = create_study_assistant_graph().invoke({"message": "x" * 4001})
        assert "too long" in result["error"]
        llm.invoke.assert_not_called()

    def test_history_must_be_list(self, llm):
        result = create_study_assistant_graph().invoke(
            {"message": "hi", "conversation_history": "not a list"}
        )
        assert result["error"] == "conversation_history must be a list"

    def test_history_entries_must_be_objects(self, llm):
        result = create_study_assistant_graph().invoke(
            {"message": "hi", "conversation_history": ["plain string turn"]}
        )
        assert result["error"] == (
            "conversation_history entries must be objects with role and content"
        )
        assert "reply" not in result
        llm.invoke.assert_not_called()

    def test_llm_failure_returns_fallback(self, llm):
        llm.invoke.side_effect = RuntimeError("rate limited")

        result = create_study_assistant_graph().invoke({"message": "hi"})

        assert result["reply"] == FALLBACK_REPLY
        assert result["error"] == "Failed to get AI response"

    def test_no_provider_configured(self, monkeypatch):
        monkeypatch.setattr(
            study_assistant,
            "get_llm",
            MagicMock(side_effect=ValueError("No LLM provider configured")),
        )
        result = create_study_assistant_graph().invoke({"message": "hi"})
        assert result["reply"] == FALLBACK_REPLY
        assert result["error"] == "Failed to get AI response"
