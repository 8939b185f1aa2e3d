"""Prompt construction for the study assistant."""

from __future__ import annotations

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from studybuddy.utils.logging_config import logger

# Only the most recent turns are replayed to the model.
MAX_HISTORY_MESSAGES = 10

STUDY_ASSISTANT_PROMPT = """You are StudyBuddy AI, the study helper of a student matchmaking app.

Your job:
1. Answer questions about school subjects and general knowledge
2. Help work through exercises and explain concepts step by step
3. Give advice on effective study methods
4. Help students plan their study time

Style:
- Friendly and easy to follow for high school and university students
- Detailed explanations when the question needs them
- Encourage the learner

Politely decline questions unrelated to studying or with inappropriate content."""

FALLBACK_REPLY = "Sorry, I can't answer right now. Please try again in a moment."


def build_study_messages(message: str, history: list[dict] | None = None) -> list[BaseMessage]:
    """System prompt, the last MAX_HISTORY_MESSAGES turns, then the new message.

    History entries with an unknown role or empty content are dropped.
    """

    messages: list[BaseMessage] = [SystemMessage(content=STUDY_ASSISTANT_PROMPT)]

    for turn in (history or [])[-MAX_HISTORY_MESSAGES:]:
        content = str(turn.get("content") or "").strip()
        if not content:
            continue
        role = turn.get("role")
        if role == "user":
            messages.append(HumanMessage(content=content))
        elif role == "assistant":
            messages.append(AIMessage(content=content))

    messages.append(HumanMessage(content=message))
    return messages


def log_llm_error(context: str, exc: Exception) -> None:
    """Log LLM errors with context for easier debugging."""

    logger.warning("LLM error in %s: %s", context, str(exc))
