"""Shared LangGraph state definitions.

All graph states are TypedDicts so state is explicit, serializable, and
consistent across graph nodes.
"""

from __future__ import annotations

from typing import TypedDict

JsonDict = dict[str, object]
JsonList = list[JsonDict]


class MatchingState(TypedDict, total=False):
    """State for the candidate ranking graph.

    Fields are optional at runtime because nodes populate them progressively.
    Id collections are stored as sorted lists so the state stays
    JSON-serializable.
    """

    # Identifies the requesting user.
    user_id: str
    # Maximum number of ranked candidates to return.
    limit: int
    # Requester profile loaded from users/{user_id}.
    user_profile: JsonDict
    # Liked, blocked (both ways), matched (and optionally declined) ids plus self.
    excluded_ids: list[str]
    # Active, approved profiles.
    candidates: JsonList
    # {"user", "score", "reasons"} for every eligible candidate.
    scored_matches: JsonList
    # Ids with an unreciprocated like toward the requester.
    pending_liker_ids: list[str]
    # Ranked list of top candidates.
    top_matches: JsonList
    # Final matches returned to the caller.
    final_matches: JsonList
    # Response metadata for observability.
    response_metadata: JsonDict


class StudyAssistantState(TypedDict, total=False):
    """State for the study assistant chat graph."""

    # Latest user message.
    message: str
    # Prior turns as {"role": "user"|"assistant", "content": str}.
    conversation_history: JsonList
    # Optional requester id, only used for logging.
    user_id: str
    # Assistant answer.
    reply: str
    # Which provider produced the reply.
    provider: str
    # Error message if any node fails.
    error: str
