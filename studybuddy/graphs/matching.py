"""Candidate ranking graph: exclusion filtering, deterministic scoring, boost."""

from __future__ import annotations

from langgraph.graph import StateGraph

from studybuddy.config import config
from studybuddy.graphs.base_graph import BaseGraph
from studybuddy.state import MatchingState
from studybuddy.tools.firestore_tools import (
    get_active_approved_profiles,
    get_blocked_user_ids,
    get_declined_user_ids,
    get_liked_user_ids,
    get_matched_user_ids,
    get_pending_liker_ids,
    get_user_profile,
)
from studybuddy.tools.scoring_tools import (
    apply_mutual_like_boost,
    rank_candidates,
    score_candidates,
)
from studybuddy.utils.errors import InvalidInputError, ProfileNotFoundError
from studybuddy.utils.geo import extract_coordinates

# Profile fields safe to hand back to another student.
PUBLIC_PROFILE_FIELDS = (
    "displayName",
    "username",
    "avatar",
    "photos",
    "bio",
    "school",
    "location",
    "age",
    "interests",
    "isPremium",
    "isVerified",
)


def _with_state(state: MatchingState, **updates) -> MatchingState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


def _public_profile(profile: dict) -> dict:
    """Project a stored profile onto JSON-friendly, shareable fields."""

    public = {"uid": profile.get("uid")}
    for field in PUBLIC_PROFILE_FIELDS:
        if field in profile:
            public[field] = profile[field]
    coords = extract_coordinates(profile.get("lastLocation"))
    if coords:
        public["lastLocation"] = {"latitude": coords[0], "longitude": coords[1]}
    return public


class MatchingGraph(BaseGraph):
    """Multi-step ranking graph. Every node reads fresh from Firestore."""

    name = "matching"

    def build_graph(self) -> StateGraph:
        graph = StateGraph(MatchingState)

        graph.add_node("fetch_user_profile", self.node_fetch_user_profile)
        graph.add_node("build_exclusions", self.node_build_exclusions)
        graph.add_node("query_candidates", self.node_query_candidates)
        graph.add_node("score_matches", self.node_score_matches)
        graph.add_node("boost_mutual_likes", self.node_boost_mutual_likes)
        graph.add_node("rank_top_matches", self.node_rank_top_matches)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("fetch_user_profile")
        graph.add_edge("fetch_user_profile", "build_exclusions")
        graph.add_edge("build_exclusions", "query_candidates")
        graph.add_edge("query_candidates", "score_matches")
        graph.add_edge("score_matches", "boost_mutual_likes")
        graph.add_edge("boost_mutual_likes", "rank_top_matches")
        graph.add_edge("rank_top_matches", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_fetch_user_profile(self, state: MatchingState) -> MatchingState:
        """Load the requesting user's profile."""

        self._log_node_execution("fetch_user_profile", state)
        user_id = state.get("user_id")
        if not user_id:
            raise InvalidInputError("user_id is required")

        try:
            profile = get_user_profile(user_id)
        except Exception as exc:
            self._log_node_error("fetch_user_profile", exc)
            raise

        if not profile:
            raise ProfileNotFoundError(f"User profile not found: {user_id}")

        return _with_state(state, user_profile=profile)

    def node_build_exclusions(self, state: MatchingState) -> MatchingState:
        """Collect every id that must never be shown to the requester."""

        self._log_node_execution("build_exclusions", state)
        user_id = state["user_id"]

        try:
            excluded = (
                get_liked_user_ids(user_id)
                | get_blocked_user_ids(user_id)
                | get_matched_user_ids(user_id)
            )
            if config.EXCLUDE_DECLINED_FROM_RANKING:
                excluded |= get_declined_user_ids(user_id)
        except Exception as exc:
            self._log_node_error("build_exclusions", exc)
            raise

        excluded.add(user_id)
        return _with_state(state, excluded_ids=sorted(excluded))

    def node_query_candidates(self, state: MatchingState) -> MatchingState:
        """Query all active profiles that passed review."""

        self._log_node_execution("query_candidates", state)
        try:
            candidates = get_active_approved_profiles()
        except Exception as exc:
            self._log_node_error("query_candidates", exc)
            raise
        return _with_state(state, candidates=candidates)

    def node_score_matches(self, state: MatchingState) -> MatchingState:
        """Score each candidate outside the exclusion set."""

        self._log_node_execution("score_matches", state)
        scored = score_candidates(
            state["user_profile"],
            state.get("candidates", []),
            set(state.get("excluded_ids", [])),
        )
        return _with_state(state, scored_matches=scored)

    def node_boost_mutual_likes(self, state: MatchingState) -> MatchingState:
        """Push candidates who already liked the requester to the top."""

        self._log_node_execution("boost_mutual_likes", state)
        try:
            liker_ids = get_pending_liker_ids(state["user_id"])
        except Exception as exc:
            self._log_node_error("boost_mutual_likes", exc)
            raise

        boosted = apply_mutual_like_boost(
            state.get("scored_matches", []), liker_ids, config.MUTUAL_LIKE_BOOST
        )
        return _with_state(
            state,
            scored_matches=boosted,
            pending_liker_ids=sorted(liker_ids),
        )

    def node_rank_top_matches(self, state: MatchingState) -> MatchingState:
        """Sort scored matches and keep the requested number."""

        self._log_node_execution("rank_top_matches", state)
        limit = state.get("limit", config.DEFAULT_MATCH_LIMIT)
        return _with_state(
            state,
            top_matches=rank_candidates(state.get("scored_matches", []), limit),
        )

    def node_finalize_response(self, state: MatchingState) -> MatchingState:
        """Construct final matches and response metadata."""

        final_matches = [
            {
                "user": _public_profile(match["user"]),
                "score": match["score"],
                "reasons": list(match["reasons"]),
            }
            for match in state.get("top_matches", [])
        ]

        metadata = {
            "success": True,
            "total_candidates": len(state.get("candidates", [])),
            "excluded_count": len(state.get("excluded_ids", [])),
            "scored_count": len(state.get("scored_matches", [])),
            "returned_count": len(final_matches),
        }
        self.logger.info(
            "Ranked %s of %s candidates for %s",
            metadata["returned_count"],
            metadata["total_candidates"],
            state["user_id"],
        )

        return _with_state(
            state, final_matches=final_matches, response_metadata=metadata
        )


def create_matching_graph():
    """Build and compile the matching graph for server usage."""

    graph_builder = MatchingGraph(timeout=config.GRAPH_TIMEOUT)
    return graph_builder.compile()


def get_potential_matches(user_id: str, limit: int | None = None) -> list[dict]:
    """Rank candidates for ``user_id``.

    Returns:
        Up to ``limit`` dicts of {"user", "score", "reasons"}, best first.

    Raises:
        ProfileNotFoundError: The requester does not exist.
        FirestoreUnavailableError: Any store read failed.
    """

    if limit is None:
        limit = config.DEFAULT_MATCH_LIMIT

    result = MatchingGraph(timeout=config.GRAPH_TIMEOUT).run(
        {"user_id": user_id, "limit": limit}
    )
    return result["final_matches"]
