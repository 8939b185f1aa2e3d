"""Deterministic scoring utilities for matching."""

from __future__ import annotations

from studybuddy.utils.geo import extract_coordinates, haversine_km
from studybuddy.utils.logging_config import logger

# Points per signal. Interests are per shared tag, capped at INTEREST_CAP.
SAME_SCHOOL_POINTS = 100
PREMIUM_POINTS = 50
MAX_DISTANCE_POINTS = 40
SAME_AREA_POINTS = 30
SHARED_INTEREST_POINTS = 5
INTEREST_CAP = 25
SIMILAR_AGE_POINTS = 10

DISTANCE_FALLOFF_KM = 20.0
NEAR_YOU_KM = 5.0
SIMILAR_AGE_YEARS = 2


def _same_text(left: object, right: object) -> bool:
    """Case-insensitive equality that never matches two blank values."""

    if not isinstance(left, str) or not isinstance(right, str):
        return False
    if not left.strip() or not right.strip():
        return False
    return left.lower() == right.lower()


def calculate_distance_score(distance_km: float) -> float:
    """Linear falloff from 40 points at 0 km to 0 points at 20 km and beyond."""

    return max(0.0, MAX_DISTANCE_POINTS * (1 - distance_km / DISTANCE_FALLOFF_KM))


def calculate_match_score(
    requester: dict, candidate: dict
) -> tuple[float, list[str]]:
    """Score how well ``candidate`` suits ``requester`` as a study buddy.

    The terms are evaluated in a fixed order and each one that applies
    appends its reason tag, so the reason list is stable for a given pair.
    Missing optional fields (location, age, interests) skip their term.

    Returns:
        (score, reasons) where score is unbounded above but in practice
        stays at or below 255.
    """

    score = 0.0
    reasons: list[str] = []

    if _same_text(requester.get("school"), candidate.get("school")):
        score += SAME_SCHOOL_POINTS
        reasons.append("Same school")

    if candidate.get("isPremium"):
        score += PREMIUM_POINTS
        reasons.append("Premium")

    requester_coords = extract_coordinates(requester.get("lastLocation"))
    candidate_coords = extract_coordinates(candidate.get("lastLocation"))
    if requester_coords and candidate_coords:
        distance = haversine_km(*requester_coords, *candidate_coords)
        score += calculate_distance_score(distance)
        if distance < NEAR_YOU_KM:
            reasons.append(f"Near you ({distance:.1f}km)")

    if _same_text(requester.get("location"), candidate.get("location")):
        score += SAME_AREA_POINTS
        reasons.append("Same area")

    shared = set(requester.get("interests") or []) & set(
        candidate.get("interests") or []
    )
    if shared:
        score += min(len(shared) * SHARED_INTEREST_POINTS, INTEREST_CAP)
        reasons.append(f"{len(shared)} shared interests")

    requester_age = requester.get("age")
    candidate_age = candidate.get("age")
    if isinstance(requester_age, int) and isinstance(candidate_age, int):
        if abs(requester_age - candidate_age) <= SIMILAR_AGE_YEARS:
            score += SIMILAR_AGE_POINTS
            reasons.append("Similar age")

    return score, reasons


def score_candidates(
    requester: dict, candidates: list[dict], excluded_ids: set[str]
) -> list[dict]:
    """Score every candidate whose uid is not excluded.

    The requester's own uid must already be in ``excluded_ids``; it is checked
    again here so a profile is never scored against itself.
    """

    scored: list[dict] = []
    requester_id = requester.get("uid")

    for candidate in candidates:
        uid = candidate.get("uid")
        if not uid or uid == requester_id or uid in excluded_ids:
            continue

        score, reasons = calculate_match_score(requester, candidate)
        scored.append({"user": candidate, "score": score, "reasons": reasons})

    logger.debug(
        "score_candidates scored=%s skipped=%s",
        len(scored),
        len(candidates) - len(scored),
    )
    return scored


def apply_mutual_like_boost(
    scored: list[dict], liker_ids: set[str], boost: float
) -> list[dict]:
    """Boost candidates who already liked the requester.

    "Already liked you" always becomes the first reason.
    """

    boosted: list[dict] = []
    for entry in scored:
        if entry["user"].get("uid") in liker_ids:
            entry = {
                **entry,
                "score": entry["score"] + boost,
                "reasons": ["Already liked you", *entry["reasons"]],
            }
        boosted.append(entry)
    return boosted


def rank_candidates(scored: list[dict], limit: int) -> list[dict]:
    """Sort by score, highest first, and keep the top ``limit``.

    ``sorted`` is stable, so equal scores keep their load order.
    """

    return sorted(scored, key=lambda x: x["score"], reverse=True)[: max(limit, 0)]
