"""Blocking, reporting, and the admin profile review queue."""

from __future__ import annotations

from firebase_admin import firestore

from studybuddy.tools.firestore_tools import (
    BLOCKS,
    REPORTS,
    USERS,
    edge_id,
    get_db,
    get_profiles_by_review_status,
    validate_user_exists,
)
from studybuddy.utils.errors import (
    FirestoreUnavailableError,
    InvalidInputError,
    ProfileNotFoundError,
)
from studybuddy.utils.logging_config import logger

REVIEW_STATUSES = ("pending", "approved", "rejected")
REPORT_REASONS = (
    "fake_profile",
    "inappropriate_content",
    "harassment",
    "spam",
    "scam",
    "underage",
    "other",
)


def block_user(blocker_id: str, blocked_id: str) -> None:
    """Hide two users from each other. Blocking twice is a no-op."""

    if not blocker_id or not blocked_id:
        raise InvalidInputError("Both user ids are required")
    if blocker_id == blocked_id:
        raise InvalidInputError("Users cannot block themselves")
    if not validate_user_exists(blocked_id):
        raise ProfileNotFoundError(f"User not found: {blocked_id}")

    try:
        get_db().collection(BLOCKS).document(edge_id(blocker_id, blocked_id)).set(
            {
                "blockerId": blocker_id,
                "blockedId": blocked_id,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        logger.info("User %s blocked %s", blocker_id, blocked_id)
    except Exception as exc:
        logger.error("Failed to block user: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def report_user(
    reporter_id: str,
    reported_user_id: str,
    reason: str,
    description: str | None = None,
) -> str:
    """File a pending report for admin review and return its id."""

    if reporter_id == reported_user_id:
        raise InvalidInputError("Users cannot report themselves")
    if reason not in REPORT_REASONS:
        raise InvalidInputError(
            f"Unknown report reason: {reason}. Valid options: {', '.join(REPORT_REASONS)}"
        )
    if not validate_user_exists(reported_user_id):
        raise ProfileNotFoundError(f"User not found: {reported_user_id}")

    try:
        _, ref = get_db().collection(REPORTS).add(
            {
                "reporterId": reporter_id,
                "reportedUserId": reported_user_id,
                "reason": reason,
                "description": (description or "").strip() or None,
                "status": "pending",
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        logger.info("Report %s filed against %s", ref.id, reported_user_id)
        return ref.id
    except Exception as exc:
        logger.error("Failed to file report: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def list_pending_reviews(limit: int = 50) -> list[dict]:
    return get_profiles_by_review_status("pending", limit=limit)


def set_review_status(user_id: str, status: str) -> None:
    """Approve or reject a profile. Approval also grants the verified tick."""

    if status not in REVIEW_STATUSES:
        raise InvalidInputError(
            f"Unknown review status: {status}. Valid options: {', '.join(REVIEW_STATUSES)}"
        )
    if not validate_user_exists(user_id):
        raise ProfileNotFoundError(f"User not found: {user_id}")

    updates: dict = {
        "reviewStatus": status,
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }
    if status == "approved":
        updates["isVerified"] = True

    try:
        get_db().collection(USERS).document(user_id).update(updates)
        logger.info("Profile %s review status set to %s", user_id, status)
    except Exception as exc:
        logger.error("Failed to update review status: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc
