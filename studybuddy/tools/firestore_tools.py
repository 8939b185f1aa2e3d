"""Firestore wrappers used by the matching graph and the swipe tools.

These helpers centralize collection names, document-id conventions, error
handling, and logging so graph nodes stay focused on orchestration logic.
"""

from __future__ import annotations

import os

import firebase_admin
from firebase_admin import credentials, firestore

from studybuddy.utils.errors import FirestoreUnavailableError
from studybuddy.utils.logging_config import logger

USERS = "users"
LIKES = "likes"
DECLINES = "declines"
BLOCKS = "blocks"
MATCHES = "matches"
CHATS = "chats"
REPORTS = "reports"
TOKEN_TRANSACTIONS = "token_transactions"

_db: firestore.Client | None = None


def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        if not firebase_admin._apps:
            cred_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
            if not cred_path:
                raise RuntimeError(
                    "GOOGLE_APPLICATION_CREDENTIALS is not set"
                )

            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)

        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise FirestoreUnavailableError(str(exc)) from exc


def edge_id(from_user_id: str, to_user_id: str) -> str:
    """Document id of a directed edge (like, decline, block)."""

    return f"{from_user_id}_{to_user_id}"


def pair_id(user_a: str, user_b: str) -> str:
    """Order-independent document id for a pair of users."""

    return "_".join(sorted((user_a, user_b)))


def _with_uid(doc) -> dict:
    """Snapshot data with the document id exposed as ``uid``."""

    data = doc.to_dict() or {}
    data["uid"] = doc.id
    return data


def get_user_profile(user_id: str) -> dict | None:
    """Fetch user profile from users/{user_id}.

    Returns None if the user does not exist.
    """

    try:
        doc = get_db().collection(USERS).document(user_id).get()
        if not doc.exists:
            return None
        return _with_uid(doc)
    except Exception as exc:
        logger.error("Failed to fetch user profile: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def get_active_approved_profiles() -> list[dict]:
    """Query every active profile that passed admin review.

    Requires a composite index on (isActive, reviewStatus) in production.
    """

    try:
        query = (
            get_db().collection(USERS)
            .where("isActive", "==", True)
            .where("reviewStatus", "==", "approved")
        )
        return [_with_uid(doc) for doc in query.stream()]
    except Exception as exc:
        logger.error("Failed to query candidate profiles: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def get_profiles_by_review_status(status: str, limit: int = 50) -> list[dict]:
    """Query profiles waiting in (or past) the admin review queue."""

    try:
        query = (
            get_db().collection(USERS)
            .where("reviewStatus", "==", status)
            .limit(limit)
        )
        return [_with_uid(doc) for doc in query.stream()]
    except Exception as exc:
        logger.error("Failed to query profiles by review status: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def get_liked_user_ids(user_id: str) -> set[str]:
    """Ids this user has already liked."""

    try:
        query = get_db().collection(LIKES).where("fromUserId", "==", user_id)
        return {
            (doc.to_dict() or {}).get("toUserId")
            for doc in query.stream()
        } - {None}
    except Exception as exc:
        logger.error("Failed to fetch likes: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def get_pending_liker_ids(user_id: str) -> set[str]:
    """Ids who liked this user and have not been liked back yet."""

    try:
        query = (
            get_db().collection(LIKES)
            .where("toUserId", "==", user_id)
            .where("isReciprocated", "==", False)
        )
        return {
            (doc.to_dict() or {}).get("fromUserId")
            for doc in query.stream()
        } - {None}
    except Exception as exc:
        logger.error("Failed to fetch incoming likes: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def get_blocked_user_ids(user_id: str) -> set[str]:
    """Ids hidden from this user by a block in either direction."""

    try:
        blocks = get_db().collection(BLOCKS)
        blocked = {
            (doc.to_dict() or {}).get("blockedId")
            for doc in blocks.where("blockerId", "==", user_id).stream()
        }
        blocked_by = {
            (doc.to_dict() or {}).get("blockerId")
            for doc in blocks.where("blockedId", "==", user_id).stream()
        }
        return (blocked | blocked_by) - {None}
    except Exception as exc:
        logger.error("Failed to fetch blocks: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def get_matched_user_ids(user_id: str) -> set[str]:
    """Ids this user is already matched with."""

    try:
        query = get_db().collection(MATCHES).where(
            "users", "array_contains", user_id
        )
        matched: set[str] = set()
        for doc in query.stream():
            for uid in (doc.to_dict() or {}).get("users", []):
                if uid != user_id:
                    matched.add(uid)
        return matched
    except Exception as exc:
        logger.error("Failed to fetch matches: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def get_declined_user_ids(user_id: str) -> set[str]:
    """Ids this user has declined."""

    try:
        query = get_db().collection(DECLINES).where("fromUserId", "==", user_id)
        return {
            (doc.to_dict() or {}).get("toUserId")
            for doc in query.stream()
        } - {None}
    except Exception as exc:
        logger.error("Failed to fetch declines: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def validate_user_exists(user_id: str) -> bool:
    """Quick check if user exists (used in input validation)."""

    try:
        return get_db().collection(USERS).document(user_id).get().exists
    except Exception as exc:
        logger.error("Failed to validate user exists: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc
