"""Like/decline recording and the daily swipe quota.

Every writer that must read before it writes (mutual-like detection, the
quota counter, and a swipe that does both) runs inside a Firestore
transaction, so concurrent calls for the same pair or user are serialized by
Firestore's optimistic retries. Transaction bodies are split into a read step
and a write step because Firestore rejects reads after the first write.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import NamedTuple
from uuid import uuid4
from zoneinfo import ZoneInfo

from firebase_admin import firestore

from studybuddy.config import config
from studybuddy.tools.firestore_tools import (
    CHATS,
    DECLINES,
    LIKES,
    MATCHES,
    USERS,
    edge_id,
    get_db,
    pair_id,
    validate_user_exists,
)
from studybuddy.utils.errors import (
    DOMAIN_ERRORS,
    FirestoreUnavailableError,
    InvalidInputError,
    ProfileNotFoundError,
    SwipeLimitExceededError,
)
from studybuddy.utils.logging_config import logger


class _LikePlan(NamedTuple):
    own_ref: object
    reverse_ref: object
    match_id: str
    already_matched: bool
    is_match: bool


class _SwipePlan(NamedTuple):
    user_ref: object
    updates: dict
    count: int


# ============================================================
# LIKES / DECLINES
# ============================================================

def validate_swipe_pair(from_user_id: str, to_user_id: str) -> None:
    """Reject missing ids and swipes on oneself."""

    if not from_user_id or not to_user_id:
        raise InvalidInputError("Both user ids are required")
    if from_user_id == to_user_id:
        raise InvalidInputError("Users cannot swipe on themselves")


def _require_target(transaction, to_user_id: str) -> None:
    target = get_db().collection(USERS).document(to_user_id).get(transaction=transaction)
    if not target.exists:
        raise ProfileNotFoundError(f"User not found: {to_user_id}")


def _read_like(transaction, from_user_id: str, to_user_id: str) -> _LikePlan:
    db = get_db()
    own_ref = db.collection(LIKES).document(edge_id(from_user_id, to_user_id))
    reverse_ref = db.collection(LIKES).document(edge_id(to_user_id, from_user_id))

    _require_target(transaction, to_user_id)
    own = own_ref.get(transaction=transaction)
    reverse = reverse_ref.get(transaction=transaction)

    already_matched = own.exists and bool((own.to_dict() or {}).get("isReciprocated"))
    is_match = (
        not already_matched
        and reverse.exists
        and not (reverse.to_dict() or {}).get("isReciprocated", False)
    )
    return _LikePlan(
        own_ref, reverse_ref, pair_id(from_user_id, to_user_id), already_matched, is_match
    )


def _write_like(transaction, plan: _LikePlan, from_user_id: str, to_user_id: str) -> dict:
    if plan.already_matched:
        # Pair already matched; liking again must not reset the edge.
        return {"isMatch": True, "matchId": plan.match_id}

    transaction.set(
        plan.own_ref,
        {
            "fromUserId": from_user_id,
            "toUserId": to_user_id,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "isReciprocated": plan.is_match,
        },
    )

    if not plan.is_match:
        return {"isMatch": False}

    db = get_db()
    chat_id = f"chat_{uuid4().hex}"
    participants = [from_user_id, to_user_id]

    transaction.update(plan.reverse_ref, {"isReciprocated": True})
    transaction.set(
        db.collection(MATCHES).document(plan.match_id),
        {
            "users": participants,
            "chatId": chat_id,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "isFriend": False,
        },
    )
    transaction.set(
        db.collection(CHATS).document(chat_id),
        {
            "id": chat_id,
            "type": "direct",
            "participants": participants,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        },
    )
    return {"isMatch": True, "matchId": plan.match_id}


def _write_decline(transaction, from_user_id: str, to_user_id: str) -> None:
    transaction.set(
        get_db().collection(DECLINES).document(edge_id(from_user_id, to_user_id)),
        {
            "fromUserId": from_user_id,
            "toUserId": to_user_id,
            "createdAt": firestore.SERVER_TIMESTAMP,
        },
    )


def _apply_like(transaction, from_user_id: str, to_user_id: str) -> dict:
    plan = _read_like(transaction, from_user_id, to_user_id)
    return _write_like(transaction, plan, from_user_id, to_user_id)


def _run_transaction(action: str, body, *args):
    """Run ``body`` in a Firestore transaction, wrapping store failures."""

    try:
        return firestore.transactional(body)(get_db().transaction(), *args)
    except SwipeLimitExceededError:
        logger.info("Swipe limit reached during %s", action)
        raise
    except DOMAIN_ERRORS:
        raise
    except Exception as exc:
        logger.error("Failed to %s: %s", action, str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


def record_like(from_user_id: str, to_user_id: str) -> dict:
    """Record that ``from_user_id`` likes ``to_user_id``.

    When the target already liked the caller (and that like has not been
    reciprocated), both edges flip to reciprocated and a match plus its
    direct chat are created in the same transaction.

    Returns:
        {"isMatch": False} or {"isMatch": True, "matchId": "<a>_<b>"}

    Raises:
        InvalidInputError: For a self-like or missing ids.
        ProfileNotFoundError: If the liked user does not exist.
        FirestoreUnavailableError: If the transaction cannot be committed.
    """

    validate_swipe_pair(from_user_id, to_user_id)
    result = _run_transaction("record like", _apply_like, from_user_id, to_user_id)

    if result["isMatch"]:
        logger.info("Match %s created or confirmed", result["matchId"])
    return result


def record_decline(from_user_id: str, to_user_id: str) -> None:
    """Record a decline. Upserts declines/{from}_{to}; no other side effects.

    Raises:
        ProfileNotFoundError: If the declined user does not exist.
    """

    validate_swipe_pair(from_user_id, to_user_id)
    if not validate_user_exists(to_user_id):
        raise ProfileNotFoundError(f"User not found: {to_user_id}")

    try:
        get_db().collection(DECLINES).document(
            edge_id(from_user_id, to_user_id)
        ).set(
            {
                "fromUserId": from_user_id,
                "toUserId": to_user_id,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
    except Exception as exc:
        logger.error("Failed to record decline: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc


# ============================================================
# SWIPE QUOTA
# ============================================================

def get_swipe_limit(is_premium: bool) -> int:
    """Daily swipe allowance for the user's tier."""

    return config.PREMIUM_DAILY_SWIPES if is_premium else config.FREE_DAILY_SWIPES


def has_reached_swipe_limit(daily_swipes: int, is_premium: bool) -> bool:
    return daily_swipes >= get_swipe_limit(is_premium)


def _local_date(moment: datetime) -> date:
    # Naive timestamps are treated as UTC.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(config.SWIPE_TIMEZONE)).date()


def is_new_swipe_day(last_reset: datetime | None, now: datetime) -> bool:
    """True when ``now`` falls on a later (or different) calendar day."""

    if last_reset is None:
        return True
    return _local_date(last_reset) != _local_date(now)


def _read_swipe(transaction, user_id: str, now: datetime) -> _SwipePlan:
    """Load the swiper and work out the new count. Raises before any write."""

    user_ref = get_db().collection(USERS).document(user_id)
    snapshot = user_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise ProfileNotFoundError(f"User not found: {user_id}")

    data = snapshot.to_dict() or {}

    if is_new_swipe_day(data.get("lastSwipeResetAt"), now):
        new_count = 1
        updates = {"dailySwipeCount": new_count, "lastSwipeResetAt": now}
    else:
        current = int(data.get("dailySwipeCount") or 0)
        is_premium = bool(data.get("isPremium"))
        if has_reached_swipe_limit(current, is_premium):
            raise SwipeLimitExceededError(get_swipe_limit(is_premium))
        new_count = current + 1
        updates = {"dailySwipeCount": new_count}

    updates["updatedAt"] = firestore.SERVER_TIMESTAMP
    return _SwipePlan(user_ref, updates, new_count)


def _apply_swipe(transaction, user_id: str, now: datetime) -> int:
    plan = _read_swipe(transaction, user_id, now)
    transaction.update(plan.user_ref, plan.updates)
    return plan.count


def _apply_swiped_like(transaction, from_user_id: str, to_user_id: str, now: datetime) -> dict:
    like = _read_like(transaction, from_user_id, to_user_id)
    swipe = _read_swipe(transaction, from_user_id, now)

    result = _write_like(transaction, like, from_user_id, to_user_id)
    transaction.update(swipe.user_ref, swipe.updates)
    return {**result, "swipeCount": swipe.count}


def _apply_swiped_decline(transaction, from_user_id: str, to_user_id: str, now: datetime) -> int:
    _require_target(transaction, to_user_id)
    swipe = _read_swipe(transaction, from_user_id, now)

    _write_decline(transaction, from_user_id, to_user_id)
    transaction.update(swipe.user_ref, swipe.updates)
    return swipe.count


def update_swipe_count(user_id: str, now: datetime | None = None) -> int:
    """Consume one swipe from the user's daily quota and return the new count.

    The first swipe on a new calendar day (in SWIPE_TIMEZONE) resets the
    count to 1 and moves lastSwipeResetAt to ``now``. Otherwise the count is
    incremented, unless it already reached the tier limit.

    Raises:
        ProfileNotFoundError: If the user does not exist.
        SwipeLimitExceededError: If today's quota is used up. Nothing is written.
        FirestoreUnavailableError: If the transaction cannot be committed.
    """

    now = now or datetime.now(timezone.utc)
    new_count = _run_transaction("update swipe count", _apply_swipe, user_id, now)

    logger.debug("User %s swipe count now %s", user_id, new_count)
    return new_count


def swipe_like(from_user_id: str, to_user_id: str, now: datetime | None = None) -> dict:
    """Like a candidate and charge one swipe, both or neither.

    Returns the ``record_like`` result plus ``swipeCount``. An unknown target,
    a used-up quota or a failed commit leaves the counter and the likes
    untouched.
    """

    validate_swipe_pair(from_user_id, to_user_id)
    now = now or datetime.now(timezone.utc)
    result = _run_transaction(
        "record like", _apply_swiped_like, from_user_id, to_user_id, now
    )

    if result["isMatch"]:
        logger.info("Match %s created or confirmed", result["matchId"])
    return result


def swipe_decline(from_user_id: str, to_user_id: str, now: datetime | None = None) -> int:
    """Decline a candidate and charge one swipe atomically. Returns the new count."""

    validate_swipe_pair(from_user_id, to_user_id)
    now = now or datetime.now(timezone.utc)
    return _run_transaction(
        "record decline", _apply_swiped_decline, from_user_id, to_user_id, now
    )


def get_swipe_status(user_id: str, now: datetime | None = None) -> dict:
    """Report today's usage without consuming a swipe."""

    now = now or datetime.now(timezone.utc)

    try:
        snapshot = get_db().collection(USERS).document(user_id).get()
    except Exception as exc:
        logger.error("Failed to fetch swipe status: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc

    if not snapshot.exists:
        raise ProfileNotFoundError(f"User not found: {user_id}")

    data = snapshot.to_dict() or {}
    used = 0
    if not is_new_swipe_day(data.get("lastSwipeResetAt"), now):
        used = int(data.get("dailySwipeCount") or 0)
    limit = get_swipe_limit(bool(data.get("isPremium")))

    return {"used": used, "limit": limit, "remaining": max(0, limit - used)}
