"""Token economy: Pomodoro rewards and shop purchases."""

from __future__ import annotations

from firebase_admin import firestore

from studybuddy.config import config
from studybuddy.tools.firestore_tools import TOKEN_TRANSACTIONS, USERS, get_db
from studybuddy.utils.errors import (
    DOMAIN_ERRORS,
    FirestoreUnavailableError,
    InsufficientTokensError,
    InvalidInputError,
    ProfileNotFoundError,
)
from studybuddy.utils.logging_config import logger


def _transaction_log(user_id: str, amount: int, kind: str, description: str) -> dict:
    return {
        "userId": user_id,
        "amount": amount,
        "type": kind,
        "description": description,
        "createdAt": firestore.SERVER_TIMESTAMP,
    }


def award_focus_session(user_id: str) -> int:
    """Credit one completed focus session and return the tokens awarded."""

    tokens = config.FOCUS_SESSION_TOKENS
    minutes = config.FOCUS_SESSION_MINUTES

    try:
        db = get_db()
        user_ref = db.collection(USERS).document(user_id)
        if not user_ref.get().exists:
            raise ProfileNotFoundError(f"User not found: {user_id}")

        batch = db.batch()
        batch.update(
            user_ref,
            {
                "tokens": firestore.Increment(tokens),
                "totalStudyTime": firestore.Increment(minutes),
                "updatedAt": firestore.SERVER_TIMESTAMP,
            },
        )
        batch.set(
            db.collection(TOKEN_TRANSACTIONS).document(),
            _transaction_log(
                user_id, tokens, "study_complete", f"Completed a {minutes}-minute focus session"
            ),
        )
        batch.commit()
    except DOMAIN_ERRORS:
        raise
    except Exception as exc:
        logger.error("Failed to award focus session: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc

    logger.info("Awarded %s tokens to %s", tokens, user_id)
    return tokens


# Focus-timer backgrounds and ambient sounds, priced in tokens. Free entries
# are available to everyone and never need buying.
SHOP_ITEMS = {
    "nature_1": 0,
    "anime_1": 20,
    "nature_2": 15,
    "night_1": 25,
    "lofi_1": 30,
    "none": 0,
    "rain": 10,
    "forest": 10,
    "cafe": 15,
    "fireplace": 15,
    "waves": 20,
}


def get_item_price(item_id: str) -> int:
    """Catalog price of a shop item. Unknown and free items cannot be bought."""

    if item_id not in SHOP_ITEMS:
        raise InvalidInputError(f"Unknown shop item: {item_id}")
    price = SHOP_ITEMS[item_id]
    if price == 0:
        raise InvalidInputError(f"Item is free and needs no purchase: {item_id}")
    return price


def _apply_purchase(transaction, user_id: str, item_id: str, price: int) -> int:
    db = get_db()
    user_ref = db.collection(USERS).document(user_id)
    snapshot = user_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise ProfileNotFoundError(f"User not found: {user_id}")

    data = snapshot.to_dict() or {}
    balance = int(data.get("tokens") or 0)
    owned = list(data.get("purchasedItems") or [])

    if item_id in owned:
        raise InvalidInputError(f"Item already purchased: {item_id}")
    if balance < price:
        raise InsufficientTokensError(
            f"Item {item_id} costs {price} tokens, balance is {balance}"
        )

    new_balance = balance - price
    transaction.update(
        user_ref,
        {
            "tokens": new_balance,
            "purchasedItems": [*owned, item_id],
            "updatedAt": firestore.SERVER_TIMESTAMP,
        },
    )
    transaction.set(
        db.collection(TOKEN_TRANSACTIONS).document(),
        _transaction_log(user_id, -price, "voucher_redeem", f"Purchased {item_id}"),
    )
    return new_balance


def purchase_item(user_id: str, item_id: str) -> int:
    """Buy a shop item at its catalog price and return the remaining balance.

    Raises:
        InvalidInputError: Unknown or free item, or item already owned.
        InsufficientTokensError: Balance below the price.
        ProfileNotFoundError: Unknown user.
    """

    price = get_item_price(item_id)

    try:
        return firestore.transactional(_apply_purchase)(
            get_db().transaction(), user_id, item_id, price
        )
    except DOMAIN_ERRORS:
        raise
    except Exception as exc:
        logger.error("Failed to purchase item: %s", str(exc))
        raise FirestoreUnavailableError(str(exc)) from exc
