"""Custom exception types for consistent error handling."""


class FirestoreUnavailableError(Exception):
    """Raised when Firestore queries fail or are unavailable."""


class ProfileNotFoundError(Exception):
    """Raised when a required user profile does not exist."""


class InvalidInputError(Exception):
    """Raised when request input validation fails."""


class SwipeLimitExceededError(Exception):
    """Raised when a user has used up today's swipe quota."""

    def __init__(self, limit: int):
        super().__init__(f"Daily swipe limit of {limit} reached")
        self.limit = limit


class InsufficientTokensError(Exception):
    """Raised when a purchase costs more tokens than the user holds."""


# Domain errors that store wrappers must pass through unchanged instead of
# re-raising as FirestoreUnavailableError.
DOMAIN_ERRORS = (
    FirestoreUnavailableError,
    ProfileNotFoundError,
    InvalidInputError,
    SwipeLimitExceededError,
    InsufficientTokensError,
)
