"""
Settings for the StudyBuddy matching service.

Every value is read once from the process environment (or `.env`) into the
`config` singleton below. Run `python -m studybuddy.config` to check a
deployment's settings without starting the server.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os


class Config(BaseSettings):
    """
    Typed view of the service environment.

    Field names match the environment variable names exactly.
    """

    # ============================================================
    # FIRESTORE
    # ============================================================
    FIREBASE_PROJECT_ID: str
    """Project that owns the users/likes/matches collections."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Service account key used by firebase_admin."""

    # ============================================================
    # STUDY ASSISTANT LLM (DEEPSEEK PRIMARY, OPENAI FALLBACK)
    # ============================================================
    DEEPSEEK_API_KEY: Optional[str] = None
    """DeepSeek API key for the study assistant. Get from https://platform.deepseek.com"""

    DEEPSEEK_MODEL: str = "deepseek-chat"

    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com/v1"
    """OpenAI-compatible DeepSeek endpoint."""

    OPENAI_API_KEY: Optional[str] = None
    """Used only when DEEPSEEK_API_KEY is empty."""

    OPENAI_MODEL: Optional[str] = "gpt-4o-mini"

    # ============================================================
    # TRACING
    # ============================================================
    LANGSMITH_API_KEY: Optional[str] = None
    LANGSMITH_ENABLED: bool = False
    LANGSMITH_PROJECT: str = "studybuddy-matching"
    """Project name graph traces are filed under."""

    # ============================================================
    # GRAPHS
    # ============================================================
    GRAPH_TIMEOUT: int = 30
    """Seconds allowed for an LLM request inside a graph."""

    # ============================================================
    # MATCHING
    # ============================================================
    DEFAULT_MATCH_LIMIT: int = 20
    """Number of ranked candidates returned when the caller gives no limit."""

    MAX_MATCH_LIMIT: int = 100
    """Upper bound accepted for the candidates limit query parameter."""

    MUTUAL_LIKE_BOOST: float = 200
    """Score added to candidates who already liked the requester."""

    EXCLUDE_DECLINED_FROM_RANKING: bool = False
    """Hide previously declined users from ranking. Off keeps declines advisory only."""

    # ============================================================
    # SWIPE QUOTA
    # ============================================================
    FREE_DAILY_SWIPES: int = 5
    PREMIUM_DAILY_SWIPES: int = 10

    SWIPE_TIMEZONE: str = "UTC"
    """IANA timezone whose calendar day bounds the swipe quota."""

    # ============================================================
    # TOKEN ECONOMY
    # ============================================================
    FOCUS_SESSION_TOKENS: int = 5
    """Tokens awarded for each completed Pomodoro focus session."""

    FOCUS_SESSION_MINUTES: int = 25

    # ============================================================
    # SERVICE
    # ============================================================
    AI_SERVICE_TOKEN: str = os.getenv("AI_SERVICE_TOKEN", "")
    """Bearer token the web app backend must send. Empty disables the check."""

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    DEBUG: bool = False
    """Console logs at DEBUG instead of INFO."""

    LOG_FILE: str = "logs/service.log"
    """Rotating log file. Empty string logs to stdout only."""

    @field_validator("SWIPE_TIMEZONE")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# ============================================================
# SINGLETON INSTANCE
# ============================================================
config = Config()


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Check cross-field rules pydantic cannot express and report what is set.

    The study assistant LLM is optional: matching works without it.

    Returns:
        dict: One status line per subsystem, logged by the server at startup.

    Raises:
        ValueError: Listing every problem found.
    """
    errors = []

    if not config.FIREBASE_PROJECT_ID:
        errors.append("FIREBASE_PROJECT_ID is required")

    if config.FREE_DAILY_SWIPES < 1 or config.PREMIUM_DAILY_SWIPES < 1:
        errors.append("FREE_DAILY_SWIPES and PREMIUM_DAILY_SWIPES must be positive")

    if config.LANGSMITH_ENABLED and not config.LANGSMITH_API_KEY:
        errors.append("LANGSMITH_ENABLED=True but LANGSMITH_API_KEY not set")

    if errors:
        raise ValueError("Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))

    return {
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Missing",
        "deepseek": "✓ Configured" if config.DEEPSEEK_API_KEY else "✗ Not set",
        "openai": "✓ Configured" if config.OPENAI_API_KEY else "✗ Not set",
        "langsmith": "✓ Configured" if config.LANGSMITH_ENABLED else "✗ Disabled",
        "swipe_limits": f"free={config.FREE_DAILY_SWIPES} premium={config.PREMIUM_DAILY_SWIPES}",
    }


if __name__ == "__main__":
    try:
        status = validate_config()
    except ValueError as e:
        print(f"❌ {e}")
        exit(1)
    print("✅ Configuration is valid")
    for key, value in status.items():
        print(f"  {key}: {value}")
