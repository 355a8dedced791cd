import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Session snapshots (read back by the hosting workflow after the screen closes)
    STORE_SNAPSHOTS: bool = os.getenv("STORE_SNAPSHOTS", "true").lower() == "true"
    SNAPSHOT_TTL_SEC: int = int(os.getenv("SNAPSHOT_TTL_SEC", "3600"))

    # Remote duplicate lookup
    LOOKUP_BASE_URL: str = os.getenv("LOOKUP_BASE_URL", "")
    LOOKUP_API_KEY: str = os.getenv("LOOKUP_API_KEY", "")
    LOOKUP_TIMEOUT_SEC: float = float(os.getenv("LOOKUP_TIMEOUT_SEC", "10"))
    INDIVIDUAL_LOOKUP_PATH: str = os.getenv("INDIVIDUAL_LOOKUP_PATH", "/duplicates/individual")
    BUSINESS_LOOKUP_PATH: str = os.getenv("BUSINESS_LOOKUP_PATH", "/duplicates/business")

    # Session timing. COUNTDOWN_SECONDS counts ticks; the countdown lasts
    # COUNTDOWN_SECONDS * COUNTDOWN_TICK_SECONDS.
    DEBOUNCE_MS: int = int(os.getenv("DEBOUNCE_MS", "100"))
    COUNTDOWN_SECONDS: int = int(os.getenv("COUNTDOWN_SECONDS", "5"))
    COUNTDOWN_TICK_SECONDS: float = float(os.getenv("COUNTDOWN_TICK_SECONDS", "1"))

    # Advance notification to the hosting workflow (empty disables the webhook)
    ADVANCE_WEBHOOK_URL: str = os.getenv("ADVANCE_WEBHOOK_URL", "")
    ADVANCE_WEBHOOK_TIMEOUT_SEC: float = float(os.getenv("ADVANCE_WEBHOOK_TIMEOUT_SEC", "5"))

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Security & Privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
