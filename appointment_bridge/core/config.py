from functools import lru_cache

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables at runtime.

    Covers:
    - DB connection
    - Source (field-service scheduling) platform credentials
    - Target (CRM calendar) platform credentials
    - Internal API key for trigger endpoints
    - Reconciliation tuning and quote defaults used when booking on Source
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Appointment Bridge"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root logging level.")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./appointment_bridge.db",
        description="SQLAlchemy-compatible async database URL",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Source platform (scheduling backend) ---
    SOURCE_API_BASE_URL: AnyHttpUrl | None = None
    SOURCE_USERNAME: str | None = None
    SOURCE_PASSWORD: str | None = None

    # --- Target platform (CRM calendars) ---
    TARGET_API_BASE_URL: AnyHttpUrl | None = None
    TARGET_API_TOKEN: str | None = None
    TARGET_API_VERSION: str = Field(
        "2021-04-15",
        description="Value sent in the Version header on every Target request.",
    )

    PLATFORM_TIMEOUT_SECONDS: float = Field(
        30.0,
        description="Timeout applied to every outbound platform call.",
    )
    SYNC_ITEM_TIMEOUT_SECONDS: float = Field(
        90.0,
        description=(
            "Upper bound for a single appointment push during reconciliation. "
            "A push exceeding it is counted as a failure and the pass continues."
        ),
    )
    RECONCILIATION_LOOKBACK_DAYS: int = Field(
        30,
        description="Trailing window (days) included in a full reconciliation pass.",
    )

    # --- Defaults used by the Lead > Quote > Book workflow ---
    DEFAULT_SERVICE_SET_ID: int = 1
    DEFAULT_SCOPE_GROUP_ID: int = 1
    DEFAULT_FREQUENCY_ID: int = 1
    DEFAULT_PAYMENT_METHOD: str = "Check/Cash"


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
