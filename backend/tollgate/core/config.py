"""Configuration settings for the Tollgate backend.

Wraps environment variables and provides defaults.
"""

from typing import Optional

from pydantic import Field, PostgresDsn, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings class.

    Attributes:
    ----------
        PROJECT_NAME (str): The name of the project.
        ENVIRONMENT (str): The deployment environment (local, dev, test, prod).
        LOCAL_DEVELOPMENT (bool): Whether the application is running locally.
        DEBUG (bool): Whether debug mode is enabled.
        LOG_LEVEL (str): The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        POSTGRES_HOST (str): The PostgreSQL server hostname.
        POSTGRES_DB (str): The PostgreSQL database name.
        POSTGRES_USER (str): The PostgreSQL username.
        POSTGRES_PASSWORD (str): The PostgreSQL password.
        SQLALCHEMY_ASYNC_DATABASE_URI (Optional[str]): The SQLAlchemy async database URI.
        REDIS_HOST (str): The Redis server hostname.
        REDIS_PORT (int): The Redis server port.
        REDIS_PASSWORD (Optional[str]): The Redis password (if authentication is enabled).
        REDIS_DB (int): The Redis database number.
        PENDING_CHECKOUT_STORE (str): Backend for short-lived checkout state ("memory", "redis").
        STRIPE_ENABLED (bool): Whether Stripe checkout and webhooks are enabled.
        STRIPE_SECRET_KEY (Optional[str]): The Stripe API secret key.
        STRIPE_WEBHOOK_SECRET (Optional[str]): The Stripe webhook signing secret.
        STRIPE_WEBHOOK_TOLERANCE_SECONDS (int): Max age of a signed Stripe payload.
        RAZORPAY_ENABLED (bool): Whether Razorpay checkout and webhooks are enabled.
        RAZORPAY_KEY_ID (Optional[str]): The Razorpay key id.
        RAZORPAY_KEY_SECRET (Optional[str]): The Razorpay key secret.
        RAZORPAY_WEBHOOK_SECRET (Optional[str]): The Razorpay webhook secret.
        RAZORPAY_API_URL (str): Base URL of the Razorpay REST API.
        PROVIDER_TIMEOUT_SECONDS (float): Timeout for outbound payment provider calls.
        FREE_TRIAL_DAYS (int): Length of the free trial.
        IDEMPOTENCY_RETENTION_DAYS (int): How long processed webhook keys are kept.
        SCHEDULER_ENABLED (bool): Whether the expiry sweep runs in the API process.
        EXPIRY_SWEEP_INTERVAL_SECONDS (int): Seconds between expiry sweeps.
        IDEMPOTENCY_PRUNE_CRON (str): Cron schedule (UTC) for pruning old webhook keys.
        APP_URL (str): Frontend URL used for checkout redirects.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Tollgate"
    ENVIRONMENT: str = "local"
    LOCAL_DEVELOPMENT: bool = False

    # Debug configuration
    DEBUG: bool = False

    # Logging configuration
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "localhost"
    POSTGRES_DB: str = "tollgate"
    POSTGRES_USER: str = "tollgate"
    POSTGRES_PASSWORD: str = ""
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)

    # Redis configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0
    PENDING_CHECKOUT_STORE: str = "memory"

    # Stripe configuration
    STRIPE_ENABLED: bool = False
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Razorpay configuration
    RAZORPAY_ENABLED: bool = False
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_WEBHOOK_SECRET: Optional[str] = None
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"

    PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # Subscription lifecycle
    FREE_TRIAL_DAYS: int = 3
    IDEMPOTENCY_RETENTION_DAYS: int = 30
    SCHEDULER_ENABLED: bool = False
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 300
    IDEMPOTENCY_PRUNE_CRON: str = "0 3 * * *"

    APP_URL: str = "http://localhost:8080"

    @field_validator("SQLALCHEMY_ASYNC_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> str:
        """Build the SQLAlchemy database URI.

        Args:
        ----
            v (Optional[str]): The value of the SQLALCHEMY_ASYNC_DATABASE_URI setting.
            info (ValidationInfo): The validation context containing all field values.

        Returns:
        -------
            str: The assembled SQLAlchemy async database URI.

        """
        if isinstance(v, str):
            return v

        return str(
            PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=info.data.get("POSTGRES_USER"),
                password=info.data.get("POSTGRES_PASSWORD") or None,
                host=info.data.get("POSTGRES_HOST", "localhost"),
                path=f"{info.data.get('POSTGRES_DB') or ''}",
            )
        )

    @field_validator("PENDING_CHECKOUT_STORE", mode="before")
    def validate_pending_checkout_store(cls, v: str) -> str:
        """Only the in-memory and redis stores exist."""
        if v not in ("memory", "redis"):
            raise ValueError("PENDING_CHECKOUT_STORE must be 'memory' or 'redis'")
        return v

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite (tests and local runs)."""
        return str(self.SQLALCHEMY_ASYNC_DATABASE_URI).startswith("sqlite")


settings = Settings()
