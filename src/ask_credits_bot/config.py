"""Application configuration using Pydantic settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Session affinity cache
    session_ttl: float = Field(
        3600, alias="SESSION_TTL",
        description="Lifetime in seconds of a user's remembered reply context.",
    )
    session_sweep_interval: float = Field(
        1800, alias="SESSION_SWEEP_INTERVAL",
        description="Seconds between background sweeps that purge expired session entries.",
    )
    session_maxsize: int = Field(
        0, alias="SESSION_MAXSIZE",
        description="Max number of users held in the session cache. 0 = unbounded. When capped, the soonest-expiring live entry is evicted.",
    )

    # Credit ledger
    credit_bonus_amount: int = Field(
        250, alias="CREDIT_BONUS_AMOUNT",
        description="Credits granted once, the first time a user checks their balance.",
    )
    ask_credit_cost: int = Field(
        1, alias="ASK_CREDIT_COST",
        description="Credits debited for each answered /ask command.",
    )
    credit_db_path: str = Field(
        "data/bot.db", alias="CREDIT_DB_PATH",
        description="SQLite file backing credit balances and chat logs. Empty = in-memory store (lost on restart).",
    )
    store_timeout: float = Field(
        5.0, alias="STORE_TIMEOUT",
        description="Timeout in seconds for a single credit store read or write.",
    )

    # Text generation (empty key = echo mode)
    openai_api_key: str = Field(
        "", alias="OPENAI_API_KEY",
        description="API key for the OpenAI-compatible completion service. Empty = echo mode.",
    )
    openai_base_url: str = Field(
        "", alias="OPENAI_BASE_URL",
        description="Override the completion service base URL. Empty = SDK default.",
    )
    openai_model: str = Field(
        "gpt-4o-mini", alias="OPENAI_MODEL",
        description="Model name used to answer /ask queries.",
    )
    openai_timeout: float = Field(
        60.0, alias="OPENAI_TIMEOUT",
        description="HTTP request timeout in seconds for completion calls.",
    )

    # Server
    host: str = Field(
        "0.0.0.0", alias="HOST",
        description="Host address to bind the aiohttp server to.",
    )
    port: int = Field(
        3000, alias="PORT",
        description="Port number for the aiohttp server.",
    )

    # Logging
    log_level: str = Field(
        "INFO", alias="LOG_LEVEL",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL.",
    )
    log_file: str = Field(
        "", alias="LOG_FILE",
        description="Path to log file for file-based logging with rotation. Empty = console only.",
    )
    log_file_max_bytes: int = Field(
        10_485_760, alias="LOG_FILE_MAX_BYTES",
        description="Max size in bytes per log file before rotation. Default: 10 MB.",
    )
    log_file_backup_count: int = Field(
        5, alias="LOG_FILE_BACKUP_COUNT",
        description="Number of rotated backup log files to keep.",
    )


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
