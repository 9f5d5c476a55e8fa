"""
Configuration management for GetStocks Relay.
Loads environment variables and provides centralized configuration.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


TELEGRAM_MODES = ("polling", "webhook")

DEFAULT_DB_PATH = "data/getstocks.db"


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""
    pass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default: str, cast=int):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


@dataclass
class Config:
    """Application configuration."""

    # Telegram Bot
    telegram_token: str

    # GetStocks provider
    getstocks_token: str
    getstocks_base_url: str = "https://getstocks.net"

    # Request limits
    max_input_links: int = 5
    request_timeout: int = 30  # Seconds

    # Polling
    chat_poll_interval: float = 10
    web_poll_interval: float = 5
    poll_timeout: float = 60

    # Pending type selections (chat channel)
    pending_ttl_seconds: int = 600

    # Telegram update delivery
    telegram_mode: str = "polling"
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None

    # Web form server
    web_enabled: bool = True
    web_host: str = "0.0.0.0"
    web_port: int = 8080

    # Download history
    db_path: str = DEFAULT_DB_PATH

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        """
        Load configuration from environment variables.

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        telegram_token = os.getenv("TELEGRAM_BOT_TOKEN")
        getstocks_token = os.getenv("GETSTOCKS_TOKEN")
        missing = []
        if not telegram_token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not getstocks_token:
            missing.append("GETSTOCKS_TOKEN")

        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        telegram_mode = os.getenv("TELEGRAM_MODE", "polling").strip().lower()
        if telegram_mode not in TELEGRAM_MODES:
            raise ConfigurationError(
                f"TELEGRAM_MODE must be one of {', '.join(TELEGRAM_MODES)}, got '{telegram_mode}'"
            )

        webhook_url = os.getenv("WEBHOOK_URL") or None
        web_enabled = _env_bool("WEB_ENABLED", True)
        if telegram_mode == "webhook":
            if not webhook_url:
                raise ConfigurationError("WEBHOOK_URL is required when TELEGRAM_MODE=webhook")
            if not web_enabled:
                raise ConfigurationError("WEB_ENABLED must be true when TELEGRAM_MODE=webhook")

        max_input_links = _env_number("MAX_INPUT_LINKS", "5")
        if max_input_links < 1:
            raise ConfigurationError("MAX_INPUT_LINKS must be at least 1")

        return cls(
            telegram_token=telegram_token,
            getstocks_token=getstocks_token,
            getstocks_base_url=os.getenv("GETSTOCKS_BASE_URL", "https://getstocks.net").rstrip("/"),
            max_input_links=max_input_links,
            request_timeout=_env_number("REQUEST_TIMEOUT", "30"),
            chat_poll_interval=_env_number("CHAT_POLL_INTERVAL", "10", float),
            web_poll_interval=_env_number("WEB_POLL_INTERVAL", "5", float),
            poll_timeout=_env_number("POLL_TIMEOUT", "60", float),
            pending_ttl_seconds=_env_number("PENDING_TTL_SECONDS", "600"),
            telegram_mode=telegram_mode,
            webhook_url=webhook_url,
            webhook_secret=os.getenv("WEBHOOK_SECRET") or None,
            web_enabled=web_enabled,
            web_host=os.getenv("WEB_HOST", "0.0.0.0"),
            web_port=_env_number("PORT", "8080"),
            db_path=get_db_path(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", False),
        )


def get_db_path() -> str:
    """Download history location. Reads only DB_PATH, without the bot tokens."""
    return os.getenv("DB_PATH") or DEFAULT_DB_PATH


def get_config() -> Config:
    """Get the application configuration."""
    return Config.from_env()
