"""
Configuration - Settings loaded from the environment (and a .env file).
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class Settings:
    """Runtime settings for the service."""
    env: str = "development"
    store_backend: str = "memory"  # "memory" or "redis"
    redis_url: str = "redis://localhost:6379/0"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    # Game rules
    max_players: int = 8
    turn_time_limit: int = 30
    reaction_window: int = 10

    # Server
    host: str = "0.0.0.0"
    port: int = 8000


def load_settings() -> Settings:
    """Read settings from environment variables."""
    return Settings(
        env=os.getenv("GUESSGAME_ENV", "development"),
        store_backend=os.getenv("GUESSGAME_STORE", "memory").lower(),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
        log_level=os.getenv("GUESSGAME_LOG_LEVEL", "INFO").upper(),
        max_players=_env_int("GUESSGAME_MAX_PLAYERS", 8),
        turn_time_limit=_env_int("GUESSGAME_TURN_TIME_LIMIT", 30),
        reaction_window=_env_int("GUESSGAME_REACTION_WINDOW", 10),
        host=os.getenv("GUESSGAME_HOST", "0.0.0.0"),
        port=_env_int("GUESSGAME_PORT", 8000),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
