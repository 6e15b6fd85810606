"""Runtime settings read from the environment.

Hosts call :func:`load_settings` after ``dotenv.load_dotenv()`` so that a local
``.env`` file can provide the same variables. Library code receives explicit
arguments and never reads the environment on its own, apart from the defaults
used for the lazily created process-wide merchant cache.

Variables
---------
``OPENAI_API_KEY``
    Enables the AI classifier in the CLI when present.
``EXPENSE_CATEGORIZER_MODEL``
    Responses API model name (default ``gpt-4o-mini``).
``EXPENSE_CATEGORIZER_AI_TIMEOUT``
    HTTP timeout in seconds for classifier calls (default ``30``).
``EXPENSE_CATEGORIZER_RULES_PATH``
    JSON file for learned rules (default ``~/.expense_categorizer/rules.json``).
``DATABASE_URL``
    When set, learned rules live in this SQL database instead.
``EXPENSE_CATEGORIZER_CACHE_TTL`` / ``EXPENSE_CATEGORIZER_SWEEP_INTERVAL``
    Merchant cache idle TTL and sweep interval in seconds (``3600`` / ``600``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .logging_setup import get_logger

_logger = get_logger("expense_categorizer.config")

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_AI_TIMEOUT_SECONDS = 30.0
DEFAULT_CACHE_TTL_SECONDS = 3600.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 600.0


def _default_rules_path() -> Path:
    return Path.home() / ".expense_categorizer" / "rules.json"


@dataclass(frozen=True, slots=True)
class Settings:
    openai_api_key: str | None
    model: str
    ai_timeout_seconds: float
    rules_path: Path
    database_url: str | None
    cache_ttl_seconds: float
    sweep_interval_seconds: float

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)


def _env_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def _env_positive_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        _logger.warning("config:invalid_number name=%s using_default=%s", name, default)
        return default
    if value <= 0:
        _logger.warning("config:non_positive name=%s using_default=%s", name, default)
        return default
    return value


def load_settings() -> Settings:
    """Build :class:`Settings` from the current process environment."""

    rules_path = _env_str("EXPENSE_CATEGORIZER_RULES_PATH")
    return Settings(
        openai_api_key=_env_str("OPENAI_API_KEY"),
        model=_env_str("EXPENSE_CATEGORIZER_MODEL") or DEFAULT_MODEL,
        ai_timeout_seconds=_env_positive_float(
            "EXPENSE_CATEGORIZER_AI_TIMEOUT", DEFAULT_AI_TIMEOUT_SECONDS
        ),
        rules_path=Path(rules_path).expanduser() if rules_path else _default_rules_path(),
        database_url=_env_str("DATABASE_URL"),
        cache_ttl_seconds=_env_positive_float(
            "EXPENSE_CATEGORIZER_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS
        ),
        sweep_interval_seconds=_env_positive_float(
            "EXPENSE_CATEGORIZER_SWEEP_INTERVAL", DEFAULT_SWEEP_INTERVAL_SECONDS
        ),
    )


__all__ = [
    "DEFAULT_AI_TIMEOUT_SECONDS",
    "DEFAULT_CACHE_TTL_SECONDS",
    "DEFAULT_MODEL",
    "DEFAULT_SWEEP_INTERVAL_SECONDS",
    "Settings",
    "load_settings",
]
