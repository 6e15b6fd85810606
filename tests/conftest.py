"""Pytest configuration for test isolation.

Learned rules are persisted to a JSON file under the user's home directory by
default, and the merchant cache is process-wide. Either would leak state from
one test into the next (a rule taught in one test would short-circuit the
stubbed classifier in another), so every test gets its own rules file, a
fresh default cache and an environment without API keys or database URLs.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from expense_categorizer.cache import reset_default_cache


@pytest.fixture(autouse=True)
def _isolate_rules_and_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    rules_path = tmp_path / "rules" / "rules.json"
    monkeypatch.setenv("EXPENSE_CATEGORIZER_RULES_PATH", os.fspath(rules_path))
    for name in ("OPENAI_API_KEY", "DATABASE_URL", "EXPENSE_CATEGORIZER_CACHE_TTL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _fresh_default_cache():
    reset_default_cache()
    yield
    reset_default_cache()
