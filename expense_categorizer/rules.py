"""User-taught categorization rules.

A learned rule says "descriptions that normalize to this merchant pattern get
this category". Rules win over every other categorization stage and are the
only source of ``confidence == 1.0``.

Storage is abstracted behind :class:`RuleStore` (``load``/``save``/``clear``
of a :class:`~expense_categorizer.models.RuleEnvelope`). The envelope carries
``RULES_VERSION``; an envelope with any other version is discarded outright
and the store cleared. There is no migration.

Stores
------
- :class:`InMemoryRuleStore`: process-local, used by tests and ephemeral runs.
- :class:`JsonFileRuleStore`: one JSON file, written atomically.
- :class:`expense_categorizer.persistence.SqlRuleStore`: SQLAlchemy-backed.

:class:`LearnedRules` implements the rule lifecycle on top of any store:
create-or-update on manual correction, apply (with usage accounting) during
categorization, delete, clear, and JSON export/import.
"""

from __future__ import annotations

import json
import os
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, NamedTuple, Protocol, runtime_checkable

from pydantic import ValidationError

from .categories import is_valid_category
from .logging_setup import get_logger
from .merchants import rule_key
from .models import CategoryRule, RuleEnvelope

_logger = get_logger("expense_categorizer.rules")

RULES_VERSION = "1.0"

type Now = Callable[[], datetime]


class RuleImportError(ValueError):
    """Raised when an import payload is not usable at all."""


class RuleUpdate(NamedTuple):
    is_new_rule: bool
    rule: CategoryRule


class RuleMatch(NamedTuple):
    category: str
    rule: CategoryRule


class ImportResult(NamedTuple):
    imported: int
    skipped: int


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@runtime_checkable
class RuleStore(Protocol):
    def load(self) -> RuleEnvelope | None: ...

    def save(self, envelope: RuleEnvelope) -> None: ...

    def clear(self) -> None: ...


class InMemoryRuleStore:
    """Keeps a JSON copy of the envelope so callers never share mutable rules."""

    def __init__(self, envelope: RuleEnvelope | None = None) -> None:
        self._payload: str | None = None
        if envelope is not None:
            self.save(envelope)

    def load(self) -> RuleEnvelope | None:
        if self._payload is None:
            return None
        return RuleEnvelope.model_validate_json(self._payload)

    def save(self, envelope: RuleEnvelope) -> None:
        self._payload = envelope.model_dump_json(by_alias=True)

    def clear(self) -> None:
        self._payload = None


class JsonFileRuleStore:
    """Envelope stored as a single JSON document on disk.

    Writes go to ``<path>.tmp`` and are moved into place with ``os.replace``.
    An unreadable or invalid file is logged and treated as empty.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load(self) -> RuleEnvelope | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            _logger.warning("rules:store_read_failed path=%s error=%s", self.path, e)
            return None
        try:
            return RuleEnvelope.model_validate_json(raw)
        except ValidationError as e:
            _logger.warning(
                "rules:store_invalid path=%s errors=%d", self.path, e.error_count()
            )
            return None

    def save(self, envelope: RuleEnvelope) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(envelope.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Rule lifecycle
# ---------------------------------------------------------------------------


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class LearnedRules:
    """Rule operations over a :class:`RuleStore`.

    Every operation loads the envelope fresh and saves it back when it changes
    anything, so several ``LearnedRules`` instances over the same store stay
    consistent.
    """

    def __init__(self, store: RuleStore, *, now: Now = _utc_now) -> None:
        self._store = store
        self._now = now

    @property
    def store(self) -> RuleStore:
        return self._store

    # ---- Persistence ----------------------------------------------------

    def rules(self) -> list[CategoryRule]:
        """Return all stored rules, discarding a stored envelope of another version."""

        envelope = self._store.load()
        if envelope is None:
            return []
        if envelope.version != RULES_VERSION:
            _logger.warning(
                "rules:version_mismatch stored=%s current=%s discarded=%d",
                envelope.version,
                RULES_VERSION,
                len(envelope.rules),
            )
            self._store.clear()
            return []
        return envelope.rules

    def _save(self, rules: list[CategoryRule]) -> None:
        self._store.save(
            RuleEnvelope(version=RULES_VERSION, rules=rules, updated_at=_timestamp(self._now()))
        )

    # ---- Lifecycle --------------------------------------------------------

    def create_or_update_rule(self, description: str, category: str) -> RuleUpdate:
        """Record a manual correction of ``description`` to ``category``."""

        if not description.strip():
            raise ValueError("description must not be empty")
        if not is_valid_category(category):
            raise ValueError(f"Unknown category: {category!r}")

        pattern = rule_key(description)
        stamp = _timestamp(self._now())
        rules = self.rules()
        for rule in rules:
            if rule.merchant_pattern == pattern:
                rule.category = category
                rule.applied_count += 1
                rule.last_applied = stamp
                self._save(rules)
                _logger.info("rules:updated id=%s applied_count=%d", rule.id, rule.applied_count)
                return RuleUpdate(is_new_rule=False, rule=rule)

        rule = CategoryRule(
            id=f"rule_{uuid.uuid4().hex[:16]}",
            merchant_pattern=pattern,
            category=category,
            confidence=1.0,
            created_at=stamp,
            applied_count=1,
            last_applied=stamp,
        )
        rules.append(rule)
        self._save(rules)
        _logger.info("rules:created id=%s total=%d", rule.id, len(rules))
        return RuleUpdate(is_new_rule=True, rule=rule)

    def apply_rules(self, description: str) -> RuleMatch | None:
        """Return the matching rule's category, recording the use, or ``None``."""

        rules = self.rules()
        if not rules:
            return None
        pattern = rule_key(description)
        for rule in rules:
            if rule.merchant_pattern == pattern:
                rule.applied_count += 1
                rule.last_applied = _timestamp(self._now())
                try:
                    self._save(rules)
                except Exception as e:  # noqa: BLE001
                    # usage counters are advisory; the match stands
                    _logger.warning(
                        "rules:usage_save_failed id=%s error=%s", rule.id, e.__class__.__name__
                    )
                return RuleMatch(category=rule.category, rule=rule)
        return None

    def delete_rule(self, rule_id: str) -> bool:
        rules = self.rules()
        kept = [r for r in rules if r.id != rule_id]
        if len(kept) == len(rules):
            return False
        self._save(kept)
        _logger.info("rules:deleted id=%s remaining=%d", rule_id, len(kept))
        return True

    def clear_all_rules(self) -> None:
        self._store.clear()
        _logger.info("rules:cleared")

    def count(self) -> int:
        return len(self.rules())

    def top_rules(self, limit: int = 10) -> list[CategoryRule]:
        """Most-used rules first."""

        return sorted(self.rules(), key=lambda r: r.applied_count, reverse=True)[:limit]

    # ---- Export / import --------------------------------------------------

    def export_as_json(self) -> str:
        payload = {
            "version": RULES_VERSION,
            "exportedAt": _timestamp(self._now()),
            "rules": [r.model_dump(mode="json", by_alias=True) for r in self.rules()],
        }
        return json.dumps(payload, indent=2)

    def import_from_json(self, text: str) -> ImportResult:
        """Merge rules from an export; existing patterns are never overwritten.

        Accepts the ``export_as_json`` document or a bare JSON array of rules.
        Rules that fail validation or duplicate a known pattern are skipped.
        """

        try:
            data: Any = json.loads(text)
        except json.JSONDecodeError as e:
            raise RuleImportError(f"Invalid JSON: {e.msg}") from e

        items = data.get("rules") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise RuleImportError("Invalid JSON format: missing rules array")

        rules = self.rules()
        known = {r.merchant_pattern for r in rules}
        imported = 0
        skipped = 0
        for item in items:
            try:
                rule = CategoryRule.model_validate(item)
            except ValidationError:
                skipped += 1
                continue
            if rule.merchant_pattern in known:
                skipped += 1
                continue
            known.add(rule.merchant_pattern)
            rules.append(rule)
            imported += 1

        if imported:
            self._save(rules)
        _logger.info("rules:imported imported=%d skipped=%d", imported, skipped)
        return ImportResult(imported=imported, skipped=skipped)


__all__ = [
    "RULES_VERSION",
    "ImportResult",
    "InMemoryRuleStore",
    "JsonFileRuleStore",
    "LearnedRules",
    "RuleImportError",
    "RuleMatch",
    "RuleStore",
    "RuleUpdate",
]
