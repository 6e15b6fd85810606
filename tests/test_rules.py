from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from expense_categorizer.models import CategoryRule, RuleEnvelope
from expense_categorizer.rules import (
    RULES_VERSION,
    InMemoryRuleStore,
    JsonFileRuleStore,
    LearnedRules,
    RuleImportError,
)


class FakeNow:
    def __init__(self) -> None:
        self.moment = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.moment


def _rules(store=None, now=None) -> LearnedRules:
    return LearnedRules(store or InMemoryRuleStore(), now=now or FakeNow())


# ---- Lifecycle ------------------------------------------------------------------


def test_create_rule_then_match_variants_of_the_merchant() -> None:
    rules = _rules()
    update = rules.create_or_update_rule("STARBUCKS #1234 SEATTLE WA", "Food & Dining")

    assert update.is_new_rule is True
    assert update.rule.merchant_pattern == "starbucks seattle"
    assert update.rule.confidence == 1.0
    assert update.rule.id.startswith("rule_")
    assert update.rule.created_at == "2024-03-01T12:00:00.000Z"
    assert update.rule.applied_count == 1

    match = rules.apply_rules("Starbucks #99 Seattle")
    assert match is not None
    assert match.category == "Food & Dining"
    assert rules.apply_rules("STARBUCKS RESERVE NYC") is None


def test_second_correction_updates_the_existing_rule() -> None:
    now = FakeNow()
    rules = _rules(now=now)
    first = rules.create_or_update_rule("SHELL OIL 123", "Transportation")
    now.moment += timedelta(days=1)
    second = rules.create_or_update_rule("SHELL OIL 456", "Shopping")

    assert second.is_new_rule is False
    assert second.rule.id == first.rule.id
    assert second.rule.category == "Shopping"
    assert second.rule.applied_count == 2
    assert second.rule.last_applied == "2024-03-02T12:00:00.000Z"
    assert rules.count() == 1


def test_context_words_keep_rules_apart() -> None:
    rules = _rules()
    rules.create_or_update_rule("CAPITAL ONE FEE", "Other")
    rules.create_or_update_rule("CAPITAL ONE PAYMENT", "Payment")

    assert rules.count() == 2
    assert rules.apply_rules("CAPITAL ONE PAYMENT").category == "Payment"
    assert rules.apply_rules("CAPITAL ONE FEE").category == "Other"


def test_applying_a_rule_records_usage() -> None:
    rules = _rules()
    rules.create_or_update_rule("NETFLIX.COM", "Entertainment")
    rules.apply_rules("NETFLIX.COM")
    rules.apply_rules("NETFLIX.COM")

    [rule] = rules.rules()
    assert rule.applied_count == 3


def test_invalid_corrections_raise_value_error() -> None:
    rules = _rules()
    with pytest.raises(ValueError, match="Unknown category"):
        rules.create_or_update_rule("NETFLIX.COM", "Streaming")
    with pytest.raises(ValueError):
        rules.create_or_update_rule("   ", "Entertainment")
    assert rules.count() == 0


def test_delete_clear_and_top_rules() -> None:
    rules = _rules()
    netflix = rules.create_or_update_rule("NETFLIX.COM", "Entertainment").rule
    rules.create_or_update_rule("SHELL OIL", "Transportation")
    for _ in range(3):
        rules.apply_rules("SHELL OIL")

    assert [r.merchant_pattern for r in rules.top_rules(1)] == ["shell oil"]
    assert rules.delete_rule(netflix.id) is True
    assert rules.delete_rule(netflix.id) is False
    assert rules.count() == 1

    rules.clear_all_rules()
    assert rules.count() == 0
    assert rules.apply_rules("SHELL OIL") is None


def test_envelope_of_another_version_is_discarded() -> None:
    old_rule = CategoryRule(
        id="rule_old",
        merchant_pattern="netflix com",
        category="Entertainment",
        created_at="2023-01-01T00:00:00.000Z",
    )
    store = InMemoryRuleStore(
        RuleEnvelope(version="0.9", rules=[old_rule], updated_at="2023-01-01T00:00:00.000Z")
    )
    rules = _rules(store)

    assert rules.rules() == []
    assert store.load() is None
    assert rules.apply_rules("NETFLIX.COM") is None


# ---- JSON file store ------------------------------------------------------------------


def test_json_store_round_trips_with_camel_case_keys(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "rules.json"
    rules = _rules(JsonFileRuleStore(path))
    rules.create_or_update_rule("NETFLIX.COM", "Entertainment")

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["version"] == RULES_VERSION
    assert doc["updatedAt"] == "2024-03-01T12:00:00.000Z"
    assert doc["rules"][0]["merchantPattern"] == "netflix com"
    assert doc["rules"][0]["appliedCount"] == 1
    assert not path.with_name("rules.json.tmp").exists()

    reloaded = LearnedRules(JsonFileRuleStore(path))
    assert reloaded.apply_rules("Netflix.com").category == "Entertainment"


def test_corrupt_json_file_is_treated_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text("{not json", encoding="utf-8")

    rules = _rules(JsonFileRuleStore(path))
    assert rules.rules() == []
    rules.create_or_update_rule("HULU", "Entertainment")
    assert rules.count() == 1


def test_json_store_clear_removes_the_file(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    rules = _rules(JsonFileRuleStore(path))
    rules.create_or_update_rule("HULU", "Entertainment")
    rules.clear_all_rules()
    assert not path.exists()
    rules.clear_all_rules()


# ---- Export / import -------------------------------------------------------------------


def test_export_then_import_into_another_store() -> None:
    source = _rules()
    source.create_or_update_rule("NETFLIX.COM", "Entertainment")
    source.create_or_update_rule("SHELL OIL", "Transportation")
    exported = source.export_as_json()

    doc = json.loads(exported)
    assert doc["version"] == RULES_VERSION
    assert doc["exportedAt"] == "2024-03-01T12:00:00.000Z"
    assert {r["merchantPattern"] for r in doc["rules"]} == {"netflix com", "shell oil"}

    target = _rules()
    target.create_or_update_rule("SHELL OIL 99", "Shopping")
    outcome = target.import_from_json(exported)

    assert (outcome.imported, outcome.skipped) == (1, 1)
    # existing patterns are never overwritten
    assert target.apply_rules("SHELL OIL").category == "Shopping"
    assert target.apply_rules("NETFLIX.COM").category == "Entertainment"


def test_import_accepts_a_bare_array_and_skips_invalid_rules() -> None:
    payload = [
        {
            "id": "rule_a",
            "merchantPattern": "spotify usa",
            "category": "Entertainment",
            "confidence": 1.0,
            "createdAt": "2024-01-01T00:00:00.000Z",
            "appliedCount": 4,
        },
        {
            "id": "rule_b",
            "merchantPattern": "mystery shop",
            "category": "Not A Category",
            "createdAt": "2024-01-01T00:00:00.000Z",
        },
        {"merchantPattern": "missing id"},
    ]
    rules = _rules()
    outcome = rules.import_from_json(json.dumps(payload))

    assert (outcome.imported, outcome.skipped) == (1, 2)
    [rule] = rules.rules()
    assert rule.id == "rule_a"
    assert rule.applied_count == 4


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("{oops", "Invalid JSON"),
        ('{"version": "1.0"}', "Invalid JSON format: missing rules array"),
        ('"just a string"', "Invalid JSON format: missing rules array"),
    ],
)
def test_import_rejects_unusable_payloads(text: str, message: str) -> None:
    rules = _rules()
    with pytest.raises(RuleImportError, match=message):
        rules.import_from_json(text)
    assert rules.count() == 0


class _FailingSaveStore(InMemoryRuleStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def save(self, envelope: RuleEnvelope) -> None:
        if self.fail:
            raise OSError("disk full")
        super().save(envelope)


def test_apply_rules_still_matches_when_usage_cannot_be_saved() -> None:
    store = _FailingSaveStore()
    rules = _rules(store)
    rules.create_or_update_rule("NETFLIX.COM", "Entertainment")
    store.fail = True

    match = rules.apply_rules("NETFLIX.COM")

    assert match is not None
    assert match.category == "Entertainment"
    # the stored counter is unchanged
    [stored] = store.load().rules
    assert stored.applied_count == 1
