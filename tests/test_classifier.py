from __future__ import annotations

import json
from typing import Any

import pytest

import expense_categorizer.classifier as classifier_mod
from expense_categorizer.categories import CATEGORIES
from expense_categorizer.classifier import (
    ClassifierItem,
    OpenAIClassifier,
    extract_response_json,
    parse_category_labels,
)
from expense_categorizer.prompting import build_response_format
from tests.helpers.openai_stub import (
    FailingResponses,
    OpenAIStub,
    StatusError,
    extract_items_from_user_content,
)

ITEMS = [
    ClassifierItem("NETFLIX.COM", -15.99),
    ClassifierItem("SHELL OIL 57120", -40.0),
]


class _Client:
    def __init__(self, responses: Any) -> None:
        self.responses = responses


@pytest.fixture(autouse=True)
def _no_backoff_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(classifier_mod, "_sleep_backoff", lambda attempt_no: None)


def test_classify_sends_one_request_with_schema_and_items(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    labels = {"NETFLIX.COM": "Entertainment", "SHELL OIL 57120": "Transportation"}
    stub = OpenAIStub(lambda item: labels[item["description"]], calls)
    monkeypatch.setattr(classifier_mod, "OpenAI", lambda **kwargs: stub)

    result = OpenAIClassifier(model="test-model").classify(ITEMS, CATEGORIES)

    assert result == ["Entertainment", "Transportation"]
    assert len(calls) == 1
    call = calls[0]
    assert call["model"] == "test-model"
    assert call["text"]["format"]["name"] == "transaction_categories"
    assert "Food & Dining" in call["instructions"]
    assert extract_items_from_user_content(call["input"]) == [
        {"idx": 0, "description": "NETFLIX.COM", "amount": -15.99},
        {"idx": 1, "description": "SHELL OIL 57120", "amount": -40.0},
    ]


def test_client_is_created_with_timeout_and_no_sdk_retries(monkeypatch) -> None:
    created: list[dict[str, Any]] = []

    def _factory(**kwargs):
        created.append(kwargs)
        return OpenAIStub(lambda item: "Other")

    monkeypatch.setattr(classifier_mod, "OpenAI", _factory)
    OpenAIClassifier(timeout=12.5).classify(ITEMS, CATEGORIES)

    assert created == [{"timeout": 12.5, "max_retries": 0}]


def test_empty_batch_makes_no_request() -> None:
    responses = FailingResponses([], json.dumps({"categories": []}))
    assert OpenAIClassifier(client=_Client(responses)).classify([], CATEGORIES) == []
    assert responses.calls == []


def test_labels_are_returned_unvalidated_but_stripped() -> None:
    body = json.dumps({"categories": [" Entertainment ", "Gasoline"]})
    clf = OpenAIClassifier(client=_Client(FailingResponses([], body)))

    assert clf.classify(ITEMS, CATEGORIES) == ["Entertainment", "Gasoline"]


def test_retryable_errors_are_retried_then_succeed() -> None:
    body = json.dumps({"categories": ["Entertainment", "Transportation"]})
    responses = FailingResponses([StatusError(429), StatusError(503)], body)
    clf = OpenAIClassifier(client=_Client(responses), max_attempts=3)

    assert clf.classify(ITEMS, CATEGORIES) == ["Entertainment", "Transportation"]
    assert len(responses.calls) == 3


def test_retries_are_bounded() -> None:
    responses = FailingResponses([StatusError(500)] * 5, "{}")
    clf = OpenAIClassifier(client=_Client(responses), max_attempts=2)

    with pytest.raises(StatusError):
        clf.classify(ITEMS, CATEGORIES)
    assert len(responses.calls) == 2


def test_client_errors_are_not_retried() -> None:
    responses = FailingResponses([StatusError(400)], "{}")
    clf = OpenAIClassifier(client=_Client(responses))

    with pytest.raises(StatusError):
        clf.classify(ITEMS, CATEGORIES)
    assert len(responses.calls) == 1


def test_wrong_length_is_terminal() -> None:
    responses = FailingResponses([], json.dumps({"categories": ["Entertainment"]}))
    clf = OpenAIClassifier(client=_Client(responses))

    with pytest.raises(ValueError, match="expected 2 categories, got 1"):
        clf.classify(ITEMS, CATEGORIES)
    assert len(responses.calls) == 1


# ---- Response decoding ------------------------------------------------------------------


class _Content:
    def __init__(self, text: str) -> None:
        self.text = text


class _Output:
    def __init__(self, text: str) -> None:
        self.content = [_Content(text)]


class _Resp:
    def __init__(self, output_text: str | None = None, output: list | None = None) -> None:
        self.output_text = output_text
        self.output = output


def test_extract_response_json_falls_back_to_output_content() -> None:
    resp = _Resp(output_text="", output=[_Output('{"categories": ["Other"]}')])
    assert extract_response_json(resp) == {"categories": ["Other"]}


@pytest.mark.parametrize(
    "resp",
    [_Resp(output_text=None, output=None), _Resp(output_text="not json"), _Resp(output_text="[]")],
)
def test_extract_response_json_rejects_bad_shapes(resp: _Resp) -> None:
    with pytest.raises(ValueError):
        extract_response_json(resp)


@pytest.mark.parametrize(
    "body",
    [{}, {"categories": "Other"}, {"categories": ["Other", 3]}],
)
def test_parse_category_labels_rejects_bad_shapes(body: dict) -> None:
    with pytest.raises(ValueError):
        parse_category_labels(body, num_items=2)


def test_response_format_constrains_labels_to_the_vocabulary() -> None:
    fmt = build_response_format(CATEGORIES)
    items = fmt["schema"]["properties"]["categories"]["items"]

    assert fmt["type"] == "json_schema"
    assert fmt["strict"] is True
    assert items["enum"] == list(CATEGORIES)
    with pytest.raises(ValueError):
        build_response_format([])
