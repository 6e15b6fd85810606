"""External AI classifier for transaction batches.

The pipeline depends only on the :class:`Classifier` protocol: given an
ordered batch of ``(description, amount)`` items and the category vocabulary,
return one label per item in the same order, or raise. Labels are *not*
trusted here; the pipeline validates each one against the vocabulary.

:class:`OpenAIClassifier` implements the protocol with the OpenAI Responses
API and a strict JSON-schema response format. One batch is one request.
HTTP 429 and 5xx failures are retried a couple of times with jittered
backoff; malformed output is terminal and surfaces as ``ValueError``.
"""

from __future__ import annotations

import json
import random
import time
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple, Protocol, runtime_checkable

from openai import OpenAI

from . import prompting
from .config import DEFAULT_AI_TIMEOUT_SECONDS, DEFAULT_MODEL
from .logging_setup import get_logger

_logger = get_logger("expense_categorizer.classifier")

# ---- Tunables (private) -----------------------------------------------------
_MAX_ATTEMPTS = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 1.5)
_JITTER_PCT = 0.2


class ClassifierItem(NamedTuple):
    description: str
    amount: float


@runtime_checkable
class Classifier(Protocol):
    def classify(
        self, items: Sequence[ClassifierItem], categories: Sequence[str]
    ) -> list[str]: ...


# ---- Response decoding ------------------------------------------------------


def extract_response_json(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON object from a Responses API result.

    Prefers ``resp.output_text`` and falls back to
    ``resp.output[0].content[0].text``. Raises ``ValueError`` when no text is
    found or it is not a JSON object.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        output = getattr(resp, "output", None)
        if output:
            content = getattr(output[0], "content", None)
            if content:
                candidate = getattr(content[0], "text", None)
                if isinstance(candidate, str):
                    text = candidate
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")

    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError("Model output was not valid JSON") from e
    if not isinstance(decoded, Mapping):
        raise ValueError("Invalid response: expected a JSON object at top level")
    return decoded


def parse_category_labels(body: Mapping[str, Any], *, num_items: int) -> list[str]:
    """Return the ``categories`` array, checking its shape and length only."""

    labels = body.get("categories")
    if not isinstance(labels, list):
        raise ValueError("Invalid response: missing or non-list 'categories'")
    if len(labels) != num_items:
        raise ValueError(f"Invalid response: expected {num_items} categories, got {len(labels)}")
    if not all(isinstance(label, str) for label in labels):
        raise ValueError("Invalid response: every category must be a string")
    return [label.strip() for label in labels]


# ---- Retry helpers -----------------------------------------------------------


def _is_retryable(exc: BaseException) -> bool:
    """True only for HTTP 429 and 5xx errors."""

    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and (status == 429 or 500 <= status < 600)


def _sleep_backoff(attempt_no: int) -> None:
    base = _BACKOFF_SCHEDULE_SEC[min(attempt_no - 1, len(_BACKOFF_SCHEDULE_SEC) - 1)]
    jitter = base * _JITTER_PCT
    time.sleep(max(0.0, base + random.uniform(-jitter, jitter)))


# ---- OpenAI implementation ---------------------------------------------------


class OpenAIClassifier:
    """Batch classifier over the OpenAI Responses API."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_AI_TIMEOUT_SECONDS,
        max_attempts: int = _MAX_ATTEMPTS,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(timeout=self.timeout, max_retries=0)
        return self._client

    def classify(self, items: Sequence[ClassifierItem], categories: Sequence[str]) -> list[str]:
        if not items:
            return []

        instructions = prompting.build_system_instructions(categories)
        user_content = prompting.build_user_content(
            prompting.serialize_items([(i.description, i.amount) for i in items])
        )
        text_cfg = {"format": prompting.build_response_format(categories)}
        client = self._get_client()

        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = client.responses.create(
                    model=self.model,
                    instructions=instructions,
                    input=user_content,
                    text=text_cfg,
                )
                labels = parse_category_labels(extract_response_json(resp), num_items=len(items))
                _logger.info(
                    "classifier:batch_done count=%d latency_ms=%.2f",
                    len(items),
                    (time.perf_counter() - t0) * 1000.0,
                )
                return labels
            except Exception as e:  # noqa: BLE001
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= self.max_attempts or not _is_retryable(e):
                    _logger.error(
                        "classifier:batch_failed count=%d latency_ms=%.2f error=%s attempt=%d",
                        len(items),
                        dt_ms,
                        e.__class__.__name__,
                        attempt,
                    )
                    raise
                _logger.warning(
                    "classifier:batch_retry count=%d latency_ms=%.2f error=%s attempt=%d",
                    len(items),
                    dt_ms,
                    e.__class__.__name__,
                    attempt,
                )
                _sleep_backoff(attempt)
                attempt += 1


__all__ = [
    "Classifier",
    "ClassifierItem",
    "OpenAIClassifier",
    "extract_response_json",
    "parse_category_labels",
]
