"""Tiny terminal UI helpers (prompt_toolkit-based).

Used by the interactive ``review`` command. Kept separate from the pipeline
so the prompt can be driven in tests through a pipe input.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator


class _PrefixSuggest(AutoSuggest):
    """Greyed-out completion of the first category starting with the typed text."""

    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        remainder = _prefix_remainder(self._vocab, document.text)
        return Suggestion(remainder) if remainder else None


class _VocabularyValidator(Validator):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._allowed = {w.lower() for w in vocab}

    def validate(self, document) -> None:
        if document.text.strip().lower() not in self._allowed:
            raise ValidationError(message="Pick a category from the list (Tab or Down to browse).")


def _prefix_remainder(vocab: Sequence[str], text: str) -> str | None:
    """Remaining characters of the first strict prefix match, in list order."""

    if not text:
        return None
    lower = text.lower()
    if any(w.lower() == lower for w in vocab):
        return None
    for w in vocab:
        if w.lower().startswith(lower):
            return w[len(text) :] or None
    return None


def select_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str,
    message: str = "Category (Enter to accept): ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for one category out of ``categories`` and return its canonical spelling.

    The current category is pre-filled, so Enter accepts it. Typing a prefix
    shows the first matching category inline; Tab completes it and Enter
    completes and submits. Down (or Tab on an empty line) opens the menu.
    Values outside the vocabulary are rejected in place.
    """

    words = list(categories)
    canonical = {w.lower(): w for w in words}
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=False)

    kb = KeyBindings()

    @kb.add("down", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        if b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("tab", eager=True)
    def _(event) -> None:
        b = event.app.current_buffer
        remainder = _prefix_remainder(words, b.document.text)
        if remainder:
            b.insert_text(remainder)
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            remainder = _prefix_remainder(words, b.document.text)
            if remainder:
                b.insert_text(remainder)
        b.validate_and_handle()

    if session is None:
        sess: PromptSession = PromptSession(key_bindings=kb)
    else:
        sess = PromptSession(
            input=getattr(session, "input", None),
            output=getattr(session, "output", None),
            key_bindings=kb,
        )

    result = sess.prompt(
        message,
        completer=completer,
        default=default,
        key_bindings=kb,
        auto_suggest=_PrefixSuggest(words),
        validator=_VocabularyValidator(words),
        validate_while_typing=False,
        style=Style.from_dict({"auto-suggestion": "fg:#888888"}),
    )
    return canonical[result.strip().lower()]


__all__ = ["select_category"]
