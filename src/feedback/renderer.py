"""Question renderer: per-variant answer handling and widget view models.

Each question variant gets a handler that knows how to turn raw input into a
committed answer, how to tell whether an answer is empty, and how to
describe the widget the front-end should draw. The dispatch table must cover
every QuestionType; a missing variant fails at import time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from src.feedback.errors import InvalidAnswerError
from src.models.enums import QuestionType
from src.schemas.feedback import (
    AnswerValue,
    CheckboxQuestion,
    Question,
    RatingQuestion,
    TextQuestion,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Handler:
    normalize: Callable[[Any, Any], AnswerValue]
    is_empty: Callable[[Any, Any], bool]
    describe: Callable[[Any, Any], dict[str, Any]]


# ── Rating ───────────────────────────────────────────────────────────


def _normalize_rating(question: RatingQuestion, raw: Any) -> int:
    # bool is an int subclass; True is not a rating
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidAnswerError(f"Rating for {question.id} must be an integer, got {raw!r}")
    if not 1 <= raw <= question.max_rating:
        raise InvalidAnswerError(
            f"Rating {raw} for {question.id} outside 1..{question.max_rating}",
            user_message=f"Please choose between 1 and {question.max_rating} stars",
        )
    return raw


def _rating_is_empty(question: RatingQuestion, value: Any) -> bool:
    return value is None


def _describe_rating(question: RatingQuestion, value: Any) -> dict[str, Any]:
    return {
        "kind": "stars",
        "max": question.max_rating,
        "value": value,
        "label": f"{value} out of {question.max_rating} stars" if value is not None else None,
    }


# ── Text ─────────────────────────────────────────────────────────────


def _normalize_text(question: TextQuestion, raw: Any) -> str:
    if not isinstance(raw, str):
        raise InvalidAnswerError(f"Text answer for {question.id} must be a string, got {type(raw).__name__}")
    return raw


def _text_is_empty(question: TextQuestion, value: Any) -> bool:
    return value is None or not value.strip()


def _describe_text(question: TextQuestion, value: Any) -> dict[str, Any]:
    return {
        "kind": "textarea",
        "placeholder": question.settings.placeholder,
        "rows": question.settings.rows,
        "value": value or "",
    }


# ── Single choice (multiple-choice radio group, dropdown) ────────────


def _normalize_single_choice(question: Any, raw: Any) -> str:
    if not isinstance(raw, str) or raw not in question.options:
        raise InvalidAnswerError(
            f"{raw!r} is not an option of {question.id}",
            user_message="Please pick one of the listed options",
        )
    return raw


def _single_choice_is_empty(question: Any, value: Any) -> bool:
    return value is None or value == ""


def _describe_radio(question: Any, value: Any) -> dict[str, Any]:
    return {"kind": "radio", "options": list(question.options), "value": value}


def _describe_select(question: Any, value: Any) -> dict[str, Any]:
    return {
        "kind": "select",
        "options": list(question.options),
        "value": value,
        "placeholder": "Select an option",
    }


# ── Checkbox ─────────────────────────────────────────────────────────


def _normalize_checkbox(question: CheckboxQuestion, raw: Any) -> frozenset[str]:
    if isinstance(raw, (str, Mapping)) or not isinstance(raw, Iterable):
        raise InvalidAnswerError(f"Checkbox answer for {question.id} must be a collection of options")
    options = list(raw)
    if not all(isinstance(option, str) for option in options):
        raise InvalidAnswerError(
            f"Checkbox answer for {question.id} must contain option strings only",
            user_message="Please pick from the listed options",
        )
    selected = frozenset(options)
    unknown = selected - set(question.options)
    if unknown:
        raise InvalidAnswerError(
            f"Unknown options for {question.id}: {sorted(map(str, unknown))}",
            user_message="Please pick from the listed options",
        )
    return selected


def _checkbox_is_empty(question: CheckboxQuestion, value: Any) -> bool:
    return value is None or len(value) == 0


def _describe_checkbox(question: CheckboxQuestion, value: Any) -> dict[str, Any]:
    chosen = value or frozenset()
    return {
        "kind": "checkboxes",
        "options": list(question.options),
        "value": [option for option in question.options if option in chosen],
    }


_HANDLERS: dict[QuestionType, _Handler] = {
    QuestionType.RATING: _Handler(_normalize_rating, _rating_is_empty, _describe_rating),
    QuestionType.TEXT: _Handler(_normalize_text, _text_is_empty, _describe_text),
    QuestionType.MULTIPLE_CHOICE: _Handler(_normalize_single_choice, _single_choice_is_empty, _describe_radio),
    QuestionType.CHECKBOX: _Handler(_normalize_checkbox, _checkbox_is_empty, _describe_checkbox),
    QuestionType.DROPDOWN: _Handler(_normalize_single_choice, _single_choice_is_empty, _describe_select),
}

_unhandled = set(QuestionType) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No renderer for question types: {sorted(t.value for t in _unhandled)}")


def _handler_for(question: Question) -> _Handler:
    return _HANDLERS[question.question_type]


# ── Public API ───────────────────────────────────────────────────────


def normalize_answer(question: Question, raw: Any) -> AnswerValue:
    """Convert raw input into the committed value shape for the question's type.

    Raises:
        InvalidAnswerError: If the input does not fit the question.
    """
    return _handler_for(question).normalize(question, raw)


def is_empty_answer(question: Question, value: AnswerValue | None) -> bool:
    """Explicit per-type emptiness test used by the required-answer guard."""
    return _handler_for(question).is_empty(question, value)


def describe_question(question: Question, value: AnswerValue | None = None) -> dict[str, Any]:
    """Build the widget view model for the current question."""
    view: dict[str, Any] = {
        "id": question.id,
        "type": question.question_type.value,
        "text": question.text,
        "description": question.description,
        "required": question.required,
    }
    view.update(_handler_for(question).describe(question, value))
    return view


def toggle_option(question: CheckboxQuestion, current: frozenset[str] | None, option: str) -> frozenset[str]:
    """Flip one checkbox option on or off."""
    if option not in question.options:
        raise InvalidAnswerError(f"{option!r} is not an option of {question.id}")
    chosen = current or frozenset()
    if option in chosen:
        return chosen - {option}
    return chosen | {option}


class RatingPreview:
    """Hover state of a star widget.

    The previewed value only changes what is drawn; the committed answer
    lives in the AnswerStore and is never touched from here.
    """

    def __init__(self, question: RatingQuestion) -> None:
        self.question = question
        self.hovered: int | None = None

    def hover(self, rating: int) -> None:
        self.hovered = _normalize_rating(self.question, rating)

    def leave(self) -> None:
        self.hovered = None

    def filled_stars(self, committed: int | None) -> int:
        """Number of stars to draw highlighted."""
        if self.hovered is not None:
            return self.hovered
        return committed or 0
