"""Answer store: question id → committed answer for one wizard session."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from src.feedback.errors import InvalidAnswerError
from src.schemas.feedback import AnswerValue


class AnswerStore:
    """In-memory answers keyed only by ids of the session's questions."""

    def __init__(self, question_ids: Iterable[str]) -> None:
        self._allowed = tuple(question_ids)
        self._answers: dict[str, AnswerValue] = {}

    def _check(self, question_id: str) -> None:
        if question_id not in self._allowed:
            raise InvalidAnswerError(f"Question {question_id} is not part of this form")

    def set(self, question_id: str, value: AnswerValue) -> None:
        self._check(question_id)
        self._answers[question_id] = value

    def get(self, question_id: str) -> AnswerValue | None:
        return self._answers.get(question_id)

    def clear(self, question_id: str) -> None:
        self._check(question_id)
        self._answers.pop(question_id, None)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._answers

    def __len__(self) -> int:
        return len(self._answers)

    def as_dict(self) -> dict[str, AnswerValue]:
        """Copy of the answers, in question order."""
        return {qid: self._answers[qid] for qid in self._allowed if qid in self._answers}

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready answers; checkbox sets become sorted lists."""
        wire: dict[str, Any] = {}
        for qid, value in self.as_dict().items():
            wire[qid] = sorted(value) if isinstance(value, frozenset) else value
        return wire
