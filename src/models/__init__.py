"""Domain enums for the feedback core."""

from __future__ import annotations

from src.models.enums import QuestionType, ReviewBand, WizardState

__all__ = [
    "QuestionType",
    "WizardState",
    "ReviewBand",
]
