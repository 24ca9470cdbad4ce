"""Domain enums shared by the feedback core, schemas and the web layer.

All enums use the str mixin for JSON serialization.
"""

from __future__ import annotations

from enum import Enum


class QuestionType(str, Enum):
    """Question variants a feedback form can contain (backend wire names)."""

    RATING = "rating"
    TEXT = "text"
    MULTIPLE_CHOICE = "multiplechoice"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"


class WizardState(str, Enum):
    """Lifecycle of one customer's traversal of a feedback form."""

    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


class ReviewBand(str, Enum):
    """Sentiment band selected from the average rating."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
