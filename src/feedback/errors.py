"""Exceptions raised by the feedback core.

Every error carries a technical ``message`` for logs and a ``user_message``
that the front-end shows as a transient notification.
"""

from __future__ import annotations


class FeedbackError(Exception):
    """Base class for all feedback-core failures."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


# ── Validation (local, recoverable in place) ─────────────────────────


class FeedbackValidationError(FeedbackError):
    """Input rejected locally; the customer stays on the same step."""


class AnswerRequiredError(FeedbackValidationError):
    default_user_message = "Please answer this question to continue"

    def __init__(self, question_id: str) -> None:
        super().__init__(f"Required question {question_id} has no answer")
        self.question_id = question_id


class InvalidAnswerError(FeedbackValidationError):
    default_user_message = "That answer is not valid for this question"


class EmptyReviewError(FeedbackValidationError):
    default_user_message = "Review content is empty. Please edit the review before posting."


# ── Wizard state ─────────────────────────────────────────────────────


class WizardStateError(FeedbackError):
    """Operation not allowed in the wizard's current state."""


class SubmissionInProgressError(WizardStateError):
    default_user_message = "Your feedback is already being submitted"


# ── External ─────────────────────────────────────────────────────────


class FormUnavailableError(FeedbackError):
    """Form or restaurant could not be loaded. Terminal for the page."""

    default_user_message = "Sorry, this feedback form is not available."


class SubmissionError(FeedbackError):
    """The backend rejected or never received the submission."""

    default_user_message = "Failed to submit feedback. Please try again."
