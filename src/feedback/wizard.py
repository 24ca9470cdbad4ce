"""Feedback wizard: steps a customer through a form one question at a time.

The wizard owns the step index, the answer store and the submission state
machine. Navigation is linear; the last step's "next" submits. A failed
submission leaves the customer on the last question with every answer kept.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from src.events.bus import emit
from src.feedback.answers import AnswerStore
from src.feedback.errors import (
    AnswerRequiredError,
    FormUnavailableError,
    InvalidAnswerError,
    SubmissionError,
    SubmissionInProgressError,
    WizardStateError,
)
from src.feedback.renderer import describe_question, is_empty_answer, normalize_answer
from src.feedback.states import EDITABLE_STATES, TRANSITIONS
from src.models.enums import WizardState
from src.schemas.events import EventType, SystemEvent
from src.schemas.feedback import (
    AnswerValue,
    FeedbackForm,
    Question,
    RestaurantInfo,
    SubmissionContext,
    SubmissionPayload,
    SubmissionReceipt,
)

logger = logging.getLogger(__name__)


class SubmissionSink(Protocol):
    """Anything that can store a feedback response.

    Implementations raise SubmissionError on any failure.
    """

    async def submit_feedback(self, form_id: str, payload: SubmissionPayload) -> SubmissionReceipt: ...


SubmittingHook = Callable[["FeedbackWizard"], Awaitable[None]]


@dataclass(frozen=True)
class Progress:
    step: int  # 1-based, for "N of M"
    total: int

    @property
    def percentage(self) -> float:
        return self.step / self.total * 100


class FeedbackWizard:
    """Linear step sequencer over one form for one customer visit."""

    def __init__(
        self,
        form: FeedbackForm,
        context: SubmissionContext,
        sink: SubmissionSink,
        restaurant: RestaurantInfo | None = None,
        session_id: uuid.UUID | None = None,
    ) -> None:
        if not form.questions:
            raise FormUnavailableError(f"Form {form.id} has no questions")
        self.session_id = session_id or uuid.uuid4()
        self.form = form
        self.context = context
        self.restaurant = restaurant
        self.answers = AnswerStore(form.question_ids())
        self.step = 0
        self.state = WizardState.IN_PROGRESS
        self.response_id: str | None = None
        self.last_error: str | None = None
        self._sink = sink
        self._on_submitting: SubmittingHook | None = None

    # ── Read-only views ──────────────────────────────────────────────

    @property
    def questions(self) -> tuple[Question, ...]:
        return self.form.questions

    @property
    def current_question(self) -> Question:
        return self.questions[self.step]

    @property
    def is_last_step(self) -> bool:
        return self.step == len(self.questions) - 1

    @property
    def is_completed(self) -> bool:
        return self.state == WizardState.COMPLETED

    @property
    def progress(self) -> Progress:
        return Progress(step=self.step + 1, total=len(self.questions))

    def question(self, question_id: str) -> Question:
        for q in self.questions:
            if q.id == question_id:
                return q
        raise KeyError(question_id)

    def view(self) -> dict[str, Any]:
        """Everything the front-end needs to draw the current screen."""
        progress = self.progress
        view: dict[str, Any] = {
            "session_id": str(self.session_id),
            "form": {"id": self.form.id, "name": self.form.name},
            "state": self.state.value,
            "progress": {"step": progress.step, "total": progress.total, "percentage": progress.percentage},
            "can_go_back": self.step > 0 and self.state in EDITABLE_STATES,
            "next_label": self._next_label(),
            "error": self.last_error,
        }
        if self.is_completed:
            view["response_id"] = self.response_id
            view["thank_you_message"] = self.form.thank_you_message
        else:
            q = self.current_question
            view["question"] = describe_question(q, self.answers.get(q.id))
        return view

    def _next_label(self) -> str:
        if self.state == WizardState.SUBMITTING:
            return "Submitting..."
        return "Submit" if self.is_last_step else "Next"

    # ── State machine ────────────────────────────────────────────────

    def _transition(self, trigger: str) -> WizardState:
        old_state = self.state
        state_transitions = TRANSITIONS.get(self.state, {})
        if trigger not in state_transitions:
            msg = (
                f"Invalid transition: {self.state.value} --{trigger}--> ??? "
                f"(valid: {list(state_transitions.keys())})"
            )
            raise WizardStateError(msg)
        self.state = state_transitions[trigger]
        logger.info(
            "Wizard transition: %s --%s--> %s (session=%s)",
            old_state.value,
            trigger,
            self.state.value,
            self.session_id,
        )
        return self.state

    def _require_editable(self) -> None:
        if self.state == WizardState.SUBMITTING:
            raise SubmissionInProgressError(f"Session {self.session_id} is submitting")
        if self.state not in EDITABLE_STATES:
            raise WizardStateError(
                f"Session {self.session_id} is {self.state.value}",
                user_message="This feedback has already been submitted",
            )
        if self.state == WizardState.FAILED:
            self._transition("retry")
            self.last_error = None

    def on_submitting(self, hook: SubmittingHook) -> None:
        """Register a callback run after entering SUBMITTING, before the network call.

        The hook may refuse the submission by raising SubmissionInProgressError;
        the wizard then drops back to IN_PROGRESS without calling the sink.
        """
        self._on_submitting = hook

    def _mark_failed(self, user_message: str) -> None:
        self.step = len(self.questions) - 1
        self.last_error = user_message
        self._transition("submit_failed")

    async def _emit(self, event_type: EventType, **data: Any) -> None:
        await emit(SystemEvent(
            event_type=event_type,
            session_id=self.session_id,
            restaurant_id=self.context.restaurant_id,
            form_id=self.context.form_id,
            data=data,
            source_module="feedback.wizard",
        ))

    # ── Customer actions ─────────────────────────────────────────────

    def answer(self, question_id: str, raw: Any) -> AnswerValue | None:
        """Commit an answer for one question. ``None`` clears the answer."""
        self._require_editable()
        try:
            question = self.question(question_id)
        except KeyError:
            raise InvalidAnswerError(f"Question {question_id} is not part of this form") from None
        if raw is None:
            self.answers.clear(question_id)
            logger.debug("Answer cleared: %s (session=%s)", question_id, self.session_id)
            return None
        value = normalize_answer(question, raw)
        self.answers.set(question_id, value)
        logger.debug("Answer captured: %s (session=%s)", question_id, self.session_id)
        return value

    async def advance(self) -> WizardState:
        """Validate the current answer, then move forward or submit.

        Raises:
            AnswerRequiredError: Current question is required and unanswered.
                Nothing changes.
            SubmissionInProgressError: A submission is already running.
            SubmissionError: The last step's submission failed.
        """
        self._require_editable()
        question = self.current_question
        if question.required and is_empty_answer(question, self.answers.get(question.id)):
            logger.warning(
                "Required question %s unanswered at step %d (session=%s)",
                question.id,
                self.step,
                self.session_id,
            )
            await self._emit(EventType.VALIDATION_FAILED, question_id=question.id, step=self.step)
            raise AnswerRequiredError(question.id)

        if not self.is_last_step:
            self.step += 1
            await self._emit(EventType.SESSION_STEP_CHANGED, step=self.step, direction="forward")
            return self.state

        await self.submit()
        return self.state

    async def retreat(self) -> WizardState:
        """Go back one question. Answers are left untouched."""
        self._require_editable()
        if self.step > 0:
            self.step -= 1
            await self._emit(EventType.SESSION_STEP_CHANGED, step=self.step, direction="back")
        return self.state

    async def submit(self) -> SubmissionReceipt:
        """Send every captured answer to the submission sink.

        On any failure the wizard moves to FAILED on the last question and
        the error propagates; it is never retried automatically. Errors other
        than SubmissionError are shown to the customer with the generic
        submission notice.
        """
        if self.state == WizardState.SUBMITTING:
            raise SubmissionInProgressError(f"Session {self.session_id} is already submitting")
        if self.state == WizardState.COMPLETED:
            raise WizardStateError(
                f"Session {self.session_id} already submitted",
                user_message="This feedback has already been submitted",
            )

        for question in self.questions:
            if question.required and is_empty_answer(question, self.answers.get(question.id)):
                raise AnswerRequiredError(question.id)

        # State flips before the first await so a concurrent call sees SUBMITTING
        self._transition("start_submit")
        self.last_error = None
        payload = SubmissionPayload(
            answers=self.answers.to_wire(),
            restaurant_id=self.context.restaurant_id,
            visit_id=self.context.visit_id,
            customer_phone=self.context.customer_phone,
        )

        try:
            if self._on_submitting is not None:
                await self._on_submitting(self)
            await self._emit(EventType.SESSION_SUBMITTING, answers=len(payload.answers))
            receipt = await self._sink.submit_feedback(self.context.form_id, payload)
        except SubmissionInProgressError:
            self._transition("abort")
            logger.info("Submission already claimed elsewhere (session=%s)", self.session_id)
            raise
        except SubmissionError as exc:
            self._mark_failed(exc.user_message)
            logger.warning("Submission failed (session=%s): %s", self.session_id, exc)
            await self._emit(EventType.SESSION_SUBMISSION_FAILED, error=str(exc))
            raise
        except Exception as exc:
            self._mark_failed(SubmissionError.default_user_message)
            logger.exception("Unexpected submission error (session=%s)", self.session_id)
            await self._emit(EventType.SESSION_SUBMISSION_FAILED, error=f"{type(exc).__name__}: {exc}")
            raise
        except BaseException:
            # Cancelled mid-flight: leave nothing stuck in SUBMITTING
            self._mark_failed(SubmissionError.default_user_message)
            logger.warning("Submission interrupted (session=%s)", self.session_id)
            raise

        self.response_id = receipt.response_id
        self._transition("submit_ok")
        logger.info("Feedback submitted (session=%s, response=%s)", self.session_id, self.response_id)
        await self._emit(EventType.SESSION_COMPLETED, response_id=self.response_id)
        return receipt

    # ── Persistence ──────────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        """JSON-serializable copy of the wizard state."""
        return {
            "session_id": str(self.session_id),
            "form": self.form.model_dump(mode="json"),
            "restaurant": self.restaurant.model_dump(mode="json") if self.restaurant else None,
            "context": self.context.model_dump(mode="json"),
            "step": self.step,
            "state": self.state.value,
            "answers": self.answers.to_wire(),
            "response_id": self.response_id,
            "last_error": self.last_error,
        }

    @classmethod
    def restore(cls, data: dict[str, Any], sink: SubmissionSink) -> FeedbackWizard:
        """Rebuild a wizard from ``snapshot()`` output."""
        form = FeedbackForm.model_validate(data["form"])
        restaurant = RestaurantInfo.model_validate(data["restaurant"]) if data.get("restaurant") else None
        wizard = cls(
            form=form,
            context=SubmissionContext.model_validate(data["context"]),
            sink=sink,
            restaurant=restaurant,
            session_id=uuid.UUID(data["session_id"]),
        )
        for question_id, raw in data.get("answers", {}).items():
            wizard.answers.set(question_id, normalize_answer(wizard.question(question_id), raw))
        step = int(data.get("step", 0))
        if not 0 <= step < len(form.questions):
            msg = f"Stored step {step} outside 0..{len(form.questions) - 1}"
            raise WizardStateError(msg)
        wizard.step = step
        wizard.state = WizardState(data.get("state", WizardState.IN_PROGRESS.value))
        wizard.response_id = data.get("response_id")
        wizard.last_error = data.get("last_error")
        return wizard
