"""Feedback service: loads forms, starts wizards, composes reviews.

Sits between the web layer and the backend client:

    resolve_form_id → start_session → (wizard steps) → compose_for → hand_off_review
"""

from __future__ import annotations

import logging

from src.events.bus import emit
from src.feedback.composer import DraftReview, compose_review
from src.feedback.errors import FormUnavailableError, WizardStateError
from src.feedback.wizard import FeedbackWizard
from src.integrations.hoshloop.client import HoshloopApiError, HoshloopClient
from src.schemas.events import EventType, SystemEvent
from src.schemas.feedback import SubmissionContext

logger = logging.getLogger(__name__)


async def _load_failed(restaurant_id: str, form_id: str | None, reason: str) -> None:
    logger.warning("Feedback form unavailable (restaurant=%s, form=%s): %s", restaurant_id, form_id, reason)
    await emit(SystemEvent(
        event_type=EventType.FORM_LOAD_FAILED,
        restaurant_id=restaurant_id,
        form_id=form_id,
        data={"reason": reason},
        source_module="feedback.service",
    ))


async def resolve_form_id(client: HoshloopClient, restaurant_id: str, form_id: str | None = None) -> str:
    """Pick the form to show: the explicit one, else the restaurant's default, else its first."""
    if form_id:
        return form_id

    try:
        forms = await client.get_feedback_forms(restaurant_id)
    except HoshloopApiError as exc:
        await _load_failed(restaurant_id, None, str(exc))
        raise FormUnavailableError(
            f"Could not list forms for {restaurant_id}",
            user_message="Could not load feedback forms",
        ) from exc

    if not forms:
        await _load_failed(restaurant_id, None, "no forms")
        raise FormUnavailableError(
            f"Restaurant {restaurant_id} has no feedback forms",
            user_message="No feedback forms available",
        )

    default = next((f for f in forms if f.is_default), forms[0])
    return default.id


async def start_session(
    client: HoshloopClient,
    restaurant_id: str,
    form_id: str | None = None,
    visit_id: str | None = None,
    customer_phone: str | None = None,
) -> FeedbackWizard:
    """Load restaurant and form and build a fresh wizard at step 0.

    Raises:
        FormUnavailableError: Anything failed to load, or the form has no
            questions. No retry is attempted.
    """
    resolved_form_id = await resolve_form_id(client, restaurant_id, form_id)

    try:
        restaurant = await client.get_restaurant_public(restaurant_id)
        form = await client.get_feedback_form(resolved_form_id)
    except HoshloopApiError as exc:
        await _load_failed(restaurant_id, resolved_form_id, str(exc))
        raise FormUnavailableError(f"Could not load form {resolved_form_id}: {exc}") from exc

    if not form.questions:
        await _load_failed(restaurant_id, resolved_form_id, "no questions")
        raise FormUnavailableError(f"Form {resolved_form_id} has no questions")

    await emit(SystemEvent(
        event_type=EventType.FORM_LOADED,
        restaurant_id=restaurant_id,
        form_id=resolved_form_id,
        data={"questions": len(form.questions)},
        source_module="feedback.service",
    ))

    wizard = FeedbackWizard(
        form=form,
        context=SubmissionContext(
            form_id=resolved_form_id,
            restaurant_id=restaurant_id,
            visit_id=visit_id or None,
            customer_phone=customer_phone or None,
        ),
        sink=client,
        restaurant=restaurant,
    )

    logger.info(
        "Feedback session started (session=%s, restaurant=%s, form=%s, questions=%d)",
        wizard.session_id,
        restaurant_id,
        resolved_form_id,
        len(form.questions),
    )
    await emit(SystemEvent(
        event_type=EventType.SESSION_STARTED,
        session_id=wizard.session_id,
        restaurant_id=restaurant_id,
        form_id=resolved_form_id,
        data={"questions": len(form.questions), "has_visit": visit_id is not None},
        source_module="feedback.service",
    ))
    return wizard


async def compose_for(wizard: FeedbackWizard) -> DraftReview:
    """Compose the draft review for a submitted wizard."""
    if not wizard.is_completed:
        raise WizardStateError(
            f"Session {wizard.session_id} is {wizard.state.value}, not completed",
            user_message="Please finish the feedback form first",
        )

    restaurant_name = wizard.restaurant.name if wizard.restaurant else None
    draft = compose_review(wizard.questions, wizard.answers.as_dict(), restaurant_name)

    logger.info(
        "Draft review composed (session=%s, band=%s, avg=%.2f)",
        wizard.session_id,
        draft.band.value,
        draft.average_rating,
    )
    await emit(SystemEvent(
        event_type=EventType.REVIEW_COMPOSED,
        session_id=wizard.session_id,
        restaurant_id=wizard.context.restaurant_id,
        form_id=wizard.context.form_id,
        data={"band": draft.band.value, "average_rating": draft.average_rating},
        source_module="feedback.service",
    ))
    return draft
