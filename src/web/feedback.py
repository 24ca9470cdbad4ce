"""Customer feedback API: FastAPI router driving the feedback wizard.

A browser front-end calls these endpoints after a table QR scan. Each wizard
lives in Redis between calls; every response carries the screen's view model
and, where there is one, a transient ``notice`` for the customer.
"""
# ruff: noqa: B008

from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.db.engine import get_redis
from src.events.bus import emit
from src.feedback.errors import (
    FeedbackError,
    FeedbackValidationError,
    FormUnavailableError,
    SubmissionError,
    WizardStateError,
)
from src.feedback.handoff import hand_off_review
from src.feedback.renderer import toggle_option
from src.feedback.service import compose_for, start_session
from src.feedback.store import WizardStore
from src.feedback.wizard import FeedbackWizard
from src.integrations.hoshloop.client import (
    AuthenticationError,
    HoshloopApiError,
    HoshloopClient,
    hoshloop_client,
)
from src.models.enums import WizardState
from src.schemas.events import EventType, SystemEvent
from src.schemas.feedback import CheckboxQuestion, CustomerAuthRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feedback", tags=["feedback"])

_STATUS_BY_ERROR: list[tuple[type[FeedbackError], int]] = [
    (FeedbackValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (FormUnavailableError, status.HTTP_404_NOT_FOUND),
    (SubmissionError, status.HTTP_502_BAD_GATEWAY),
    (WizardStateError, status.HTTP_409_CONFLICT),
]


class AnswerIn(BaseModel):
    value: Any = None


class ToggleIn(BaseModel):
    option: str


class HandoffIn(BaseModel):
    text: str


# ── Dependencies ─────────────────────────────────────────────────────


def get_client() -> HoshloopClient:
    return hoshloop_client


def get_store(
    redis: aioredis.Redis = Depends(get_redis),
    client: HoshloopClient = Depends(get_client),
) -> WizardStore:
    return WizardStore(redis, sink=client)


async def _load(store: WizardStore, session_id: str) -> FeedbackWizard:
    wizard = await store.load(session_id)
    if wizard is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "SessionNotFound", "notice": "This feedback session has expired. Please scan the QR code again."},
        )
    return wizard


def _view(wizard: FeedbackWizard, notice: str | None = None) -> dict[str, Any]:
    view = wizard.view()
    view["notice"] = notice
    return view


async def _answer_captured(wizard: FeedbackWizard, question_id: str) -> None:
    await emit(SystemEvent(
        event_type=EventType.ANSWER_CAPTURED,
        session_id=wizard.session_id,
        restaurant_id=wizard.context.restaurant_id,
        form_id=wizard.context.form_id,
        data={"question_id": question_id, "answered": question_id in wizard.answers},
        source_module="web.feedback",
    ))


# ── Error mapping ────────────────────────────────────────────────────


async def _feedback_error_handler(request: Request, exc: FeedbackError) -> JSONResponse:
    code = status.HTTP_400_BAD_REQUEST
    for error_cls, mapped in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            code = mapped
            break
    logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"error": type(exc).__name__, "notice": exc.user_message})


def install_error_handlers(app: FastAPI) -> None:
    """Map feedback-core errors to HTTP responses carrying the customer notice."""
    app.add_exception_handler(FeedbackError, _feedback_error_handler)


# ── Wizard ───────────────────────────────────────────────────────────


@router.post("/{restaurant_id}/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    restaurant_id: str,
    form_id: str | None = Query(None, alias="formId"),
    visit_id: str | None = Query(None, alias="visitId"),
    phone: str | None = Query(None),
    client: HoshloopClient = Depends(get_client),
    store: WizardStore = Depends(get_store),
) -> dict[str, Any]:
    """Start a wizard for the restaurant's form (explicit ``formId`` or its default)."""
    wizard = await start_session(client, restaurant_id, form_id=form_id, visit_id=visit_id, customer_phone=phone)
    await store.save(wizard)
    return _view(wizard)


@router.get("/sessions/{session_id}")
async def get_session_view(session_id: str, store: WizardStore = Depends(get_store)) -> dict[str, Any]:
    wizard = await _load(store, session_id)
    return _view(wizard)


@router.put("/sessions/{session_id}/answers/{question_id}")
async def put_answer(
    session_id: str,
    question_id: str,
    body: AnswerIn,
    store: WizardStore = Depends(get_store),
) -> dict[str, Any]:
    wizard = await _load(store, session_id)
    wizard.answer(question_id, body.value)
    await store.save(wizard)
    await _answer_captured(wizard, question_id)
    return _view(wizard)


@router.post("/sessions/{session_id}/answers/{question_id}/toggle")
async def toggle_checkbox(
    session_id: str,
    question_id: str,
    body: ToggleIn,
    store: WizardStore = Depends(get_store),
) -> dict[str, Any]:
    """Flip one option of a checkbox question."""
    wizard = await _load(store, session_id)
    try:
        question = wizard.question(question_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown question") from None
    if not isinstance(question, CheckboxQuestion):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Not a checkbox question")

    current = wizard.answers.get(question_id)
    selected = toggle_option(question, current if isinstance(current, frozenset) else None, body.option)
    wizard.answer(question_id, selected)
    await store.save(wizard)
    await _answer_captured(wizard, question_id)
    return _view(wizard)


@router.post("/sessions/{session_id}/next")
async def next_step(session_id: str, store: WizardStore = Depends(get_store)) -> dict[str, Any]:
    """Advance one question, or submit on the last one."""
    wizard = await _load(store, session_id)
    try:
        await wizard.advance()
    finally:
        if wizard.state == WizardState.FAILED:
            # Keep FAILED state and every answer so the customer can retry
            await store.save(wizard)

    await store.save(wizard)
    notice = "Thank you for your feedback!" if wizard.is_completed else None
    return _view(wizard, notice)


@router.post("/sessions/{session_id}/back")
async def previous_step(session_id: str, store: WizardStore = Depends(get_store)) -> dict[str, Any]:
    wizard = await _load(store, session_id)
    await wizard.retreat()
    await store.save(wizard)
    return _view(wizard)


# ── Review ───────────────────────────────────────────────────────────


@router.get("/sessions/{session_id}/review")
async def get_review(session_id: str, store: WizardStore = Depends(get_store)) -> dict[str, Any]:
    """Draft review for a submitted session."""
    wizard = await _load(store, session_id)
    draft = await compose_for(wizard)
    return {
        "session_id": str(wizard.session_id),
        "response_id": wizard.response_id,
        "thank_you_message": wizard.form.thank_you_message,
        "text": draft.text,
        "band": draft.band.value,
        "average_rating": draft.average_rating,
    }


def _leave_to_browser(url: str) -> None:
    """The front-end opens the URL; the server only hands it back."""


@router.post("/sessions/{session_id}/review/handoff")
async def review_handoff(
    session_id: str,
    body: HandoffIn,
    store: WizardStore = Depends(get_store),
) -> dict[str, Any]:
    """Build the external review link for the customer's (edited) text."""
    wizard = await _load(store, session_id)
    if not wizard.is_completed:
        raise WizardStateError(
            f"Session {session_id} not submitted",
            user_message="Please finish the feedback form first",
        )
    url = await hand_off_review(wizard.restaurant, body.text, opener=_leave_to_browser, session_id=wizard.session_id)
    return {"url": url, "notice": "Opening Google review page. Please submit your review."}


# ── Menu ─────────────────────────────────────────────────────────────


@router.get("/{restaurant_id}/menu")
async def public_menu(restaurant_id: str, client: HoshloopClient = Depends(get_client)) -> dict[str, Any]:
    """Public menu shown next to the feedback form; read-only passthrough."""
    try:
        categories = await client.get_public_menu_categories(restaurant_id)
        items = await client.get_public_menu_items(restaurant_id)
    except HoshloopApiError as exc:
        logger.warning("Menu for restaurant %s unavailable: %s", restaurant_id, exc)
        code = status.HTTP_404_NOT_FOUND if exc.status_code == 404 else status.HTTP_502_BAD_GATEWAY
        raise HTTPException(
            status_code=code,
            detail={"error": "MenuUnavailable", "notice": "Failed to load menu. Please try again later."},
        ) from exc
    return {
        "restaurant_id": restaurant_id,
        "categories": [c.model_dump(mode="json") for c in categories],
        "items": [i.model_dump(mode="json") for i in items],
    }


# ── Customers ────────────────────────────────────────────────────────


@router.post("/{restaurant_id}/customers")
async def authenticate_customer(
    restaurant_id: str,
    body: CustomerAuthRequest,
    client: HoshloopClient = Depends(get_client),
) -> dict[str, Any]:
    """Verify a customer's phone number with the backend."""
    try:
        result = await client.authenticate_customer(restaurant_id, body)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "AuthenticationFailed", "notice": exc.server_message or "Authentication failed"},
        ) from exc
    except HoshloopApiError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "AuthenticationFailed", "notice": exc.server_message or "Authentication failed"},
        ) from exc

    await emit(SystemEvent(
        event_type=EventType.CUSTOMER_AUTHENTICATED,
        restaurant_id=restaurant_id,
        data={"phone": body.phone, "table_id": body.table_id},
        source_module="web.feedback",
    ))
    return {"customer": result, "notice": "Authentication successful"}
