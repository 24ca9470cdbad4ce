"""SystemEvent schema: the event type that flows through the feedback core.

Every wizard transition, backend call and review handoff emits a SystemEvent.
Subscribers (the audit logger, tests) consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Wizard lifecycle
    SESSION_STARTED = "session.started"
    SESSION_STEP_CHANGED = "session.step_changed"
    SESSION_SUBMITTING = "session.submitting"
    SESSION_COMPLETED = "session.completed"
    SESSION_SUBMISSION_FAILED = "session.submission_failed"

    # Answers
    ANSWER_CAPTURED = "answer.captured"
    VALIDATION_FAILED = "answer.validation_failed"

    # Loading
    FORM_LOADED = "form.loaded"
    FORM_LOAD_FAILED = "form.load_failed"

    # Review
    REVIEW_COMPOSED = "review.composed"
    REVIEW_HANDOFF = "review.handoff"

    # Customers
    CUSTOMER_AUTHENTICATED = "customer.authenticated"

    # Backend
    EXTERNAL_API_CALL = "external_api.call"
    EXTERNAL_API_RESPONSE = "external_api.response"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Event published by the feedback core.

    Immutable once created. Consumed by:
    - audit_on_event → structured audit log line
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (optional, not every event has a session)
    session_id: uuid.UUID | None = None
    restaurant_id: str | None = None
    form_id: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
