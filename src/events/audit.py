"""Audit subscriber: writes every SystemEvent to the structured audit log.

Registered as a global subscriber (receives ALL events). Customer phone
numbers are masked before they reach the log.

Never raises; failures are logged but never propagate to the event system.
"""

from __future__ import annotations

import logging

import structlog

from src.schemas.events import SystemEvent

logger = logging.getLogger(__name__)
audit_logger = structlog.get_logger("hoshloop.audit")

_MASKED_FIELDS = {"customer_phone", "phone"}


def mask_phone(value: str) -> str:
    """Keep the last three digits of a phone number."""
    if len(value) <= 3:
        return "***"
    return "*" * (len(value) - 3) + value[-3:]


def _scrub(data: dict) -> dict:
    scrubbed = {}
    for key, value in data.items():
        if key in _MASKED_FIELDS and isinstance(value, str):
            scrubbed[key] = mask_phone(value)
        else:
            scrubbed[key] = value
    return scrubbed


async def audit_on_event(event: SystemEvent) -> None:
    """Emit one audit line for a SystemEvent.

    Failures are logged and swallowed; audit logging must never
    interrupt a customer's feedback session.
    """
    try:
        audit_logger.info(
            event.event_type.value,
            event_id=str(event.id),
            session_id=str(event.session_id) if event.session_id else None,
            restaurant_id=event.restaurant_id,
            form_id=event.form_id,
            source=event.source_module,
            data=_scrub(event.data),
        )
    except Exception:
        logger.exception(
            "Failed to write audit event: %s (session=%s)",
            event.event_type.value,
            event.session_id,
        )
