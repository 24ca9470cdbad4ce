"""Hand the (possibly edited) draft review off to the external review page."""

from __future__ import annotations

import logging
import uuid
import webbrowser
from collections.abc import Callable
from urllib.parse import quote

from src.config import settings
from src.events.bus import emit
from src.feedback.errors import EmptyReviewError
from src.schemas.events import EventType, SystemEvent
from src.schemas.feedback import RestaurantInfo

logger = logging.getLogger(__name__)

Opener = Callable[[str], object]


def build_review_url(place_id: str | None, draft: str) -> str:
    """Review page URL for a place, carrying the draft as the ``review`` parameter."""
    base = settings.review.review_url_template.format(place_id=place_id or settings.review.default_place_id)
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}review={quote(draft, safe='')}"


async def hand_off_review(
    restaurant: RestaurantInfo | None,
    draft: str,
    opener: Opener | None = None,
    session_id: uuid.UUID | None = None,
) -> str:
    """Open the external review page pre-filled with ``draft``.

    Args:
        restaurant: Supplies the place id; the configured default is used
            when missing.
        draft: Review text as the customer left it.
        opener: Called with the URL. Defaults to a new browser tab.
        session_id: Wizard session, for the handoff event.

    Returns:
        The URL that was opened.

    Raises:
        EmptyReviewError: ``draft`` is empty or whitespace.
    """
    if not draft.strip():
        logger.warning("Refusing review handoff with empty draft (session=%s)", session_id)
        raise EmptyReviewError("Draft review is empty")

    place_id = restaurant.google_place_id if restaurant else None
    url = build_review_url(place_id, draft)
    (opener or webbrowser.open_new_tab)(url)

    logger.info("Review handoff opened (session=%s, place=%s)", session_id, place_id or "default")
    await emit(SystemEvent(
        event_type=EventType.REVIEW_HANDOFF,
        session_id=session_id,
        restaurant_id=restaurant.id if restaurant else None,
        data={"place_id": place_id, "length": len(draft)},
        source_module="feedback.handoff",
    ))
    return url
