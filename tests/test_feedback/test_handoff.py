"""Tests for the external review handoff."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.feedback.errors import EmptyReviewError
from src.feedback.handoff import build_review_url, hand_off_review
from src.schemas.events import EventType
from src.schemas.feedback import RestaurantInfo

BASE = "https://search.google.com/local/writereview?placeid="


@pytest.fixture(autouse=True)
def mock_emit():
    with patch("src.feedback.handoff.emit", new_callable=AsyncMock) as emit:
        yield emit


class TestBuildReviewUrl:
    def test_encodes_draft(self):
        url = build_review_url("place-1", "Great food & wine! 5/5")
        assert url == f"{BASE}place-1&review=Great%20food%20%26%20wine%21%205%2F5"

    def test_default_place_id(self):
        url = build_review_url(None, "ok")
        assert url == f"{BASE}ChIJN1t_tDeuEmsRUsoyG83frY4&review=ok"


class TestHandOffReview:
    @pytest.mark.asyncio()
    async def test_opens_url(self, mock_emit):
        opener = MagicMock()
        restaurant = RestaurantInfo(id="rest-1", name="Sakura", google_place_id="place-9")
        session_id = uuid.uuid4()

        url = await hand_off_review(restaurant, "Lovely evening", opener=opener, session_id=session_id)

        assert url == f"{BASE}place-9&review=Lovely%20evening"
        opener.assert_called_once_with(url)
        event = mock_emit.await_args.args[0]
        assert event.event_type == EventType.REVIEW_HANDOFF
        assert event.session_id == session_id
        assert event.restaurant_id == "rest-1"

    @pytest.mark.asyncio()
    async def test_restaurant_without_place_id(self):
        opener = MagicMock()
        restaurant = RestaurantInfo(id="rest-1", name="Sakura")

        url = await hand_off_review(restaurant, "Nice", opener=opener)

        assert "placeid=ChIJN1t_tDeuEmsRUsoyG83frY4" in url

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("draft", ["", "   ", "\n\t"])
    async def test_empty_draft_rejected(self, draft, mock_emit):
        opener = MagicMock()

        with pytest.raises(EmptyReviewError) as exc_info:
            await hand_off_review(None, draft, opener=opener)

        assert exc_info.value.user_message == "Review content is empty. Please edit the review before posting."
        opener.assert_not_called()
        mock_emit.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_default_opener_is_new_tab(self):
        with patch("src.feedback.handoff.webbrowser.open_new_tab") as open_tab:
            url = await hand_off_review(None, "Hello")
        open_tab.assert_called_once_with(url)
