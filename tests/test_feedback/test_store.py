"""Tests for the Redis-backed wizard session store.

Covers:
- Snapshot save/load round trip with TTL
- Missing and unreadable sessions
- SUBMITTING persisted before the network call
- Atomic submission claim: concurrent requests reach the backend once
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.feedback.errors import SubmissionError, SubmissionInProgressError
from src.feedback.store import WizardStore
from src.feedback.wizard import FeedbackWizard
from src.models.enums import WizardState
from src.schemas.feedback import (
    CheckboxQuestion,
    FeedbackForm,
    RatingQuestion,
    RestaurantInfo,
    SubmissionContext,
    SubmissionReceipt,
)

FORM = FeedbackForm(
    id="form-1",
    questions=(
        RatingQuestion(id="food", text="How would you rate the food?", required=True),
        CheckboxQuestion(id="dishes", text="What did you order?", options=["Soup", "Cake"]),
    ),
)


class CountingSink:
    """Backend stand-in that yields to the loop mid-call, like a real HTTP request."""

    def __init__(self) -> None:
        self.calls = 0

    async def submit_feedback(self, form_id, payload):
        self.calls += 1
        await asyncio.sleep(0)
        return SubmissionReceipt(response_id=f"resp-{self.calls}")


def _make_wizard(sink) -> FeedbackWizard:
    return FeedbackWizard(
        form=FORM,
        context=SubmissionContext(form_id="form-1", restaurant_id="rest-1"),
        sink=sink,
        restaurant=RestaurantInfo(id="rest-1", name="Sakura"),
    )


async def _saved_on_last_step(store: WizardStore, sink) -> FeedbackWizard:
    wizard = _make_wizard(sink)
    wizard.answer("food", 5)
    await wizard.advance()
    await store.save(wizard)
    return wizard


@pytest.fixture(autouse=True)
def _mute_events():
    with patch("src.feedback.wizard.emit", new_callable=AsyncMock):
        yield


class TestWizardStore:
    @pytest.mark.asyncio()
    async def test_save_and_load(self, fake_redis):
        sink = AsyncMock()
        store = WizardStore(fake_redis, sink=sink, ttl=120)
        wizard = _make_wizard(sink)
        wizard.answer("food", 4)
        wizard.answer("dishes", ["Cake"])
        await wizard.advance()

        await store.save(wizard)
        key = f"feedback:wizard:{wizard.session_id}"
        assert fake_redis.ttls[key] == 120
        assert json.loads(fake_redis.data[key])["answers"] == {"food": 4, "dishes": ["Cake"]}

        loaded = await store.load(wizard.session_id)
        assert loaded is not None
        assert loaded.step == 1
        assert loaded.answers.get("dishes") == frozenset({"Cake"})
        assert loaded.restaurant.name == "Sakura"

    @pytest.mark.asyncio()
    async def test_missing_session(self, fake_redis):
        store = WizardStore(fake_redis, sink=AsyncMock())
        assert await store.load("nope") is None

    @pytest.mark.asyncio()
    async def test_unreadable_session_discarded(self, fake_redis):
        fake_redis.data["feedback:wizard:bad"] = "{not json"
        store = WizardStore(fake_redis, sink=AsyncMock())

        assert await store.load("bad") is None
        assert "feedback:wizard:bad" not in fake_redis.data

    @pytest.mark.asyncio()
    async def test_save_failure_is_logged_not_raised(self, fake_redis):
        fake_redis.setex = AsyncMock(side_effect=ConnectionError("redis down"))
        store = WizardStore(fake_redis, sink=AsyncMock())

        await store.save(_make_wizard(AsyncMock()))

    @pytest.mark.asyncio()
    async def test_submitting_state_persisted_before_network_call(self, fake_redis):
        """A second request loading the session mid-submit sees SUBMITTING."""
        gate = asyncio.Event()
        seen_states: list[str] = []

        async def slow_submit(form_id, payload):
            stored = json.loads(fake_redis.data[f"feedback:wizard:{wizard.session_id}"])
            seen_states.append(stored["state"])
            await gate.wait()
            return SubmissionReceipt(response_id="resp-1")

        sink = AsyncMock()
        sink.submit_feedback = slow_submit
        store = WizardStore(fake_redis, sink=sink)
        wizard = await _saved_on_last_step(store, sink)
        wizard = await store.load(wizard.session_id)

        task = asyncio.create_task(wizard.advance())
        for _ in range(5):
            await asyncio.sleep(0)

        concurrent = await store.load(wizard.session_id)
        assert concurrent.state == WizardState.SUBMITTING
        with pytest.raises(SubmissionInProgressError):
            await concurrent.advance()

        gate.set()
        await task
        assert seen_states == ["submitting"]
        assert wizard.state == WizardState.COMPLETED


class TestSubmissionClaim:
    @pytest.mark.asyncio()
    async def test_two_requests_loaded_before_either_claims(self, fake_redis):
        """Both requests hold an IN_PROGRESS copy; only one reaches the backend."""
        sink = CountingSink()
        store = WizardStore(fake_redis, sink=sink)
        saved = await _saved_on_last_step(store, sink)

        first = await store.load(saved.session_id)
        second = await store.load(saved.session_id)
        assert first.state == second.state == WizardState.IN_PROGRESS

        results = await asyncio.gather(first.advance(), second.advance(), return_exceptions=True)

        assert sink.calls == 1
        assert sum(1 for r in results if isinstance(r, SubmissionInProgressError)) == 1
        assert WizardState.COMPLETED in results
        refused = second if isinstance(results[1], SubmissionInProgressError) else first
        assert refused.state == WizardState.IN_PROGRESS

    @pytest.mark.asyncio()
    async def test_concurrent_write_between_watch_and_exec(self, fake_redis):
        sink = CountingSink()
        store = WizardStore(fake_redis, sink=sink)
        saved = await _saved_on_last_step(store, sink)
        wizard = await store.load(saved.session_id)

        async def other_request_claims():
            await fake_redis.setex(f"feedback:wizard:{saved.session_id}", 60, json.dumps(saved.snapshot()))

        fake_redis.before_exec = other_request_claims

        with pytest.raises(SubmissionInProgressError):
            await wizard.advance()
        assert sink.calls == 0

    @pytest.mark.asyncio()
    async def test_stale_copy_after_completion_is_refused(self, fake_redis):
        sink = CountingSink()
        store = WizardStore(fake_redis, sink=sink)
        saved = await _saved_on_last_step(store, sink)
        stale = await store.load(saved.session_id)

        winner = await store.load(saved.session_id)
        await winner.advance()
        await store.save(winner)

        with pytest.raises(SubmissionInProgressError) as exc_info:
            await stale.advance()
        assert exc_info.value.user_message == "This feedback has already been submitted"
        assert sink.calls == 1

    @pytest.mark.asyncio()
    async def test_retry_after_failure_can_claim_again(self, fake_redis):
        sink = CountingSink()
        store = WizardStore(fake_redis, sink=sink)
        saved = await _saved_on_last_step(store, sink)

        failing = AsyncMock()
        failing.submit_feedback = AsyncMock(side_effect=SubmissionError("HTTP 500"))
        wizard = await WizardStore(fake_redis, sink=failing).load(saved.session_id)
        with pytest.raises(SubmissionError):
            await wizard.advance()
        await store.save(wizard)

        retried = await store.load(saved.session_id)
        assert retried.state == WizardState.FAILED
        assert await retried.advance() == WizardState.COMPLETED
        assert sink.calls == 1

    @pytest.mark.asyncio()
    async def test_redis_outage_during_claim_fails_the_submission(self, fake_redis):
        sink = CountingSink()
        store = WizardStore(fake_redis, sink=sink)
        saved = await _saved_on_last_step(store, sink)
        wizard = await store.load(saved.session_id)

        async def redis_down():
            raise RedisConnectionError("connection refused")

        fake_redis.before_exec = redis_down

        with pytest.raises(SubmissionError):
            await wizard.advance()
        assert wizard.state == WizardState.FAILED
        assert sink.calls == 0
