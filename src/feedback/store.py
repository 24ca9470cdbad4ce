"""Wizard session store: keeps each customer's wizard in Redis between requests."""

from __future__ import annotations

import json
import logging
import uuid

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from src.config import settings
from src.feedback.errors import SubmissionError, SubmissionInProgressError
from src.feedback.states import EDITABLE_STATES
from src.feedback.wizard import FeedbackWizard, SubmissionSink
from src.models.enums import WizardState

logger = logging.getLogger(__name__)

_KEY_PREFIX = "feedback:wizard:"


def _key(session_id: uuid.UUID | str) -> str:
    return f"{_KEY_PREFIX}{session_id}"


class WizardStore:
    """Snapshot persistence keyed by wizard session id, with a sliding TTL."""

    def __init__(self, redis: aioredis.Redis, sink: SubmissionSink, ttl: int | None = None) -> None:
        self._redis = redis
        self._sink = sink
        self._ttl = ttl or settings.redis.wizard_session_ttl

    async def save(self, wizard: FeedbackWizard) -> None:
        """Write the wizard snapshot. Failures are logged, never raised."""
        try:
            await self._redis.setex(_key(wizard.session_id), self._ttl, json.dumps(wizard.snapshot()))
        except Exception:
            logger.exception("Failed to save wizard session %s", wizard.session_id)

    async def load(self, session_id: uuid.UUID | str) -> FeedbackWizard | None:
        """Return the stored wizard, or None when missing, expired or unreadable."""
        raw = await self._redis.get(_key(session_id))
        if raw is None:
            return None
        try:
            wizard = FeedbackWizard.restore(json.loads(raw), self._sink)
        except Exception:
            logger.warning("Discarding unreadable wizard session %s", session_id)
            await self.delete(session_id)
            return None
        wizard.on_submitting(self.claim_submission)
        return wizard

    async def claim_submission(self, wizard: FeedbackWizard) -> None:
        """Atomically move the stored wizard into SUBMITTING.

        Compare-and-set under WATCH: the claim only succeeds while the stored
        copy is still editable and nobody wrote it in between. Two requests
        that loaded the same IN_PROGRESS wizard can therefore never both
        reach the backend.

        Raises:
            SubmissionInProgressError: Another request claimed (or finished)
                the submission first.
            SubmissionError: Redis could not be reached.
        """
        key = _key(wizard.session_id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is not None:
                    stored_state = WizardState(json.loads(raw).get("state", WizardState.IN_PROGRESS.value))
                    if stored_state not in EDITABLE_STATES:
                        raise SubmissionInProgressError(
                            f"Session {wizard.session_id} is {stored_state.value} in the store",
                            user_message=(
                                "This feedback has already been submitted"
                                if stored_state == WizardState.COMPLETED
                                else None
                            ),
                        )
                pipe.multi()
                pipe.setex(key, self._ttl, json.dumps(wizard.snapshot()))
                await pipe.execute()
        except WatchError:
            logger.info("Lost submission claim race (session=%s)", wizard.session_id)
            raise SubmissionInProgressError(f"Session {wizard.session_id} was claimed concurrently") from None
        except RedisError as exc:
            logger.warning("Could not claim submission (session=%s): %s", wizard.session_id, exc)
            raise SubmissionError(f"Submission claim failed: {exc}") from exc

        logger.debug("Submission claimed (session=%s)", wizard.session_id)

    async def delete(self, session_id: uuid.UUID | str) -> None:
        await self._redis.delete(_key(session_id))
