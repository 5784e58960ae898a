"""
Event bus for submission status changes, backed by Redis pub/sub.
"""
import json
import logging
from datetime import UTC, datetime
from typing import Final

import redis.asyncio as redis

from judge.events import SubmissionEvent
from judge.models.submissions import Submission

CHANNEL_SUBMISSION_UPDATES: Final[str] = "submission_updates"

logger = logging.getLogger(__name__)


def submission_event(submission: Submission) -> SubmissionEvent:
    return {
        "type": "submission_status",
        "submission_id": submission.id,
        "status": submission.status.value,
        "passed": submission.passed_test_cases,
        "total": submission.total_test_cases,
        "score": submission.score,
        "timestamp": datetime.now(UTC).isoformat(),
    }


class EventBus:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    async def publish(self, event: SubmissionEvent) -> None:
        await self.redis_client.publish(CHANNEL_SUBMISSION_UPDATES, json.dumps(event))

    async def publish_submission(self, submission: Submission) -> None:
        """Announce a status change. Delivery failures are logged only."""
        try:
            await self.publish(submission_event(submission))
        except Exception:
            logger.warning("Failed to publish status of submission %s", submission.id, exc_info=True)
