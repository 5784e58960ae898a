"""
Redis-backed document store for problems, contests and submissions.

Every record is a single JSON document under its own key. Updates are
read-modify-write without optimistic locking; concurrent statistics
updates to the same contest may overwrite each other.

Redis failures surface as :class:`judge.errors.DatabaseError`.
"""
import logging
from contextlib import contextmanager
from typing import Final, Iterator

import redis.asyncio as redis
from redis.exceptions import RedisError

from judge.errors import DatabaseError
from judge.models.problems import Contest, ContestProblem, Problem, TestCase
from judge.models.submissions import Submission

logger = logging.getLogger(__name__)

PROBLEM_PREFIX: Final[str] = "problem:"
CONTEST_PREFIX: Final[str] = "contest:"
SUBMISSION_PREFIX: Final[str] = "submission:"
ACTIVE_SUBMISSIONS: Final[str] = "submissions:active"


@contextmanager
def _database_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        logger.error("Redis %s on %s failed: %s", operation, key, exc)
        raise DatabaseError(detail=f"Database {operation} failed", key=key) from exc


class JudgeStore:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    async def _get(self, key: str) -> str | None:
        with _database_errors("read", key):
            return await self.redis_client.get(key)

    async def _set(self, key: str, value: str) -> None:
        with _database_errors("write", key):
            await self.redis_client.set(key, value)

    async def load_problem(self, problem_id: str) -> Problem | None:
        raw = await self._get(f"{PROBLEM_PREFIX}{problem_id}")
        return Problem.model_validate_json(raw) if raw else None

    async def save_problem(self, problem: Problem) -> None:
        await self._set(f"{PROBLEM_PREFIX}{problem.id}", problem.model_dump_json())

    async def load_contest(self, contest_id: str) -> Contest | None:
        raw = await self._get(f"{CONTEST_PREFIX}{contest_id}")
        return Contest.model_validate_json(raw) if raw else None

    async def save_contest(self, contest: Contest) -> None:
        await self._set(f"{CONTEST_PREFIX}{contest.id}", contest.model_dump_json())

    async def load_contest_problem(
        self, contest_id: str, problem_id: str
    ) -> tuple[ContestProblem, list[TestCase]] | None:
        """Find a problem within a contest together with the cases it is judged on.

        Manual cases attached to the contest problem win over the cases of
        the referenced standalone problem.
        """
        contest = await self.load_contest(contest_id)
        if contest is None:
            return None
        contest_problem = contest.find_problem(problem_id)
        if contest_problem is None:
            return None
        if contest_problem.manual_test_cases:
            return contest_problem, list(contest_problem.manual_test_cases)
        problem = await self.load_problem(problem_id)
        return contest_problem, list(problem.test_cases) if problem else []

    async def persist_submission(self, submission: Submission) -> None:
        await self._set(f"{SUBMISSION_PREFIX}{submission.id}", submission.model_dump_json())

    async def get_submission(self, submission_id: str) -> Submission | None:
        raw = await self._get(f"{SUBMISSION_PREFIX}{submission_id}")
        return Submission.model_validate_json(raw) if raw else None

    async def mark_active(self, submission_id: str) -> None:
        with _database_errors("write", ACTIVE_SUBMISSIONS):
            await self.redis_client.sadd(ACTIVE_SUBMISSIONS, submission_id)

    async def mark_settled(self, submission_id: str) -> None:
        with _database_errors("write", ACTIVE_SUBMISSIONS):
            await self.redis_client.srem(ACTIVE_SUBMISSIONS, submission_id)

    async def active_submission_ids(self) -> list[str]:
        with _database_errors("read", ACTIVE_SUBMISSIONS):
            return sorted(await self.redis_client.smembers(ACTIVE_SUBMISSIONS))

    async def update_problem_stats(self, problem_id: str, accepted: bool) -> bool:
        """Bump a standalone problem's counters. False if the problem is gone."""
        problem = await self.load_problem(problem_id)
        if problem is None:
            return False
        problem.total_submissions += 1
        if accepted:
            problem.successful_submissions += 1
        await self.save_problem(problem)
        return True
