"""Aggregate counters updated after every settled submission."""
import logging
from datetime import UTC, datetime

from judge.models.problems import Contest
from judge.models.submissions import Submission, SubmissionStatus
from judge.store import JudgeStore

logger = logging.getLogger(__name__)


class StatisticsUpdater:
    """Applies a terminal submission to problem and contest statistics.

    Updates are best-effort: a failure is logged and never reaches the
    caller, and the submission record itself is left untouched.
    """

    def __init__(self, store: JudgeStore):
        self.store = store

    async def apply(self, submission: Submission) -> None:
        try:
            if submission.contest_id:
                await self._apply_contest(submission)
            else:
                await self.store.update_problem_stats(
                    submission.problem_id, submission.status == SubmissionStatus.ACCEPTED
                )
        except Exception:
            logger.exception("Error updating statistics for submission %s", submission.id)

    async def _apply_contest(self, submission: Submission) -> None:
        contest = await self.store.load_contest(submission.contest_id)
        if contest is None:
            logger.warning("Contest %s vanished before statistics update", submission.contest_id)
            return
        apply_to_contest(contest, submission)
        await self.store.save_contest(contest)


def apply_to_contest(contest: Contest, submission: Submission, now: datetime | None = None) -> None:
    """Fold one submission into a contest's analytics, problem and participant data.

    A participant's problem score only ever goes up; the participant total
    moves by the improvement.
    """
    now = now or datetime.now(UTC)
    accepted = submission.status == SubmissionStatus.ACCEPTED

    contest.analytics.total_submissions += 1
    if accepted:
        contest.analytics.successful_submissions += 1

    participant = contest.find_participant(submission.user_id)
    if participant is not None:
        participant.submissions += 1
        participant.last_activity_time = now

        attempt = participant.attempt_for(submission.problem_id)
        attempt.attempts += 1
        attempt.last_attempt_time = now
        if submission.score > attempt.score:
            participant.score += submission.score - attempt.score
            attempt.score = submission.score
        if accepted:
            attempt.solved = True

    contest_problem = contest.find_problem(submission.problem_id)
    if contest_problem is not None:
        contest_problem.attempt_count += 1
        if accepted:
            contest_problem.solved_count += 1

    contest.refresh_analytics()
