"""Submission intake and the judging worker pool.

A submission is validated and stored as ``pending`` by :meth:`JudgeService.submit`,
which returns immediately. Worker tasks pull jobs off an in-process queue,
acquire a judging slot, run the test harness and move the submission to
exactly one terminal status. Nothing is ever left in ``running``: any
failure while judging settles the submission as ``runtime_error``.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Sequence
from datetime import UTC, datetime

from judge.bus import EventBus
from judge.config import JudgeSettings
from judge.errors import ConfigurationError, ForbiddenError, NotFoundError, ValidationError
from judge.grading.statistics import StatisticsUpdater
from judge.grading.verdict import compute_score, determine_status
from judge.models.problems import TestCase
from judge.models.submissions import (
    ErrorType,
    Submission,
    SubmissionStatus,
    SubmitRequest,
    SubmitResponse,
    TestCaseResult,
    TestCaseStatus,
)
from judge.runner.admission import AdmissionController
from judge.runner.errors import ToolchainNotFoundError, UnsupportedLanguageError
from judge.runner.harness import EvaluationReport, TestHarness
from judge.runner.toolchains import missing_executable, resolve
from judge.store import JudgeStore

logger = logging.getLogger(__name__)

INTERRUPTED = "Judging interrupted"


@dataclass
class JudgeJob:
    submission_id: str
    test_cases: list[TestCase]
    max_score: int
    contest_id: str | None = None


class JudgeService:
    def __init__(
        self,
        store: JudgeStore,
        harness: TestHarness,
        admission: AdmissionController,
        statistics: StatisticsUpdater,
        bus: EventBus | None = None,
        settings: JudgeSettings | None = None,
    ) -> None:
        self.store = store
        self.harness = harness
        self.admission = admission
        self.statistics = statistics
        self.bus = bus
        self.settings = settings or JudgeSettings()
        self.queue: asyncio.Queue[JudgeJob] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []

    async def submit(self, request: SubmitRequest) -> SubmitResponse:
        """Validate a submission, store it as pending and queue it for judging.

        Raises:
            ValidationError: unknown language, inactive contest, disallowed
                language, oversized code or a problem without test cases.
            NotFoundError: the contest or problem does not exist.
            ForbiddenError: the user is not registered for the contest.
            ConfigurationError: the language's toolchain is not installed.
        """
        try:
            toolchain = resolve(request.language)
        except UnsupportedLanguageError as exc:
            raise ValidationError(detail=str(exc), language=request.language) from exc

        if len(request.code) > self.settings.max_code_length:
            raise ValidationError(
                detail=f"Code exceeds maximum length of {self.settings.max_code_length} characters"
            )

        if request.contest_id:
            contest = await self.store.load_contest(request.contest_id)
            if contest is None:
                raise NotFoundError(detail="Contest not found", contest_id=request.contest_id)
            if contest.find_participant(request.user_id) is None:
                raise ForbiddenError(detail="You are not registered for this contest")
            if self.settings.require_active_contest and not contest.is_currently_active():
                raise ValidationError(detail="Contest is not currently active")
            found = await self.store.load_contest_problem(request.contest_id, request.problem_id)
            if found is None:
                raise NotFoundError(detail="Problem not found in contest", problem_id=request.problem_id)
            if not contest.allows_language(toolchain.language_id):
                raise ValidationError(
                    detail=f"Language {toolchain.language_id} is not allowed in this contest"
                )
            contest_problem, test_cases = found
            max_score = contest_problem.points
        else:
            problem = await self.store.load_problem(request.problem_id)
            if problem is None:
                raise NotFoundError(detail="Problem not found", problem_id=request.problem_id)
            test_cases = list(problem.test_cases)
            max_score = self.settings.default_max_score

        if not test_cases:
            raise ValidationError(detail="No test cases available for this problem")

        missing = missing_executable(toolchain)
        if missing is not None:
            raise ConfigurationError(
                detail=str(ToolchainNotFoundError(toolchain.language_id, missing)),
                language=toolchain.language_id,
            )

        submission = Submission(
            id=uuid.uuid4().hex,
            user_id=request.user_id,
            problem_id=request.problem_id,
            contest_id=request.contest_id,
            code=request.code,
            language=toolchain.language_id,
            total_test_cases=len(test_cases),
            max_score=max_score,
            is_public=request.is_public,
        )
        await self.store.persist_submission(submission)
        await self.store.mark_active(submission.id)
        await self._publish(submission)
        await self.queue.put(
            JudgeJob(
                submission_id=submission.id,
                test_cases=test_cases,
                max_score=max_score,
                contest_id=request.contest_id,
            )
        )
        logger.info(
            "Queued submission %s (%s, %d cases)", submission.id, submission.language, len(test_cases)
        )
        return SubmitResponse(
            submission_id=submission.id,
            status=submission.status,
            total_test_cases=submission.total_test_cases,
            message="Submission received and queued for evaluation",
        )

    async def get_submission(self, submission_id: str) -> Submission:
        submission = await self.store.get_submission(submission_id)
        if submission is None:
            raise NotFoundError(detail="Submission not found", submission_id=submission_id)
        return submission

    async def process(self, job: JudgeJob) -> Submission | None:
        """Judge one queued submission and settle it."""
        async with self.admission.slot():
            submission = await self.store.get_submission(job.submission_id)
            if submission is None:
                logger.warning("Submission %s disappeared before judging", job.submission_id)
                await self.store.mark_settled(job.submission_id)
                return None
            if submission.status != SubmissionStatus.PENDING:
                logger.warning(
                    "Submission %s already claimed (status=%s)", submission.id, submission.status.value
                )
                return None

            submission.status = SubmissionStatus.RUNNING
            await self.store.persist_submission(submission)
            await self._publish(submission)

            try:
                report = await self.harness.evaluate(submission.code, submission.language, job.test_cases)
                self._settle(submission, report, job.max_score)
            except ToolchainNotFoundError as exc:
                logger.error("Toolchain missing while judging %s: %s", submission.id, exc)
                self._fail(submission, str(exc), job.test_cases)
            except Exception as exc:
                logger.exception("Judging crashed for submission %s", submission.id)
                self._fail(submission, f"Judging failed: {exc}", job.test_cases)

            await self.store.persist_submission(submission)
            await self.store.mark_settled(submission.id)
            await self._publish(submission)
            logger.info(
                "Submission %s settled as %s (%d/%d, score %d)",
                submission.id,
                submission.status.value,
                submission.passed_test_cases,
                submission.total_test_cases,
                submission.score,
            )

        if submission.judge_error is None:
            await self.statistics.apply(submission)
        return submission

    @staticmethod
    def _settle(submission: Submission, report: EvaluationReport, max_score: int) -> None:
        submission.test_case_results = report.results
        submission.compilation_output = report.compilation_output
        submission.total_test_cases = len(report.results)
        submission.passed_test_cases = report.passed
        submission.execution_time_ms = report.execution_time_ms
        submission.memory_used_bytes = 0
        submission.max_score = max_score
        submission.score = compute_score(report.passed, len(report.results), max_score)
        submission.status = determine_status(report.results)
        submission.evaluated_at = datetime.now(UTC)

    @staticmethod
    def _fail(submission: Submission, message: str, test_cases: Sequence[TestCase]) -> None:
        """Settle a submission the harness could not judge.

        Every case is reported as a runtime error carrying the failure message.
        """
        submission.status = SubmissionStatus.RUNTIME_ERROR
        submission.judge_error = message
        submission.test_case_results = [
            TestCaseResult(
                index=index,
                input=case.input,
                expected_output=case.output,
                status=TestCaseStatus.ERROR,
                error_type=ErrorType.RUNTIME,
                error_message=message,
            )
            for index, case in enumerate(test_cases)
        ]
        submission.total_test_cases = len(test_cases)
        submission.passed_test_cases = 0
        submission.score = 0
        submission.evaluated_at = datetime.now(UTC)

    async def recover_stranded(self) -> int:
        """Settle submissions a previous process left pending or running."""
        recovered = 0
        for submission_id in await self.store.active_submission_ids():
            submission = await self.store.get_submission(submission_id)
            if submission is not None and not submission.status.is_terminal:
                self._fail(submission, INTERRUPTED, await self._cases_for(submission))
                await self.store.persist_submission(submission)
                await self._publish(submission)
                recovered += 1
            await self.store.mark_settled(submission_id)
        if recovered:
            logger.warning("Marked %d interrupted submissions as runtime_error", recovered)
        return recovered

    async def _cases_for(self, submission: Submission) -> list[TestCase]:
        if submission.contest_id:
            found = await self.store.load_contest_problem(submission.contest_id, submission.problem_id)
            return found[1] if found else []
        problem = await self.store.load_problem(submission.problem_id)
        return list(problem.test_cases) if problem else []

    async def _publish(self, submission: Submission) -> None:
        if self.bus is not None:
            await self.bus.publish_submission(submission)

    async def _worker(self, worker_id: int) -> None:
        while True:
            job = await self.queue.get()
            try:
                await self.process(job)
            except Exception:
                logger.exception("Judge worker %d failed on submission %s", worker_id, job.submission_id)
            finally:
                self.queue.task_done()

    def start(self, worker_count: int | None = None) -> None:
        if self._workers:
            return
        count = worker_count or self.settings.worker_count or self.admission.max_concurrency
        for i in range(count):
            self._workers.append(asyncio.create_task(self._worker(i), name=f"judge-worker-{i}"))
        logger.info("Started %d judge workers", count)

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    def stats(self) -> dict:
        return {
            **self.admission.stats(),
            "pending_jobs": self.queue.qsize(),
            "workers": self.worker_count,
        }
