"""Tests for submission intake and judging."""

import asyncio
import shutil
from datetime import UTC, datetime, timedelta

import pytest

import judge.grading.service as service_module
from judge.config import JudgeSettings
from judge.errors import ConfigurationError, ForbiddenError, NotFoundError, ValidationError
from judge.grading.service import INTERRUPTED, JudgeService
from judge.grading.statistics import StatisticsUpdater
from judge.models.problems import Contest, ContestParticipant, ContestProblem, ContestStatus, Problem, TestCase
from judge.models.submissions import (
    ErrorType,
    Submission,
    SubmissionStatus,
    SubmitRequest,
    TestCaseResult,
    TestCaseStatus,
)
from judge.runner.admission import AdmissionController
from judge.runner.errors import ToolchainNotFoundError
from judge.runner.harness import EvaluationReport, TestHarness
from judge.runner.process import ProcessRunner
from judge.runner.workspace import WorkspaceManager
from judge.store import JudgeStore

requires_python3 = pytest.mark.skipif(shutil.which("python3") is None, reason="python3 not installed")
requires_gpp = pytest.mark.skipif(shutil.which("g++") is None, reason="g++ not installed")


def _passing_report(test_cases) -> EvaluationReport:
    return EvaluationReport(results=[
        TestCaseResult(index=i, input=c.input, expected_output=c.output,
                       actual_output=c.output, status=TestCaseStatus.PASSED, execution_time_ms=1)
        for i, c in enumerate(test_cases)
    ])


class StubHarness:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    async def evaluate(self, code, language, test_cases):
        self.calls.append((code, language, list(test_cases)))
        if self.error is not None:
            raise self.error
        return _passing_report(test_cases)


class GatedHarness:
    """Blocks every evaluation until the test opens its gate."""

    def __init__(self):
        self.gates: list[asyncio.Event] = []
        self.started: asyncio.Queue[str] = asyncio.Queue()

    async def evaluate(self, code, language, test_cases):
        gate = asyncio.Event()
        self.gates.append(gate)
        await self.started.put(code)
        await gate.wait()
        return _passing_report(test_cases)


def _service(store, harness, concurrency=2, **settings) -> JudgeService:
    return JudgeService(
        store=store,
        harness=harness,
        admission=AdmissionController(concurrency, name="judge"),
        statistics=StatisticsUpdater(store),
        settings=JudgeSettings(**settings),
    )


def _request(**overrides) -> SubmitRequest:
    fields = {"user_id": "alice", "problem_id": "p1", "code": "print(input())", "language": "python"}
    fields.update(overrides)
    return SubmitRequest(**fields)


@pytest.fixture
def store(fake_redis):
    return JudgeStore(fake_redis)


@pytest.fixture
def toolchains_installed(monkeypatch):
    monkeypatch.setattr(service_module, "missing_executable", lambda _spec: None)


async def _seed_problem(store, cases=None):
    await store.save_problem(Problem(id="p1", title="Echo", test_cases=cases if cases is not None else [
        TestCase(input="5", output="5"),
        TestCase(input="7", output="7", is_hidden=True),
    ]))


async def _seed_contest(store, status=ContestStatus.ACTIVE, allowed_languages=None, manual=None):
    now = datetime.now(UTC)
    await store.save_contest(Contest(
        id="c1",
        title="Weekly",
        status=status,
        start_date=now - timedelta(hours=1),
        end_date=now + timedelta(hours=1),
        problems=[ContestProblem(problem_id="p1", points=300, manual_test_cases=manual)],
        participants=[ContestParticipant(user_id="alice", name="Alice")],
        max_participants=5,
        allowed_languages=allowed_languages or [],
    ))


class TestSubmitValidation:
    """Test request validation before anything is queued."""

    @pytest.mark.asyncio
    async def test_unknown_language(self, store):
        await _seed_problem(store)
        with pytest.raises(ValidationError) as exc_info:
            await _service(store, StubHarness()).submit(_request(language="cobol"))
        assert "Unsupported language" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_missing_problem(self, store):
        with pytest.raises(NotFoundError):
            await _service(store, StubHarness()).submit(_request())

    @pytest.mark.asyncio
    async def test_problem_without_cases(self, store, toolchains_installed):
        await _seed_problem(store, cases=[])
        with pytest.raises(ValidationError):
            await _service(store, StubHarness()).submit(_request())

    @pytest.mark.asyncio
    async def test_code_too_long(self, store):
        await _seed_problem(store)
        with pytest.raises(ValidationError):
            await _service(store, StubHarness(), max_code_length=10).submit(_request(code="x" * 11))

    @pytest.mark.asyncio
    async def test_missing_contest(self, store):
        with pytest.raises(NotFoundError):
            await _service(store, StubHarness()).submit(_request(contest_id="nope"))

    @pytest.mark.asyncio
    async def test_unregistered_user(self, store):
        await _seed_contest(store)
        with pytest.raises(ForbiddenError):
            await _service(store, StubHarness()).submit(_request(contest_id="c1", user_id="mallory"))

    @pytest.mark.asyncio
    async def test_inactive_contest(self, store):
        await _seed_contest(store, status=ContestStatus.COMPLETED)
        with pytest.raises(ValidationError):
            await _service(store, StubHarness()).submit(_request(contest_id="c1"))

    @pytest.mark.asyncio
    async def test_inactive_contest_allowed_when_configured(self, store, toolchains_installed):
        await _seed_contest(store, status=ContestStatus.UPCOMING, manual=[TestCase(input="1", output="1")])
        service = _service(store, StubHarness(), require_active_contest=False)
        response = await service.submit(_request(contest_id="c1"))
        assert response.status == SubmissionStatus.PENDING

    @pytest.mark.asyncio
    async def test_problem_not_in_contest(self, store):
        await _seed_contest(store)
        with pytest.raises(NotFoundError):
            await _service(store, StubHarness()).submit(_request(contest_id="c1", problem_id="p9"))

    @pytest.mark.asyncio
    async def test_language_not_allowed(self, store):
        await _seed_contest(store, allowed_languages=["cpp"], manual=[TestCase(input="1", output="1")])
        with pytest.raises(ValidationError):
            await _service(store, StubHarness()).submit(_request(contest_id="c1"))

    @pytest.mark.asyncio
    async def test_missing_toolchain(self, store, monkeypatch):
        await _seed_problem(store)
        monkeypatch.setattr(service_module, "missing_executable", lambda _spec: "python3")
        with pytest.raises(ConfigurationError) as exc_info:
            await _service(store, StubHarness()).submit(_request())
        assert exc_info.value.status_code == 503
        assert await store.active_submission_ids() == []


class TestSubmitAndProcess:
    """Test the pending, running and terminal lifecycle with a stub harness."""

    @pytest.mark.asyncio
    async def test_submit_persists_pending(self, store, toolchains_installed):
        await _seed_problem(store)
        service = _service(store, StubHarness())

        response = await service.submit(_request(language="PY"))

        assert response.status == SubmissionStatus.PENDING
        assert response.total_test_cases == 2
        submission = await service.get_submission(response.submission_id)
        assert submission.status == SubmissionStatus.PENDING
        assert submission.language == "python"
        assert await store.active_submission_ids() == [response.submission_id]
        assert service.queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_process_settles_and_updates_statistics(self, store, toolchains_installed):
        await _seed_problem(store)
        harness = StubHarness()
        service = _service(store, harness)
        response = await service.submit(_request())

        submission = await service.process(service.queue.get_nowait())

        assert submission.status == SubmissionStatus.ACCEPTED
        assert submission.score == 100
        assert submission.passed_test_cases == 2
        assert submission.evaluated_at is not None
        assert len(harness.calls[0][2]) == 2
        stored = await service.get_submission(response.submission_id)
        assert stored.status == SubmissionStatus.ACCEPTED
        assert await store.active_submission_ids() == []
        problem = await store.load_problem("p1")
        assert problem.total_submissions == 1
        assert problem.successful_submissions == 1
        assert service.admission.active == 0

    @pytest.mark.asyncio
    async def test_contest_uses_manual_cases_and_points(self, store, toolchains_installed):
        await _seed_contest(store, manual=[TestCase(input="a", output="a")])
        harness = StubHarness()
        service = _service(store, harness)
        await service.submit(_request(contest_id="c1"))

        submission = await service.process(service.queue.get_nowait())

        assert harness.calls[0][2] == [TestCase(input="a", output="a")]
        assert submission.max_score == 300
        assert submission.score == 300
        contest = await store.load_contest("c1")
        assert contest.find_participant("alice").score == 300
        assert contest.problems[0].solved_count == 1

    @pytest.mark.asyncio
    async def test_crash_moves_to_runtime_error(self, store, toolchains_installed):
        await _seed_problem(store)
        service = _service(store, StubHarness(error=OSError("disk full")))
        response = await service.submit(_request())

        await service.process(service.queue.get_nowait())

        submission = await service.get_submission(response.submission_id)
        assert submission.status == SubmissionStatus.RUNTIME_ERROR
        assert "disk full" in submission.judge_error
        assert submission.total_test_cases == 2
        assert len(submission.test_case_results) == 2
        assert all(r.status is TestCaseStatus.ERROR for r in submission.test_case_results)
        assert all(r.error_type is ErrorType.RUNTIME for r in submission.test_case_results)
        assert submission.test_case_results[1].expected_output == "7"
        assert await store.active_submission_ids() == []
        assert service.admission.active == 0
        problem = await store.load_problem("p1")
        assert problem.total_submissions == 0

    @pytest.mark.asyncio
    async def test_missing_toolchain_while_judging(self, store, toolchains_installed):
        await _seed_problem(store)
        service = _service(store, StubHarness(error=ToolchainNotFoundError("python", "python3")))
        response = await service.submit(_request())

        await service.process(service.queue.get_nowait())

        submission = await service.get_submission(response.submission_id)
        assert submission.status == SubmissionStatus.RUNTIME_ERROR
        assert "not found on system" in submission.judge_error
        assert len(submission.test_case_results) == submission.total_test_cases == 2

    @pytest.mark.asyncio
    async def test_get_missing_submission(self, store):
        with pytest.raises(NotFoundError):
            await _service(store, StubHarness()).get_submission("missing")

    @pytest.mark.asyncio
    async def test_recover_stranded(self, store):
        await _seed_problem(store)
        stranded = Submission(id="s1", user_id="alice", problem_id="p1", code="x", language="python",
                              status=SubmissionStatus.RUNNING, total_test_cases=2)
        done = Submission(id="s2", user_id="alice", problem_id="p1", code="x", language="python",
                          status=SubmissionStatus.ACCEPTED)
        for submission in (stranded, done):
            await store.persist_submission(submission)
            await store.mark_active(submission.id)

        recovered = await _service(store, StubHarness()).recover_stranded()

        assert recovered == 1
        assert (await store.get_submission("s1")).status == SubmissionStatus.RUNTIME_ERROR
        assert (await store.get_submission("s1")).judge_error == INTERRUPTED
        interrupted = await store.get_submission("s1")
        assert len(interrupted.test_case_results) == interrupted.total_test_cases == 2
        assert interrupted.test_case_results[0].error_message == INTERRUPTED
        assert (await store.get_submission("s2")).status == SubmissionStatus.ACCEPTED
        assert await store.active_submission_ids() == []


class TestWorkerPool:
    """Test queued judging through the worker tasks."""

    @pytest.mark.asyncio
    async def test_second_submission_waits_for_first(self, store, toolchains_installed):
        await _seed_problem(store)
        harness = GatedHarness()
        service = _service(store, harness, concurrency=1)
        service.start(worker_count=2)
        try:
            first = await service.submit(_request(code="first"))
            second = await service.submit(_request(code="second"))

            assert await asyncio.wait_for(harness.started.get(), timeout=2) == "first"
            await asyncio.sleep(0.05)
            assert (await service.get_submission(first.submission_id)).status == SubmissionStatus.RUNNING
            assert (await service.get_submission(second.submission_id)).status == SubmissionStatus.PENDING
            assert service.stats()["queued"] == 1

            harness.gates[0].set()
            assert await asyncio.wait_for(harness.started.get(), timeout=2) == "second"
            assert (await service.get_submission(first.submission_id)).status == SubmissionStatus.ACCEPTED
            assert (await service.get_submission(second.submission_id)).status == SubmissionStatus.RUNNING

            harness.gates[1].set()
            await asyncio.wait_for(service.queue.join(), timeout=2)
            assert (await service.get_submission(second.submission_id)).status == SubmissionStatus.ACCEPTED
        finally:
            await service.stop()
        assert service.worker_count == 0


def _real_service(store, runner_settings) -> JudgeService:
    workspaces = WorkspaceManager(runner_settings.temp_root)
    harness = TestHarness(workspaces, ProcessRunner(runner_settings, workspaces))
    return _service(store, harness)


class TestEndToEnd:
    """Test judging real programs."""

    @requires_python3
    @pytest.mark.asyncio
    async def test_echo_is_accepted(self, store, runner_settings):
        await _seed_problem(store, cases=[TestCase(input="5", output="5")])
        service = _real_service(store, runner_settings)
        await service.submit(_request(code="print(input())"))

        submission = await service.process(service.queue.get_nowait())

        assert submission.status == SubmissionStatus.ACCEPTED
        assert submission.score == 100
        assert [r.status for r in submission.test_case_results] == [TestCaseStatus.PASSED]

    @requires_gpp
    @pytest.mark.asyncio
    async def test_syntax_error_is_compilation_error(self, store, runner_settings):
        await _seed_problem(store)
        service = _real_service(store, runner_settings)
        await service.submit(_request(code="int main( {", language="cpp"))

        submission = await service.process(service.queue.get_nowait())

        assert submission.status == SubmissionStatus.COMPILATION_ERROR
        assert submission.passed_test_cases == 0
        assert submission.compilation_output
        assert all(r.status is TestCaseStatus.ERROR for r in submission.test_case_results)

    @requires_gpp
    @pytest.mark.asyncio
    async def test_warnings_do_not_leak_into_accepted_submission(self, store, runner_settings):
        await _seed_problem(store, cases=[TestCase(input="", output="1")])
        service = _real_service(store, runner_settings)
        code = '#warning "heads up"\n#include <cstdio>\nint main() { printf("1"); }\n'
        await service.submit(_request(code=code, language="cpp"))

        submission = await service.process(service.queue.get_nowait())

        assert submission.status == SubmissionStatus.ACCEPTED
        assert submission.compilation_output is None

    @requires_python3
    @pytest.mark.asyncio
    async def test_infinite_loop_is_time_limit_exceeded(self, store, runner_settings):
        await _seed_problem(store, cases=[TestCase(input="", output="1")])
        runner_settings.run_timeout_ms = 500
        service = _real_service(store, runner_settings)
        await service.submit(_request(code="while True:\n    pass\n"))

        submission = await service.process(service.queue.get_nowait())

        assert submission.status == SubmissionStatus.TIME_LIMIT_EXCEEDED
        assert submission.test_case_results[0].status is TestCaseStatus.TIMEOUT
