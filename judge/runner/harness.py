"""Runs a program against an ordered list of test cases."""
import logging
from dataclasses import dataclass, field
from typing import Sequence

from ..models.problems import TestCase
from ..models.submissions import ErrorType, TestCaseResult, TestCaseStatus
from .process import OUTPUT_LIMIT_MESSAGE, ExecutionOutcome, OutcomeKind, ProcessRunner, outputs_match
from .toolchains import resolve
from .workspace import WorkspaceManager

log = logging.getLogger(__name__)

COMPILATION_FAILED = 'Compilation failed'


@dataclass
class EvaluationReport:
    results: list[TestCaseResult] = field(default_factory=list)
    compilation_output: str | None = None

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status is TestCaseStatus.PASSED)

    @property
    def execution_time_ms(self) -> int:
        return sum(r.execution_time_ms for r in self.results)


class TestHarness:
    """Compiles a submission once and runs it on every test case in order.

    The result list always has one entry per test case, whatever happens
    to the program.
    """

    __test__ = False

    def __init__(self, workspaces: WorkspaceManager, runner: ProcessRunner):
        self.workspaces = workspaces
        self.runner = runner

    async def evaluate(self, code: str, language: str,
                       test_cases: Sequence[TestCase]) -> EvaluationReport:
        toolchain = resolve(language)
        report = EvaluationReport()

        with self.workspaces.open(toolchain, code) as workspace:
            compiled = await self.runner.compile(workspace, toolchain)
            if not compiled.ok:
                log.info('workspace %s failed to compile', workspace.id)
                report.compilation_output = compiled.stderr or compiled.stdout
                report.results = [
                    TestCaseResult(
                        index=index,
                        input=case.input,
                        expected_output=case.output,
                        status=TestCaseStatus.ERROR,
                        error_type=ErrorType.COMPILATION,
                        error_message=COMPILATION_FAILED,
                    )
                    for index, case in enumerate(test_cases)
                ]
                return report

            for index, case in enumerate(test_cases):
                outcome = await self.runner.run(workspace, toolchain, case.input)
                report.results.append(self._classify(index, case, outcome))

        log.debug('evaluated %d cases for %s: %d passed',
                  len(report.results), toolchain.language_id, report.passed)
        return report

    @staticmethod
    def _classify(index: int, case: TestCase, outcome: ExecutionOutcome) -> TestCaseResult:
        result = TestCaseResult(
            index=index,
            input=case.input,
            expected_output=case.output,
            actual_output=outcome.stdout,
            status=TestCaseStatus.PASSED,
            execution_time_ms=outcome.elapsed_ms,
        )
        if outcome.kind is OutcomeKind.TIMEOUT:
            result.status = TestCaseStatus.TIMEOUT
            result.error_type = ErrorType.TIMEOUT
            result.error_message = 'Time limit exceeded'
        elif outcome.kind is OutcomeKind.RUNTIME_ERROR:
            result.status = TestCaseStatus.ERROR
            result.error_type = ErrorType.RUNTIME
            if outcome.output_limit_exceeded:
                result.error_message = OUTPUT_LIMIT_MESSAGE
            else:
                result.error_message = outcome.stderr or 'Process exited with status %s' % outcome.exit_code
        elif not outputs_match(outcome.stdout, case.output):
            result.status = TestCaseStatus.FAILED
        return result
