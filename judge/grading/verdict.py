"""Turns per-case results into a submission verdict and score."""
from typing import Sequence

from judge.models.submissions import ErrorType, SubmissionStatus, TestCaseResult, TestCaseStatus


def determine_status(results: Sequence[TestCaseResult]) -> SubmissionStatus:
    """Pick the submission status for a set of case results.

    Compilation errors outrank runtime errors, which outrank timeouts.
    Only when none of those occurred does the pass count decide between
    accepted and wrong answer. An empty result set is never accepted.
    """
    error_types = {r.error_type for r in results}
    if ErrorType.COMPILATION in error_types:
        return SubmissionStatus.COMPILATION_ERROR
    if ErrorType.RUNTIME in error_types:
        return SubmissionStatus.RUNTIME_ERROR
    if ErrorType.TIMEOUT in error_types or any(r.status is TestCaseStatus.TIMEOUT for r in results):
        return SubmissionStatus.TIME_LIMIT_EXCEEDED
    if results and all(r.status is TestCaseStatus.PASSED for r in results):
        return SubmissionStatus.ACCEPTED
    return SubmissionStatus.WRONG_ANSWER


def compute_score(passed: int, total: int, max_score: int) -> int:
    if total <= 0:
        return 0
    return passed * max_score // total
