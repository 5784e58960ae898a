"""Tests for verdict and score computation."""

from judge.grading.verdict import compute_score, determine_status
from judge.models.submissions import ErrorType, SubmissionStatus, TestCaseResult, TestCaseStatus


def _result(status, error_type=None, index=0):
    return TestCaseResult(index=index, input="", expected_output="", status=status, error_type=error_type)


PASSED = _result(TestCaseStatus.PASSED)
FAILED = _result(TestCaseStatus.FAILED)
RUNTIME = _result(TestCaseStatus.ERROR, ErrorType.RUNTIME)
TIMEOUT = _result(TestCaseStatus.TIMEOUT, ErrorType.TIMEOUT)
COMPILATION = _result(TestCaseStatus.ERROR, ErrorType.COMPILATION)


class TestDetermineStatus:
    """Test status priority."""

    def test_all_passed_is_accepted(self):
        assert determine_status([PASSED, PASSED]) == SubmissionStatus.ACCEPTED

    def test_any_failure_is_wrong_answer(self):
        assert determine_status([PASSED, FAILED]) == SubmissionStatus.WRONG_ANSWER

    def test_compilation_beats_everything(self):
        assert determine_status([RUNTIME, TIMEOUT, COMPILATION]) == SubmissionStatus.COMPILATION_ERROR

    def test_runtime_beats_timeout(self):
        assert determine_status([PASSED, TIMEOUT, RUNTIME]) == SubmissionStatus.RUNTIME_ERROR

    def test_timeout_beats_wrong_answer(self):
        assert determine_status([FAILED, TIMEOUT]) == SubmissionStatus.TIME_LIMIT_EXCEEDED

    def test_empty_results_not_accepted(self):
        assert determine_status([]) == SubmissionStatus.WRONG_ANSWER


class TestComputeScore:
    """Test proportional scoring."""

    def test_full_and_zero(self):
        assert compute_score(3, 3, 100) == 100
        assert compute_score(0, 3, 100) == 0

    def test_rounds_down(self):
        assert compute_score(1, 3, 100) == 33
        assert compute_score(2, 3, 100) == 66

    def test_monotonic_in_passed(self):
        scores = [compute_score(p, 7, 250) for p in range(8)]
        assert scores == sorted(scores)
        assert scores[-1] == 250

    def test_no_cases(self):
        assert compute_score(0, 0, 100) == 0
