from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    ACCEPTED = "accepted"
    WRONG_ANSWER = "wrong_answer"
    COMPILATION_ERROR = "compilation_error"
    RUNTIME_ERROR = "runtime_error"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    MEMORY_LIMIT_EXCEEDED = "memory_limit_exceeded"

    @property
    def is_terminal(self) -> bool:
        return self not in (SubmissionStatus.PENDING, SubmissionStatus.RUNNING)


class TestCaseStatus(str, Enum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    TIMEOUT = "timeout"


class ErrorType(str, Enum):
    COMPILATION = "compilation"
    RUNTIME = "runtime"
    TIMEOUT = "timeout"


class TestCaseResult(BaseModel):
    __test__ = False

    index: int
    input: str
    expected_output: str
    actual_output: str = ""
    status: TestCaseStatus
    error_type: ErrorType | None = None
    execution_time_ms: int = 0
    memory_used_bytes: int = 0
    error_message: str | None = None


class Submission(BaseModel):
    id: str
    user_id: str
    problem_id: str
    contest_id: str | None = None
    code: str
    language: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    total_test_cases: int = 0
    passed_test_cases: int = 0
    score: int = 0
    max_score: int = 100
    test_case_results: list[TestCaseResult] = Field(default_factory=list)
    compilation_output: str | None = None
    execution_time_ms: int = 0
    memory_used_bytes: int = 0
    judge_error: str | None = None
    is_public: bool = True
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    evaluated_at: datetime | None = None


class SubmitRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    problem_id: str = Field(..., min_length=1)
    contest_id: str | None = None
    code: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    is_public: bool = True


class SubmitResponse(BaseModel):
    submission_id: str
    status: SubmissionStatus
    total_test_cases: int
    message: str


class QueueStats(BaseModel):
    name: str
    max_concurrency: int
    active: int
    queued: int
    available: int
    pending_jobs: int
    workers: int
