from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class TestCase(BaseModel):
    __test__ = False

    input: str = ""
    output: str = ""
    is_hidden: bool = False


class Problem(BaseModel):
    id: str
    title: str = ""
    test_cases: list[TestCase] = Field(default_factory=list)
    total_submissions: int = 0
    successful_submissions: int = 0
    is_active: bool = True


class ContestStatus(str, Enum):
    UPCOMING = "Upcoming"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ContestProblem(BaseModel):
    problem_id: str
    title: str = ""
    points: int = Field(default=100, ge=0)
    attempt_count: int = 0
    solved_count: int = 0
    manual_test_cases: list[TestCase] | None = None


class ProblemAttempt(BaseModel):
    problem_id: str
    attempts: int = 0
    solved: bool = False
    score: int = 0
    last_attempt_time: datetime | None = None


class ContestParticipant(BaseModel):
    user_id: str
    name: str = ""
    score: int = 0
    submissions: int = 0
    last_activity_time: datetime | None = None
    problems_attempted: list[ProblemAttempt] = Field(default_factory=list)

    def attempt_for(self, problem_id: str) -> ProblemAttempt:
        """Return the attempt record for a problem, creating it if needed."""
        for attempt in self.problems_attempted:
            if attempt.problem_id == problem_id:
                return attempt
        attempt = ProblemAttempt(problem_id=problem_id)
        self.problems_attempted.append(attempt)
        return attempt


class ContestAnalytics(BaseModel):
    total_submissions: int = 0
    successful_submissions: int = 0
    average_score: float = 0.0
    participation_rate: float = 0.0


class Contest(BaseModel):
    id: str
    title: str = ""
    status: ContestStatus = ContestStatus.UPCOMING
    start_date: datetime
    end_date: datetime
    problems: list[ContestProblem] = Field(default_factory=list)
    participants: list[ContestParticipant] = Field(default_factory=list)
    analytics: ContestAnalytics = Field(default_factory=ContestAnalytics)
    max_participants: int | None = None
    allowed_languages: list[str] = Field(default_factory=list)

    def is_currently_active(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return self.status == ContestStatus.ACTIVE and self.start_date <= now <= self.end_date

    def find_problem(self, problem_id: str) -> ContestProblem | None:
        for problem in self.problems:
            if problem.problem_id == problem_id:
                return problem
        return None

    def find_participant(self, user_id: str) -> ContestParticipant | None:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def allows_language(self, language_id: str) -> bool:
        if not self.allowed_languages:
            return True
        return language_id in {lang.lower() for lang in self.allowed_languages}

    def refresh_analytics(self) -> None:
        """Recompute the derived analytics figures."""
        if self.participants:
            total = sum(p.score for p in self.participants)
            self.analytics.average_score = total / len(self.participants)
        else:
            self.analytics.average_score = 0.0
        if self.max_participants:
            self.analytics.participation_rate = len(self.participants) / self.max_participants * 100
        else:
            self.analytics.participation_rate = 0.0
