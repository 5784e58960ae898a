from typing import Literal, TypedDict


class SubmissionEvent(TypedDict):
    type: Literal["submission_status"]
    submission_id: str
    status: str
    passed: int
    total: int
    score: int
    timestamp: str
