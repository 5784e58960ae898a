from fastapi import APIRouter

from judge.dependencies import Judge
from judge.models.submissions import QueueStats, Submission, SubmitRequest, SubmitResponse

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("/submit", response_model=SubmitResponse, status_code=202)
async def submit(body: SubmitRequest, judge: Judge) -> SubmitResponse:
    return await judge.submit(body)


@router.get("/stats/queue", response_model=QueueStats)
async def queue_stats(judge: Judge) -> QueueStats:
    return QueueStats(**judge.stats())


@router.get("/{submission_id}", response_model=Submission)
async def get_submission(submission_id: str, judge: Judge) -> Submission:
    return await judge.get_submission(submission_id)
