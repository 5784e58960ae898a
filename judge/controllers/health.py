from typing import Any

from fastapi import APIRouter

from judge import state

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, Any]:
    redis_status = "disconnected"
    if state.redis_client:
        try:
            await state.redis_client.ping()
            redis_status = "healthy"
        except Exception:
            redis_status = "unhealthy"

    workers = state.judge_service.worker_count if state.judge_service else 0
    return {"status": "ok", "redis": redis_status, "judge_workers": workers}
