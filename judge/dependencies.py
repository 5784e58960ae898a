"""Dependency injection for FastAPI endpoints.

This module provides FastAPI dependencies for the shared judge resources
created during lifespan startup.

Usage in controllers:
    from judge.dependencies import Judge

    @router.get("/submissions/{submission_id}")
    async def get_submission(submission_id: str, judge: Judge):
        return await judge.get_submission(submission_id)
"""

from typing import Annotated

from fastapi import Depends

from judge import state
from judge.errors import ServiceUnavailableError
from judge.grading.service import JudgeService
from judge.runner.admission import AdmissionController
from judge.runner.process import ProcessRunner


def get_judge_service() -> JudgeService:
    """Get the submission judging service.

    Raises:
        ServiceUnavailableError: If the judge workers are not running.
    """
    if state.judge_service is None:
        raise ServiceUnavailableError(detail="Judge service not initialized")
    return state.judge_service


def get_compile_admission() -> AdmissionController:
    if state.compile_admission is None:
        raise ServiceUnavailableError(detail="Compile admission not initialized")
    return state.compile_admission


def get_process_runner() -> ProcessRunner:
    if state.process_runner is None:
        raise ServiceUnavailableError(detail="Process runner not initialized")
    return state.process_runner


Judge = Annotated[JudgeService, Depends(get_judge_service)]
CompileAdmission = Annotated[AdmissionController, Depends(get_compile_admission)]
Runner = Annotated[ProcessRunner, Depends(get_process_runner)]
