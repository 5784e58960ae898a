from typing import Optional

import redis.asyncio as redis

from judge.grading.service import JudgeService
from judge.runner.admission import AdmissionController
from judge.runner.process import ProcessRunner
from judge.store import JudgeStore

# Global runtime state initialized in lifespan.setup_resources
redis_client: Optional[redis.Redis] = None
store: Optional[JudgeStore] = None
judge_service: Optional[JudgeService] = None
compile_admission: Optional[AdmissionController] = None
process_runner: Optional[ProcessRunner] = None
