"""Startup and shutdown of the shared judge resources."""

import logging
from dataclasses import dataclass

import redis.asyncio as redis
from redis.asyncio import BlockingConnectionPool as RedisConnectionPool

from judge import state
from judge.bus import EventBus
from judge.config import Settings, get_settings
from judge.grading.service import JudgeService
from judge.grading.statistics import StatisticsUpdater
from judge.runner.admission import AdmissionController
from judge.runner.harness import TestHarness
from judge.runner.process import ProcessRunner
from judge.runner.workspace import WorkspaceManager
from judge.store import JudgeStore

logger = logging.getLogger(__name__)


@dataclass
class LifespanResources:
    """Container for resources initialized during lifespan."""

    redis_client: redis.Redis | None = None
    event_bus: EventBus | None = None
    store: JudgeStore | None = None
    compile_admission: AdmissionController | None = None
    judge_admission: AdmissionController | None = None
    process_runner: ProcessRunner | None = None
    judge_service: JudgeService | None = None


async def init_redis() -> redis.Redis:
    """Initialize Redis connection with connection pool.

    Returns:
        Configured Redis client.
    """
    settings = get_settings()

    redis_pool = RedisConnectionPool(
        host=settings.redis.host,
        port=settings.redis.port,
        password=settings.redis.password if settings.redis.password else None,
        max_connections=settings.redis.max_connections,
        timeout=settings.redis.pool_timeout_sec,
        health_check_interval=settings.redis.health_check_interval,
        socket_timeout=settings.redis.socket_timeout,
        socket_connect_timeout=settings.redis.socket_connect_timeout,
        retry_on_timeout=settings.redis.retry_on_timeout,
    )

    candidate_client = redis.Redis(connection_pool=redis_pool, decode_responses=True)
    if hasattr(candidate_client, "__await__"):
        redis_client = await candidate_client
    else:
        redis_client = candidate_client
    return redis_client


def build_judge_service(
    settings: Settings,
    store: JudgeStore,
    runner: ProcessRunner,
    admission: AdmissionController,
    bus: EventBus | None = None,
) -> JudgeService:
    harness = TestHarness(runner.workspaces, runner)
    return JudgeService(
        store=store,
        harness=harness,
        admission=admission,
        statistics=StatisticsUpdater(store),
        bus=bus,
        settings=settings.judge,
    )


async def setup_resources() -> LifespanResources:
    """Set up all shared resources and start the judge workers.

    Returns:
        LifespanResources containing all initialized resources.
    """
    settings = get_settings()
    resources = LifespanResources()

    resources.redis_client = await init_redis()
    resources.event_bus = EventBus(resources.redis_client)
    resources.store = JudgeStore(resources.redis_client)

    resources.compile_admission = AdmissionController(settings.admission.compile_concurrency, name="compile")
    resources.judge_admission = AdmissionController(settings.admission.judge_concurrency, name="judge")
    resources.process_runner = ProcessRunner(settings.runner, WorkspaceManager(settings.runner.temp_root))
    resources.judge_service = build_judge_service(
        settings,
        resources.store,
        resources.process_runner,
        resources.judge_admission,
        resources.event_bus,
    )

    await resources.judge_service.recover_stranded()
    resources.judge_service.start()

    state.redis_client = resources.redis_client
    state.store = resources.store
    state.judge_service = resources.judge_service
    state.compile_admission = resources.compile_admission
    state.process_runner = resources.process_runner

    logger.info(
        "Judge ready: compile slots=%d, judge slots=%d, workspaces under %s",
        settings.admission.compile_concurrency,
        settings.admission.judge_concurrency,
        settings.runner.temp_root,
    )
    return resources


async def cleanup_resources(resources: LifespanResources) -> None:
    """Clean up all resources on shutdown.

    Args:
        resources: The resources to clean up.
    """
    if resources.judge_service:
        await resources.judge_service.stop()

    if resources.redis_client:
        aclose = getattr(resources.redis_client, "aclose", None)
        if callable(aclose):
            await aclose()
        else:
            close = getattr(resources.redis_client, "close", None)
            if callable(close):
                close()

    state.redis_client = None
    state.store = None
    state.judge_service = None
    state.compile_admission = None
    state.process_runner = None
