"""Tests for lifespan management."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import fakeredis.aioredis as fakeredis

from judge import state
from judge.config import clear_settings_cache
from judge.models.submissions import Submission, SubmissionStatus
from judge.store import JudgeStore


class TestLifespanResources:
    """Test LifespanResources dataclass."""

    def test_lifespan_resources_defaults(self):
        from judge.lifespan import LifespanResources

        resources = LifespanResources()
        assert resources.redis_client is None
        assert resources.event_bus is None
        assert resources.store is None
        assert resources.compile_admission is None
        assert resources.judge_admission is None
        assert resources.judge_service is None


class TestInitRedis:
    """Test init_redis function."""

    @pytest.mark.asyncio
    async def test_init_redis_creates_client(self):
        from judge.lifespan import init_redis

        mock_redis_class = MagicMock()
        mock_client = MagicMock(spec=["ping"])
        mock_redis_class.return_value = mock_client

        with patch("judge.lifespan.redis.Redis", mock_redis_class):
            with patch("judge.lifespan.get_settings") as mock_settings:
                mock_settings.return_value.redis.host = "localhost"
                mock_settings.return_value.redis.port = 6379
                mock_settings.return_value.redis.password = ""
                mock_settings.return_value.redis.max_connections = 10
                mock_settings.return_value.redis.pool_timeout_sec = 5.0
                mock_settings.return_value.redis.health_check_interval = 30
                mock_settings.return_value.redis.socket_timeout = 5.0
                mock_settings.return_value.redis.socket_connect_timeout = 5.0
                mock_settings.return_value.redis.retry_on_timeout = True

                result = await init_redis()

                assert result is mock_client
                mock_redis_class.assert_called_once()


class TestSetupAndCleanup:
    """Test setup_resources and cleanup_resources together."""

    @pytest.mark.asyncio
    async def test_setup_wires_state_and_recovers(self, monkeypatch, temp_root):
        from judge.lifespan import cleanup_resources, setup_resources

        monkeypatch.setenv("RUNNER_TEMP_ROOT", temp_root)
        monkeypatch.setenv("ADMISSION_COMPILE_CONCURRENCY", "3")
        monkeypatch.setenv("ADMISSION_JUDGE_CONCURRENCY", "2")
        clear_settings_cache()

        fake = fakeredis.FakeRedis(decode_responses=True)
        store = JudgeStore(fake)
        await store.persist_submission(Submission(
            id="left-behind", user_id="u", problem_id="p", code="x", language="python",
            status=SubmissionStatus.RUNNING,
        ))
        await store.mark_active("left-behind")

        try:
            with patch("judge.lifespan.init_redis", new_callable=AsyncMock, return_value=fake):
                resources = await setup_resources()

            assert state.redis_client is fake
            assert state.judge_service is resources.judge_service
            assert state.compile_admission.max_concurrency == 3
            assert resources.judge_admission.max_concurrency == 2
            assert resources.judge_service.worker_count == 2
            assert resources.process_runner.workspaces.temp_root == temp_root
            recovered = await store.get_submission("left-behind")
            assert recovered.status == SubmissionStatus.RUNTIME_ERROR

            await cleanup_resources(resources)
            assert resources.judge_service.worker_count == 0
            assert state.redis_client is None
            assert state.judge_service is None
            assert state.compile_admission is None
        finally:
            clear_settings_cache()

    @pytest.mark.asyncio
    async def test_cleanup_resources_closes_redis(self):
        from judge.lifespan import LifespanResources, cleanup_resources

        mock_redis = MagicMock()
        mock_redis.aclose = AsyncMock()

        await cleanup_resources(LifespanResources(redis_client=mock_redis))

        mock_redis.aclose.assert_called_once()
