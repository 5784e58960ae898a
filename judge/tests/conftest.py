import os
import sys
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import pytest
from fastapi.testclient import TestClient
import fakeredis.aioredis as fakeredis

from judge import runner
from judge.config import RunnerSettings, clear_settings_cache
import judge.lifespan as lifespan
import judge.main as main


class _AwaitableRedis:
    def __init__(self, client):
        self._client = client

    def __await__(self):
        async def _coro():
            return self._client

        return _coro().__await__()


@pytest.fixture
def temp_root(tmp_path):
    root = tmp_path / "workspaces"
    return str(root)


@pytest.fixture
def runner_settings(temp_root):
    return RunnerSettings(
        temp_root=temp_root,
        compile_timeout_ms=30_000,
        run_timeout_ms=5_000,
        interactive_timeout_ms=5_000,
    )


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def client(monkeypatch, temp_root):
    def fake_redis_constructor(*_args, **_kwargs):
        fake = fakeredis.FakeRedis(decode_responses=True)
        return _AwaitableRedis(fake)

    monkeypatch.setattr(lifespan.redis, "Redis", fake_redis_constructor)
    monkeypatch.setenv("RUNNER_TEMP_ROOT", temp_root)
    monkeypatch.setenv("RUNNER_RUN_TIMEOUT_MS", "5000")
    monkeypatch.setenv("RUNNER_INTERACTIVE_TIMEOUT_MS", "5000")
    clear_settings_cache()
    runner.reset()

    with TestClient(main.app) as c:
        yield c

    clear_settings_cache()
    runner.reset()
