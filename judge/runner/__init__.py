import hashlib
import logging
import time
from datetime import datetime, UTC
from typing import Any

from .admission import AdmissionController
from .errors import RunnerError, ToolchainConfigError, ToolchainNotFoundError, UnsupportedLanguageError
from .process import ExecutionOutcome, OutcomeKind, ProcessRunner
from .toolchains import ToolchainSpec, missing_executable, resolve

_logger = logging.getLogger("judge.runner")

_execution_log: list[dict[str, Any]] = []
_rate_limits: dict[str, list[float]] = {}
EXECUTION_LOG_MAX = 1000


def check_rate_limit(client_id: str, window_sec: int, max_requests: int) -> bool:
    now = time.time()
    _prune_rate_limits(now, window_sec)

    window = _rate_limits.setdefault(client_id, [])
    if len(window) >= max_requests:
        return False

    window.append(now)
    return True


def _prune_rate_limits(now: float, window_sec: int) -> None:
    """Drop expired timestamps, and clients left with an empty window."""
    for client_id in list(_rate_limits):
        recent = [t for t in _rate_limits[client_id] if now - t < window_sec]
        if recent:
            _rate_limits[client_id] = recent
        else:
            del _rate_limits[client_id]


def _log_execution(client_id: str, language: str, code: str, outcome: ExecutionOutcome) -> None:
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "client_id": client_id,
        "language": language,
        "code_hash": hashlib.sha256(code.encode()).hexdigest()[:16],
        "kind": outcome.kind.value,
        "success": outcome.ok,
        "duration_ms": outcome.elapsed_ms,
        "output_length": len(outcome.stdout),
    }
    _execution_log.append(entry)
    if len(_execution_log) > EXECUTION_LOG_MAX:
        _execution_log.pop(0)

    _logger.info(
        "Interactive execution: client=%s language=%s kind=%s duration=%dms code_hash=%s",
        client_id, language, outcome.kind.value, outcome.elapsed_ms, entry["code_hash"]
    )


async def execute(
    code: str,
    language: str,
    stdin: str,
    *,
    runner: ProcessRunner,
    admission: AdmissionController,
    client_id: str = "unknown",
) -> tuple[ToolchainSpec, ExecutionOutcome]:
    """Compile and run a snippet once under the interactive admission limit.

    Raises:
        UnsupportedLanguageError: for an unknown language.
        ToolchainNotFoundError: if the compiler or interpreter is missing.
    """
    toolchain = resolve(language)
    missing = missing_executable(toolchain)
    if missing is not None:
        raise ToolchainNotFoundError(toolchain.language_id, missing)

    async with admission.slot():
        outcome = await runner.compile_and_run(toolchain, code, stdin)

    _log_execution(client_id, toolchain.language_id, code, outcome)
    return toolchain, outcome


def get_execution_log(limit: int = 50) -> list[dict[str, Any]]:
    return _execution_log[-limit:]


def reset() -> None:
    """Forget rate limit windows and the execution log."""
    _execution_log.clear()
    _rate_limits.clear()


__all__ = [
    "AdmissionController",
    "ExecutionOutcome",
    "OutcomeKind",
    "ProcessRunner",
    "RunnerError",
    "ToolchainConfigError",
    "ToolchainNotFoundError",
    "UnsupportedLanguageError",
    "check_rate_limit",
    "execute",
    "get_execution_log",
    "reset",
]
