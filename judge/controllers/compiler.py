from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from judge import runner
from judge.config import get_settings
from judge.dependencies import CompileAdmission, Runner
from judge.errors import ConfigurationError, ExecutionTimeoutError, RateLimitedError, ValidationError
from judge.models.compile import CompileRequest, CompileResponse, LanguageInfo, LanguagesResponse
from judge.runner.process import OutcomeKind
from judge.runner.toolchains import TOOLCHAINS, is_available

router = APIRouter(prefix="/compile", tags=["compile"])


def _client_id(request: Request, trust_forwarded_for: bool) -> str:
    forwarded = request.headers.get("x-forwarded-for") if trust_forwarded_for else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("", response_model=CompileResponse, response_model_exclude_none=True)
async def compile_code(
    body: CompileRequest,
    request: Request,
    process_runner: Runner,
    admission: CompileAdmission,
) -> CompileResponse:
    limits = get_settings().rate_limit
    client_id = _client_id(request, limits.trust_forwarded_for)
    if limits.enabled and not runner.check_rate_limit(client_id, limits.window_sec, limits.max_requests):
        raise RateLimitedError(
            detail=f"Rate limit exceeded. Max {limits.max_requests} executions per {limits.window_sec}s"
        )

    try:
        toolchain, outcome = await runner.execute(
            body.code,
            body.lang,
            body.input,
            runner=process_runner,
            admission=admission,
            client_id=client_id,
        )
    except runner.UnsupportedLanguageError as exc:
        raise ValidationError(detail=str(exc), language=body.lang) from exc
    except runner.ToolchainNotFoundError as exc:
        raise ConfigurationError(detail=str(exc), language=exc.language) from exc

    if outcome.kind is OutcomeKind.TIMEOUT:
        raise ExecutionTimeoutError(
            detail="Code execution timed out",
            output=outcome.stdout,
            execution_time_ms=outcome.elapsed_ms,
        )

    response = CompileResponse(
        success=outcome.ok,
        output=outcome.stdout,
        stderr=outcome.stderr,
        language=toolchain.language_id,
        execution_time_ms=outcome.elapsed_ms,
        timestamp=datetime.now(UTC).isoformat(),
    )
    if outcome.kind is OutcomeKind.COMPILE_ERROR:
        response.error = "Compilation error occurred"
    elif outcome.kind is OutcomeKind.RUNTIME_ERROR:
        response.error = "Runtime error occurred"
    return response


@router.get("/languages", response_model=LanguagesResponse)
async def list_languages(admission: CompileAdmission) -> LanguagesResponse:
    languages = [
        LanguageInfo(
            id=spec.language_id,
            name=spec.name,
            aliases=list(spec.aliases),
            compiled=spec.is_compiled,
            available=is_available(spec),
        )
        for spec in TOOLCHAINS.values()
    ]
    return LanguagesResponse(
        languages=languages,
        max_concurrency=admission.max_concurrency,
        active=admission.active,
        queued=admission.queued,
    )


@router.get("/stats")
async def compile_stats(admission: CompileAdmission, limit: int = 50) -> dict[str, Any]:
    return {
        "admission": admission.stats(),
        "recent_executions": runner.get_execution_log(limit),
        "timestamp": datetime.now(UTC).isoformat(),
    }
