"""
Compile and run steps for a workspace.

Each step is a separate process with its own wall-clock budget and its own
cap on captured output. A process that outlives its budget is killed
together with its whole process group.
"""
import asyncio
import enum
import logging
import os
import signal
import time
from dataclasses import dataclass

from ..config import RunnerSettings
from .errors import ToolchainNotFoundError
from .toolchains import ToolchainSpec, format_command
from .workspace import Workspace, WorkspaceManager

log = logging.getLogger(__name__)

OUTPUT_LIMIT_MESSAGE = 'Output limit exceeded'

_CHUNK = 64 * 1024


class OutcomeKind(str, enum.Enum):
    SUCCESS = 'success'
    COMPILE_ERROR = 'compile_error'
    RUNTIME_ERROR = 'runtime_error'
    TIMEOUT = 'timeout'


@dataclass
class ExecutionOutcome:
    kind: OutcomeKind
    stdout: str = ''
    stderr: str = ''
    elapsed_ms: int = 0
    exit_code: int | None = None
    output_limit_exceeded: bool = False

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


def outputs_match(actual: str, expected: str) -> bool:
    """Exact comparison after trimming surrounding whitespace."""
    return actual.strip() == expected.strip()


async def spawn(argv: list[str], *, language: str, cwd: str, timeout_ms: int,
                max_output_bytes: int, stdin_text: str | None = None) -> ExecutionOutcome:
    """Run argv to completion, its timeout, or its output cap.

    Raises:
        ToolchainNotFoundError: if argv[0] cannot be found.
    """
    log.debug('run "%s" cwd=%s timeout=%dms', ' '.join(argv), cwd, timeout_ms)
    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if stdin_text is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            start_new_session=True,
        )
    except FileNotFoundError as exc:
        raise ToolchainNotFoundError(language, argv[0]) from exc

    stdout = bytearray()
    stderr = bytearray()
    overflow = False

    def kill():
        if proc.returncode is None:
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                log.debug('process %d exited before it could be killed', proc.pid)

    async def pump(stream, sink):
        nonlocal overflow
        while True:
            chunk = await stream.read(_CHUNK)
            if not chunk:
                return
            room = max_output_bytes - len(sink)
            if len(chunk) > room:
                sink.extend(chunk[:room])
                overflow = True
                kill()
                return
            sink.extend(chunk)

    async def feed():
        if proc.stdin is None:
            return
        try:
            if stdin_text:
                proc.stdin.write(stdin_text.encode('utf-8'))
                await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            log.debug('process %d exited before reading all of its input', proc.pid)
        finally:
            proc.stdin.close()

    async def communicate():
        await asyncio.gather(feed(), pump(proc.stdout, stdout), pump(proc.stderr, stderr))
        return await proc.wait()

    timed_out = False
    try:
        await asyncio.wait_for(communicate(), timeout=timeout_ms / 1000.0)
    except asyncio.TimeoutError:
        timed_out = True
        kill()
    finally:
        if proc.returncode is None:
            kill()
            await proc.wait()

    elapsed_ms = int((time.monotonic() - start) * 1000)
    err_text = stderr.decode('utf-8', 'replace')
    if timed_out:
        kind = OutcomeKind.TIMEOUT
    elif overflow or proc.returncode != 0:
        kind = OutcomeKind.RUNTIME_ERROR
    else:
        kind = OutcomeKind.SUCCESS
    if overflow and not timed_out:
        err_text = (err_text.rstrip('\n') + '\n' if err_text else '') + OUTPUT_LIMIT_MESSAGE

    log.debug('"%s" finished: %s exit=%s in %dms', argv[0], kind.value, proc.returncode, elapsed_ms)
    return ExecutionOutcome(
        kind=kind,
        stdout=stdout.decode('utf-8', 'replace'),
        stderr=err_text,
        elapsed_ms=elapsed_ms,
        exit_code=proc.returncode,
        output_limit_exceeded=overflow,
    )


class ProcessRunner:
    """Runs the compile and run steps of a toolchain inside a workspace."""

    def __init__(self, settings: RunnerSettings, workspaces: WorkspaceManager):
        self.settings = settings
        self.workspaces = workspaces

    async def compile(self, workspace: Workspace, toolchain: ToolchainSpec) -> ExecutionOutcome:
        """Compile the workspace source, if the language needs it.

        Any failure, including running out of time or output, is a
        compile error. The diagnostics are in the outcome's stderr.
        """
        if toolchain.compile_command is None:
            return ExecutionOutcome(kind=OutcomeKind.SUCCESS)

        argv = format_command(toolchain.compile_command, **workspace.substitutions())
        outcome = await spawn(argv,
                              language=toolchain.language_id,
                              cwd=workspace.workdir,
                              timeout_ms=self.settings.compile_timeout_ms,
                              max_output_bytes=self.settings.compile_max_output_bytes)
        if outcome.ok:
            if outcome.stderr.strip():
                log.info('Compilation warnings for workspace %s: %s', workspace.id, outcome.stderr.strip())
            return outcome

        if outcome.kind is OutcomeKind.TIMEOUT:
            outcome.stderr = (outcome.stderr + '\n' if outcome.stderr else '') + \
                'Compilation timed out after %dms' % self.settings.compile_timeout_ms
        elif not outcome.stderr.strip():
            outcome.stderr = outcome.stdout or 'Compiler exited with status %s' % outcome.exit_code
        outcome.kind = OutcomeKind.COMPILE_ERROR
        return outcome

    async def run(self, workspace: Workspace, toolchain: ToolchainSpec, stdin: str | None = None,
                  time_budget_ms: int | None = None,
                  max_output_bytes: int | None = None) -> ExecutionOutcome:
        """Run an already compiled workspace once with the given input."""
        argv = format_command(toolchain.run_command, **workspace.substitutions())
        return await spawn(argv,
                           language=toolchain.language_id,
                           cwd=workspace.workdir,
                           timeout_ms=time_budget_ms or self.settings.run_timeout_ms,
                           max_output_bytes=max_output_bytes or self.settings.run_max_output_bytes,
                           stdin_text=stdin if stdin is not None else '')

    async def compile_and_run(self, toolchain: ToolchainSpec, code: str,
                              stdin: str = '') -> ExecutionOutcome:
        """One-shot compile and run used for interactive requests.

        The workspace never outlives the call.
        """
        with self.workspaces.open(toolchain, code) as workspace:
            compiled = await self.compile(workspace, toolchain)
            if not compiled.ok:
                return compiled
            outcome = await self.run(workspace, toolchain, stdin,
                                     time_budget_ms=self.settings.interactive_timeout_ms,
                                     max_output_bytes=self.settings.interactive_max_output_bytes)
            outcome.elapsed_ms += compiled.elapsed_ms
            return outcome
