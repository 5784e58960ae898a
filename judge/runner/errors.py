"""Exceptions raised by the execution pipeline.

Only faults that are not a property of the submitted program are raised.
Compile errors, runtime errors, timeouts and oversized output are reported
through ExecutionOutcome.kind instead.
"""


class RunnerError(Exception):
    """Base class for execution pipeline errors."""


class ToolchainConfigError(RunnerError):
    """A toolchain definition is malformed."""


class UnsupportedLanguageError(RunnerError):
    """No toolchain is registered for the requested language."""

    def __init__(self, language: str, supported: list[str]) -> None:
        self.language = language
        self.supported = supported
        super().__init__(
            "Unsupported language %r. Supported languages: %s" % (language, ", ".join(supported))
        )


class ToolchainNotFoundError(RunnerError):
    """The compiler or interpreter binary is not installed on the host."""

    def __init__(self, language: str, executable: str) -> None:
        self.language = language
        self.executable = executable
        super().__init__("Compiler/interpreter for %s not found on system (%s)" % (language, executable))
