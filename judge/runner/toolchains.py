"""
Static registry of the languages the judge can compile and run.

Each language is described by an immutable ToolchainSpec holding command
templates. Templates may use the placeholders

    {source}   absolute path of the source file
    {binary}   absolute path of the compiled executable
    {workdir}  directory the process runs in
    {entry}    entry point name (the Java class to launch)

and are expanded by format_command(), which quotes every substituted value
before splitting the command shell-style.
"""
import enum
import re
import shlex
import shutil
import string
from dataclasses import dataclass, field

from .errors import ToolchainConfigError, UnsupportedLanguageError


PLACEHOLDERS = frozenset(['source', 'binary', 'workdir', 'entry'])


class EntryPointStrategy(enum.Enum):
    FIXED = 'fixed'
    EXTRACTED_FROM_SOURCE = 'extracted_from_source'


@dataclass(frozen=True)
class ToolchainSpec:
    """Compile/run description for a single language."""

    language_id: str
    name: str
    source_extension: str
    run_command: str
    compile_command: str | None = None
    entry_point_strategy: EntryPointStrategy = EntryPointStrategy.FIXED
    aliases: tuple[str, ...] = field(default=())

    def __post_init__(self):
        if not re.match('^[a-z][a-z0-9]*$', self.language_id):
            raise ToolchainConfigError('Invalid language ID "%s"' % self.language_id)
        variables = _variables_in_command(self.run_command)
        if self.compile_command is not None:
            variables |= _variables_in_command(self.compile_command)
        for unknown in variables - PLACEHOLDERS:
            raise ToolchainConfigError(
                'Unknown variable "{%s}" used for language %s' % (unknown, self.language_id))

    @property
    def is_compiled(self) -> bool:
        return self.compile_command is not None

    def executables(self) -> list[str]:
        """Programs that must be on PATH for this toolchain to work."""
        commands = [self.compile_command, self.run_command]
        names = []
        for command in commands:
            if command is None:
                continue
            first = shlex.split(command)[0]
            if not _variables_in_command(first) and first not in names:
                names.append(first)
        return names


def _variables_in_command(cmd: str) -> set[str]:
    """List all meta-variables appearing in a string."""
    formatter = string.Formatter()
    return set(name for _, name, _, _ in formatter.parse(cmd) if name is not None)


def format_command(template: str, **values: str) -> list[str]:
    """Expand a command template into an argv list."""
    quoted = {key: shlex.quote(str(value)) for key, value in values.items()}
    return shlex.split(template.format(**quoted))


TOOLCHAINS: dict[str, ToolchainSpec] = {
    spec.language_id: spec for spec in [
        ToolchainSpec('python', 'Python', '.py',
                      run_command='python3 {source}',
                      aliases=('py',)),
        ToolchainSpec('javascript', 'JavaScript', '.js',
                      run_command='node {source}',
                      aliases=('js', 'node')),
        ToolchainSpec('java', 'Java', '.java',
                      compile_command='javac {source}',
                      run_command='java -cp {workdir} {entry}',
                      entry_point_strategy=EntryPointStrategy.EXTRACTED_FROM_SOURCE),
        ToolchainSpec('cpp', 'C++', '.cpp',
                      compile_command='g++ {source} -o {binary}',
                      run_command='{binary}',
                      aliases=('c++',)),
        ToolchainSpec('c', 'C', '.c',
                      compile_command='gcc {source} -o {binary}',
                      run_command='{binary}'),
        ToolchainSpec('go', 'Go', '.go',
                      compile_command='go build -o {binary} {source}',
                      run_command='{binary}'),
        ToolchainSpec('ruby', 'Ruby', '.rb',
                      run_command='ruby {source}',
                      aliases=('rb',)),
        ToolchainSpec('php', 'PHP', '.php',
                      run_command='php {source}'),
    ]
}

_ALIASES: dict[str, str] = {
    alias: spec.language_id
    for spec in TOOLCHAINS.values()
    for alias in spec.aliases
}


def supported_languages() -> list[str]:
    return list(TOOLCHAINS)


def resolve(language_id: str) -> ToolchainSpec:
    """Look up the toolchain for a language identifier or alias.

    Raises:
        UnsupportedLanguageError: if no toolchain matches.
    """
    if not isinstance(language_id, str):
        raise UnsupportedLanguageError(repr(language_id), supported_languages())
    key = language_id.strip().lower()
    key = _ALIASES.get(key, key)
    spec = TOOLCHAINS.get(key)
    if spec is None:
        raise UnsupportedLanguageError(language_id, supported_languages())
    return spec


def is_available(spec: ToolchainSpec) -> bool:
    """Check that every binary the toolchain invokes is on PATH."""
    return all(shutil.which(name) is not None for name in spec.executables())


def missing_executable(spec: ToolchainSpec) -> str | None:
    for name in spec.executables():
        if shutil.which(name) is None:
            return name
    return None


_BLOCK_COMMENT = re.compile(r'/\*[\s\S]*?\*/')
_LINE_COMMENT = re.compile(r'//.*$', re.MULTILINE)
_PUBLIC_CLASS = re.compile(r'public\s+class\s+(\w+)')
_ANY_CLASS = re.compile(r'(?:^|\s)class\s+(\w+)')

JAVA_FALLBACK_CLASS = 'Main'


def derive_entry_point(source: str) -> str | None:
    """Name of the class a Java program should be launched through.

    Comments are ignored. A public class wins over any other class
    declaration; None means the source declares no class at all.
    """
    stripped = _LINE_COMMENT.sub('', _BLOCK_COMMENT.sub('', source))
    match = _PUBLIC_CLASS.search(stripped) or _ANY_CLASS.search(stripped)
    return match.group(1) if match else None


def synthesize_entry_point(source: str) -> str:
    """Wrap bare Java statements in a runnable Main class."""
    return (
        'public class %s {\n'
        '    public static void main(String[] args) {\n'
        '        %s\n'
        '    }\n'
        '}\n' % (JAVA_FALLBACK_CLASS, source)
    )


def prepare_source(spec: ToolchainSpec, source: str) -> tuple[str, str | None]:
    """Return the text to write and the entry point for a toolchain.

    Only toolchains extracting their entry point from the source get a
    non-None entry point.
    """
    if spec.entry_point_strategy is EntryPointStrategy.EXTRACTED_FROM_SOURCE:
        entry = derive_entry_point(source)
        if entry is None:
            return synthesize_entry_point(source), JAVA_FALLBACK_CLASS
        return source, entry
    return source, None
