"""Per-attempt filesystem workspaces.

Every execution attempt owns a uniquely named slice of the shared temp
root: a dedicated directory for Java (the class file name must match the
entry point), a source file plus executable for everything else.
"""
import logging
import os
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from .toolchains import ToolchainSpec, prepare_source

log = logging.getLogger(__name__)


@dataclass
class Workspace:
    id: str
    language_id: str
    root_path: str
    source_path: str
    workdir: str
    executable_path: str | None = None
    entry_point: str | None = None
    owns_directory: bool = False
    destroyed: bool = False

    def substitutions(self) -> dict[str, str]:
        return {
            'source': self.source_path,
            'binary': self.executable_path or '',
            'workdir': self.workdir,
            'entry': self.entry_point or '',
        }

    def paths(self) -> list[str]:
        """Every filesystem path this workspace may have created."""
        if self.owns_directory:
            return [self.root_path]
        paths = [self.source_path]
        if self.executable_path is not None:
            paths += [self.executable_path, self.executable_path + '.exe']
        return paths


class WorkspaceManager:
    """Allocates and tears down workspaces under a shared temp root."""

    def __init__(self, temp_root: str):
        self.temp_root = os.path.abspath(temp_root)

    def create(self, toolchain: ToolchainSpec, code: str) -> Workspace:
        """Allocate a fresh workspace and write the (possibly synthesized) source."""
        os.makedirs(self.temp_root, exist_ok=True)
        workspace_id = uuid.uuid4().hex
        text, entry = prepare_source(toolchain, code)

        if entry is not None:
            root = os.path.join(self.temp_root, workspace_id)
            os.makedirs(root)
            workspace = Workspace(
                id=workspace_id,
                language_id=toolchain.language_id,
                root_path=root,
                source_path=os.path.join(root, entry + toolchain.source_extension),
                workdir=root,
                entry_point=entry,
                owns_directory=True,
            )
        else:
            root = os.path.join(self.temp_root, workspace_id)
            workspace = Workspace(
                id=workspace_id,
                language_id=toolchain.language_id,
                root_path=root,
                source_path=root + toolchain.source_extension,
                workdir=self.temp_root,
                executable_path=root if toolchain.is_compiled else None,
            )

        try:
            with open(workspace.source_path, 'w', encoding='utf-8') as f_out:
                f_out.write(text)
        except OSError:
            self.destroy(workspace)
            raise
        log.debug('created workspace %s for %s at %s',
                  workspace.id, workspace.language_id, workspace.root_path)
        return workspace

    def destroy(self, workspace: Workspace) -> None:
        """Remove everything the workspace owns.

        Safe to call more than once. Failures are logged, never raised.
        """
        if workspace.destroyed:
            return
        workspace.destroyed = True
        for path in workspace.paths():
            try:
                if os.path.isdir(path) and not os.path.islink(path):
                    shutil.rmtree(path)
                elif os.path.lexists(path):
                    os.unlink(path)
            except OSError as exc:
                log.warning('Cleanup error for workspace %s (%s): %s', workspace.id, path, exc)
        log.debug('destroyed workspace %s', workspace.id)

    @contextmanager
    def open(self, toolchain: ToolchainSpec, code: str) -> Iterator[Workspace]:
        workspace = self.create(toolchain, code)
        try:
            yield workspace
        finally:
            self.destroy(workspace)
