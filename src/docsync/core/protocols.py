#!/usr/bin/env python3
"""
Core protocols for the docsync synchronization system.

These protocols define the minimal interface contracts between the
orchestrator and its collaborators. Using Protocol instead of ABC allows for
duck typing: tests pass fakes, and a remote sandbox can stand in for the
local filesystem without sharing a base class.

Design Philosophy:
- Protocol over Inheritance: Leverage Python's structural subtyping
- Minimal Contract: Only require the operations the pipeline calls
- Write once: fetch logic targets the Workspace capability, not a concrete filesystem
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from docsync.core.tree_filter import FilterStats, TreeFilter
from docsync.models import Source, SyncResult, VersionRecord


@dataclass
class CommandResult:
    """Exit status and output of a shell command"""
    exit_code: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@runtime_checkable
class Workspace(Protocol):
    """
    Capability set of a scratch workspace.

    Paths are POSIX strings relative to the workspace root unless absolute.
    Implementations:
    - LocalWorkspace: a directory on the local filesystem
    - SandboxWorkspace: a directory inside a remote execution sandbox
    """

    root: str

    def mkdir(self, path: str) -> None:
        """Create a directory and its parents"""
        ...

    def write_file(self, path: str, content: bytes) -> None:
        """Write a file, creating parent directories"""
        ...

    def read_file(self, path: str) -> bytes:
        ...

    def exists(self, path: str) -> bool:
        ...

    def run_shell(self, command: str, cwd: Optional[str] = None) -> CommandResult:
        ...

    def list_files(self, path: str) -> List[str]:
        """Files under `path`, relative to it, sorted"""
        ...

    def remove(self, path: str) -> None:
        """Recursively delete; a missing path is not an error"""
        ...

    def copy_tree(self, src: str, dst: str, overwrite: bool = True) -> None:
        """Copy the contents of `src` into `dst`; keep existing files when overwrite is False"""
        ...

    def sparse_checkout(self, location: str, ref: str, dest: str, subpath: str = '',
                        token: Optional[str] = None) -> str:
        """Shallow checkout of `subpath` of a repository, returns the content directory"""
        ...

    def filter_tree(self, path: str, tree_filter: TreeFilter) -> FilterStats:
        ...

    def count_files(self, path: str, tree_filter: TreeFilter) -> int:
        ...


@runtime_checkable
class SandboxClient(Protocol):
    """Runs commands inside a remote execution sandbox"""

    def run(self, args: Sequence[str], cwd: Optional[str] = None, stdin: Optional[bytes] = None) -> CommandResult:
        ...


@runtime_checkable
class ContentFetcher(Protocol):
    """
    Materializes one source into a workspace.

    Contract: never raises. Any failure becomes a SyncResult with
    success=False, so one broken source cannot abort its siblings.
    """

    def fetch(self, source: Source, workspace: Workspace, docs_root: str) -> SyncResult:
        ...


@runtime_checkable
class VersionStore(Protocol):
    """Persistence of VersionRecord rows keyed by (source_id, version_folder_name)"""

    def upsert(self, record: VersionRecord) -> None:
        ...

    def get(self, source_id: str, version_folder_name: str) -> Optional[VersionRecord]:
        ...

    def list(self, source_id: Optional[str] = None) -> List[VersionRecord]:
        ...


@runtime_checkable
class CheckpointStore(Protocol):
    """Completed step outputs keyed by (run_id, step_id, input_hash)"""

    def load(self, run_id: str, step_id: str, input_hash: str) -> Optional[Dict[str, Any]]:
        """Stored checkpoint {'output': ...} or None"""
        ...

    def save(self, run_id: str, step_id: str, input_hash: str, output: Any) -> None:
        ...

    def clear(self, run_id: str) -> None:
        ...


__all__ = [
    'CommandResult',
    'Workspace',
    'SandboxClient',
    'ContentFetcher',
    'VersionStore',
    'CheckpointStore',
]
