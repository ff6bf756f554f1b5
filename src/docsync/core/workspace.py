# Copyright 2021-present StarRocks, Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Scratch workspaces: where sources are materialized before the push.

Two interchangeable implementations of the Workspace protocol:
- LocalWorkspace: plain directory, git through GitPython
- SandboxWorkspace: directory inside a remote execution sandbox, every
  operation rendered as a shell command sent through a SandboxClient
"""

import base64
import os
import posixpath
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from docsync.core.protocols import CommandResult
from docsync.core.tree_filter import FilterStats, TreeFilter
from docsync.errors import SourceSyncError
from docsync.tools.git_operator import GitOperator, authenticated_repo_url, redact


class LocalWorkspace:
    """Workspace rooted in a local directory"""

    def __init__(self, root: str):
        self.root = str(Path(root).resolve())
        logger.debug(f"LocalWorkspace initialized: root={self.root}")

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else Path(self.root) / p

    def mkdir(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: str, content: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def read_file(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def run_shell(self, command: str, cwd: Optional[str] = None) -> CommandResult:
        completed = subprocess.run(
            command,
            shell=True,
            cwd=str(self._resolve(cwd)) if cwd else self.root,
            capture_output=True,
            text=True,
        )
        return CommandResult(completed.returncode, completed.stdout, completed.stderr)

    def list_files(self, path: str) -> List[str]:
        base = self._resolve(path)
        if not base.is_dir():
            return []
        files = []
        for current, _, names in os.walk(base):
            for name in names:
                full = Path(current) / name
                if full.is_file() and not full.is_symlink():
                    files.append(full.relative_to(base).as_posix())
        return sorted(files)

    def remove(self, path: str) -> None:
        target = self._resolve(path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target, ignore_errors=True)
        else:
            try:
                target.unlink()
            except FileNotFoundError:
                pass

    def copy_tree(self, src: str, dst: str, overwrite: bool = True) -> None:
        src_path = self._resolve(src)
        dst_path = self._resolve(dst)
        dst_path.mkdir(parents=True, exist_ok=True)

        copied = skipped = 0
        for current, dirs, names in os.walk(src_path):
            # never follow links out of the checkout
            dirs[:] = [d for d in dirs if not (Path(current) / d).is_symlink()]
            for name in names:
                source_file = Path(current) / name
                if source_file.is_symlink():
                    continue
                target = dst_path / source_file.relative_to(src_path)
                if target.exists() and not overwrite:
                    skipped += 1
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source_file, target)
                copied += 1
        logger.debug(f"Copied {copied} file(s) {src_path} -> {dst_path} (kept {skipped} existing)")

    def sparse_checkout(self, location: str, ref: str, dest: str, subpath: str = '',
                        token: Optional[str] = None) -> str:
        content_dir = GitOperator(token).sparse_checkout(location, ref, str(self._resolve(dest)), subpath)
        return str(content_dir)

    def filter_tree(self, path: str, tree_filter: TreeFilter) -> FilterStats:
        return tree_filter.apply(self._resolve(path))

    def count_files(self, path: str, tree_filter: TreeFilter) -> int:
        return tree_filter.count(self._resolve(path))


class SandboxWorkspace:
    """
    Workspace inside a remote sandbox.

    Args:
        client: Executes argv lists in the sandbox
        root: Absolute workspace directory inside the sandbox
    """

    def __init__(self, client, root: str):
        self.client = client
        self.root = root
        logger.debug(f"SandboxWorkspace initialized: root={self.root}")

    def _resolve(self, path: str) -> str:
        return path if posixpath.isabs(path) else posixpath.join(self.root, path)

    def _run(self, args: Sequence[str], stdin: Optional[bytes] = None) -> CommandResult:
        result = self.client.run(list(args), cwd=None, stdin=stdin)
        if not result.ok:
            raise RuntimeError(f"Sandbox command failed ({result.exit_code}): {' '.join(args)}: {result.stderr.strip()}")
        return result

    def mkdir(self, path: str) -> None:
        self._run(['mkdir', '-p', self._resolve(path)])

    def write_file(self, path: str, content: bytes) -> None:
        target = self._resolve(path)
        script = f"mkdir -p {shlex.quote(posixpath.dirname(target))} && cat > {shlex.quote(target)}"
        self._run(['sh', '-c', script], stdin=content)

    def read_file(self, path: str) -> bytes:
        result = self._run(['base64', self._resolve(path)])
        return base64.b64decode(result.stdout)

    def exists(self, path: str) -> bool:
        return self.run_shell(f"test -e {shlex.quote(self._resolve(path))}").ok

    def run_shell(self, command: str, cwd: Optional[str] = None) -> CommandResult:
        return self.client.run(['sh', '-c', command], cwd=self._resolve(cwd) if cwd else self.root)

    def list_files(self, path: str) -> List[str]:
        base = self._resolve(path)
        result = self.run_shell(f"test -d {shlex.quote(base)} && cd {shlex.quote(base)} && find . -type f")
        if not result.ok:
            return []
        files = [line[2:] if line.startswith('./') else line for line in result.stdout.splitlines() if line.strip()]
        return sorted(files)

    def remove(self, path: str) -> None:
        self._run(['rm', '-rf', self._resolve(path)])

    def copy_tree(self, src: str, dst: str, overwrite: bool = True) -> None:
        source = self._resolve(src).rstrip('/')
        target = shlex.quote(self._resolve(dst))
        if overwrite:
            script = f"mkdir -p {target} && cp -R {shlex.quote(source + '/.')} {target}"
        else:
            # `cp -n` exit status differs across coreutils releases
            script = (
                f"mkdir -p {target} && cd {shlex.quote(source)} && find . -type f | "
                f"while IFS= read -r f; do [ -e {target}/\"$f\" ] || "
                f"{{ mkdir -p {target}/\"$(dirname \"$f\")\" && cp \"$f\" {target}/\"$f\"; }}; done"
            )
        self._run(['sh', '-c', script])

    def sparse_checkout(self, location: str, ref: str, dest: str, subpath: str = '',
                        token: Optional[str] = None) -> str:
        target = self._resolve(dest)
        url = authenticated_repo_url(location, token)
        clone = (
            f"rm -rf {shlex.quote(target)} && "
            f"git clone --depth 1 --single-branch --branch {shlex.quote(ref)} "
            f"--filter=blob:none --sparse {shlex.quote(url)} {shlex.quote(target)} && "
            f"git -C {shlex.quote(target)} sparse-checkout set {shlex.quote(subpath or '.')}"
        )
        result = self.run_shell(clone)
        if not result.ok:
            raise SourceSyncError(f"Failed to clone repository {location}", why=redact(result.stderr, token))

        content_dir = posixpath.join(target, subpath) if subpath else target
        if not self.run_shell(f"test -d {shlex.quote(content_dir)}").ok:
            raise SourceSyncError(
                f"Content path not found in {location}@{ref}",
                why=f"'{subpath}' does not exist or is not a directory",
            )
        self.run_shell(f"rm -rf {shlex.quote(posixpath.join(target, '.git'))}")
        return content_dir

    def filter_tree(self, path: str, tree_filter: TreeFilter) -> FilterStats:
        target = self._resolve(path)
        for command in tree_filter.shell_commands(target):
            result = self.run_shell(command)
            if not result.ok:
                logger.warning(f"Filter command failed in sandbox: {command}: {result.stderr.strip()}")
        return FilterStats(kept=self.count_files(path, tree_filter))

    def count_files(self, path: str, tree_filter: TreeFilter) -> int:
        result = self.run_shell(tree_filter.shell_count_command(self._resolve(path)))
        try:
            return int(result.stdout.strip() or 0)
        except ValueError:
            return 0


class DockerSandboxClient:
    """SandboxClient executing commands in a running container via `docker exec`"""

    def __init__(self, container: str, docker_bin: str = 'docker'):
        self.container = container
        self.docker_bin = docker_bin

    def run(self, args: Sequence[str], cwd: Optional[str] = None, stdin: Optional[bytes] = None) -> CommandResult:
        command = [self.docker_bin, 'exec', '-i']
        if cwd:
            command += ['-w', cwd]
        command += [self.container, *args]
        completed = subprocess.run(command, input=stdin, capture_output=True)
        return CommandResult(
            completed.returncode,
            completed.stdout.decode('utf-8', errors='replace'),
            completed.stderr.decode('utf-8', errors='replace'),
        )
