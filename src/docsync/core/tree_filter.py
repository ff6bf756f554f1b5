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
Tree filter: reduce a materialized source directory to documentation files.

Keeps files whose extension is in the documentation allow-set, deletes
everything else (lockfiles included, whatever their extension), then prunes
directories left empty, deepest first.

The same allow-set is rendered as `find` expressions for workspaces that
live in a remote sandbox, so both workspace kinds share one filter contract.
"""

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, List, Union

from loguru import logger


ALLOWED_EXTENSIONS: FrozenSet[str] = frozenset({'.md', '.mdx', '.yml', '.yaml', '.json'})

EXCLUDED_FILES: FrozenSet[str] = frozenset({
    'package-lock.json',
    'yarn.lock',
    'pnpm-lock.yaml',
    'bun.lockb',
    'composer.lock',
    'Gemfile.lock',
    'Cargo.lock',
    'Pipfile.lock',
    'poetry.lock',
    'uv.lock',
    'go.sum',
})


@dataclass
class FilterStats:
    kept: int = 0
    removed_files: int = 0
    removed_dirs: int = 0


class TreeFilter:
    """
    Documentation allow-list filter.

    Args:
        allowed_extensions: Lower-case extensions (with dot) to keep
        excluded_files: Exact file names to always delete
    """

    def __init__(
        self,
        allowed_extensions: Iterable[str] = ALLOWED_EXTENSIONS,
        excluded_files: Iterable[str] = EXCLUDED_FILES,
    ):
        self.allowed_extensions = frozenset(ext.lower() for ext in allowed_extensions)
        self.excluded_files = frozenset(excluded_files)

    def is_allowed(self, filename: str) -> bool:
        """Check if a file name should be kept"""
        if filename in self.excluded_files:
            return False
        return os.path.splitext(filename)[1].lower() in self.allowed_extensions

    def apply(self, directory: Union[str, Path]) -> FilterStats:
        """
        Filter a local directory in place.

        Safe to re-run, and a file or directory disappearing underneath
        (another filter pass on the same tree) is not an error.

        Returns:
            FilterStats with retained and removed counts
        """
        stats = FilterStats()
        root = Path(directory)
        if not root.is_dir():
            logger.debug(f"Nothing to filter, not a directory: {root}")
            return stats

        # bottom-up so emptied children are gone before their parent is checked
        for current, dirs, files in os.walk(root, topdown=False):
            for name in files:
                path = Path(current) / name
                if self.is_allowed(name) and not path.is_symlink():
                    stats.kept += 1
                    continue
                try:
                    path.unlink()
                    stats.removed_files += 1
                except FileNotFoundError:
                    pass

            for name in dirs:
                path = Path(current) / name
                if path.is_symlink():
                    try:
                        path.unlink()
                        stats.removed_files += 1
                    except FileNotFoundError:
                        pass
                    continue
                try:
                    path.rmdir()
                    stats.removed_dirs += 1
                except FileNotFoundError:
                    pass
                except OSError:
                    # not empty
                    continue

        logger.debug(f"Filtered {root}: kept={stats.kept}, removed_files={stats.removed_files}, removed_dirs={stats.removed_dirs}")
        return stats

    def count(self, directory: Union[str, Path]) -> int:
        """Count documentation files under a local directory"""
        root = Path(directory)
        if not root.is_dir():
            return 0
        return sum(
            1
            for current, _, files in os.walk(root)
            for name in files
            if self.is_allowed(name)
        )

    # ============ Shell rendering (sandbox workspaces) ============

    def _match_expression(self) -> str:
        names = [f"-iname {shlex.quote('*' + ext)}" for ext in sorted(self.allowed_extensions)]
        return r"\( " + " -o ".join(names) + r" \)"

    def _excluded_expression(self) -> str:
        names = [f"-name {shlex.quote(name)}" for name in sorted(self.excluded_files)]
        return r"\( " + " -o ".join(names) + r" \)"

    def shell_commands(self, directory: str) -> List[str]:
        """
        Render the filter as shell commands for a remote workspace.

        Deletes symlinks, disallowed files and lockfiles, then empty
        directories (find -delete is depth-first).
        """
        target = shlex.quote(directory)
        return [
            f"find {target} -type l -delete",
            f"find {target} -type f ! {self._match_expression()} -delete",
            f"find {target} -type f {self._excluded_expression()} -delete",
            f"find {target} -mindepth 1 -type d -empty -delete",
        ]

    def shell_count_command(self, directory: str) -> str:
        target = shlex.quote(directory)
        return (
            f"find {target} -type f {self._match_expression()} "
            f"! {self._excluded_expression()} | wc -l"
        )


DEFAULT_FILTER = TreeFilter()


def filter_directory(directory: Union[str, Path]) -> FilterStats:
    """Apply the default documentation filter to a directory"""
    return DEFAULT_FILTER.apply(directory)


def count_doc_files(directory: Union[str, Path]) -> int:
    return DEFAULT_FILTER.count(directory)
