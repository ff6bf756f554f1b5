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

"""Base class of per-source-type content fetchers"""

import posixpath
import time
from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from docsync.core.protocols import Workspace
from docsync.core.tree_filter import DEFAULT_FILTER, TreeFilter
from docsync.models import Source, SyncResult


@dataclass
class FetchOutcome:
    """What a concrete fetcher reports back on success"""
    file_count: int
    version_folder_name: Optional[str] = None
    ref_type: Optional[str] = None
    resolved_ref: Optional[str] = None


class BaseFetcher:
    """
    Template for content fetchers.

    `fetch()` provides the contract shared by every source type: timing,
    and conversion of any exception into a failed SyncResult so the
    orchestrator can move on to the next source.

    Subclass must implement:
    - _fetch(source, workspace, docs_root) -> FetchOutcome
    """

    source_types: tuple = ()

    def __init__(self, tree_filter: Optional[TreeFilter] = None):
        self.tree_filter = tree_filter or DEFAULT_FILTER

    def fetch(self, source: Source, workspace: Workspace, docs_root: str) -> SyncResult:
        start = time.monotonic()
        try:
            outcome = self._fetch(source, workspace, docs_root)
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.error(f"[{source.id}] sync failed after {duration_ms}ms: {e}")
            return SyncResult(
                source_id=source.id,
                label=source.label,
                success=False,
                file_count=0,
                error=str(e) or e.__class__.__name__,
                duration_ms=duration_ms,
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        return SyncResult(
            source_id=source.id,
            label=source.label,
            success=True,
            file_count=outcome.file_count,
            duration_ms=duration_ms,
            version_folder_name=outcome.version_folder_name,
            ref_type=outcome.ref_type,
            resolved_ref=outcome.resolved_ref,
        )

    def _fetch(self, source: Source, workspace: Workspace, docs_root: str) -> FetchOutcome:
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement _fetch()"
        )

    @staticmethod
    def output_dir(docs_root: str, *parts: str) -> str:
        return posixpath.join(docs_root, *parts)


def fetcher_for(fetchers: Dict[str, BaseFetcher], source: Source) -> BaseFetcher:
    """Fetcher registered for the source's type"""
    try:
        return fetchers[source.type]
    except KeyError:
        raise ValueError(f"Unsupported source type: {source.type}")
