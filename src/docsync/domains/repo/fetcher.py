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

"""RepoFetcher: sync git repository sources (full tree or README only)"""

import posixpath
from typing import Callable, Optional

from loguru import logger

from docsync.core.fetcher import BaseFetcher, FetchOutcome
from docsync.core.protocols import Workspace
from docsync.core.tree_filter import TreeFilter
from docsync.models import (
    AdditionalMerge,
    RepoSource,
    SOURCE_TYPE_README,
    SOURCE_TYPE_REPO,
    version_folder_name,
)
from docsync.tools.github_client import GitHubClient


README_FILE = 'README.md'

# scratch clones live outside the docs tree so they are never pushed
CHECKOUT_DIR = '.checkouts'


class RepoFetcher(BaseFetcher):
    """
    Fetch repository sources into `<docs_root>/<output_folder>/<version_folder>`.

    Full-tree sources are sparse-checked out at the resolved ref, copied,
    filtered, then enriched by their additional merges (never overwriting).
    Readme-only sources download README.md from the raw content host.
    """

    source_types = (SOURCE_TYPE_REPO, SOURCE_TYPE_README)

    def __init__(
        self,
        github: GitHubClient,
        token_for: Optional[Callable[[str], Optional[str]]] = None,
        tree_filter: Optional[TreeFilter] = None,
    ):
        """
        Args:
            github: Client used for release lookups and raw downloads
            token_for: Maps a source id to the token used to read it
            tree_filter: Documentation filter (default allow-set when None)
        """
        super().__init__(tree_filter)
        self.github = github
        self.token_for = token_for or (lambda source_id: None)

    def resolve_ref(self, source: RepoSource, github: GitHubClient) -> str:
        """Configured ref, or the latest release tag for ref_type='release' + ref='latest'"""
        if source.wants_latest_release:
            tag = github.get_latest_release_tag(source.location)
            logger.info(f"[{source.id}] latest release of {source.location}: {tag}")
            return tag
        return source.ref

    def _fetch(self, source: RepoSource, workspace: Workspace, docs_root: str) -> FetchOutcome:
        token = self.token_for(source.id)
        github = self.github.with_token(token)

        ref = self.resolve_ref(source, github)
        version_folder = version_folder_name(source.ref_type, ref)
        target = self.output_dir(docs_root, source.output_folder, version_folder)

        # start from an empty folder so a retried fetch leaves no leftovers
        workspace.remove(target)
        workspace.mkdir(target)

        if source.type == SOURCE_TYPE_README:
            file_count = self._sync_readme(source, ref, github, workspace, target)
        else:
            file_count = self._sync_full_tree(source, ref, token, workspace, target)

        logger.info(f"[{source.id}] {file_count} file(s) in {target}")
        return FetchOutcome(
            file_count=file_count,
            version_folder_name=version_folder,
            ref_type=source.ref_type,
            resolved_ref=ref,
        )

    def _sync_readme(self, source: RepoSource, ref: str, github: GitHubClient,
                     workspace: Workspace, target: str) -> int:
        content = github.fetch_raw_file(source.location, ref, README_FILE)
        workspace.write_file(posixpath.join(target, README_FILE), content)
        return 1

    def _sync_full_tree(self, source: RepoSource, ref: str, token: Optional[str],
                        workspace: Workspace, target: str) -> int:
        self._checkout_and_copy(
            workspace, source.id, 0, source.location, ref, source.content_subpath, token, target, overwrite=True,
        )
        workspace.filter_tree(target, self.tree_filter)

        for index, merge in enumerate(source.additional_merges, 1):
            self._merge(source, merge, index, token, workspace, target)

        count = workspace.count_files(target, self.tree_filter)
        if count == 0:
            logger.warning(
                f"[{source.id}] {source.location} (contentPath: {source.content_subpath or '.'}) produced 0 doc files "
                f"at '{ref}', check that the ref and path contain documentation files"
            )
        return count

    def _merge(self, source: RepoSource, merge: AdditionalMerge, index: int, token: Optional[str],
               workspace: Workspace, target: str) -> None:
        """Merge one additional repository; failures are logged and skipped"""
        try:
            self._checkout_and_copy(
                workspace, source.id, index, merge.location, merge.ref, merge.content_subpath, token, target,
                overwrite=False,
            )
            workspace.filter_tree(target, self.tree_filter)
            logger.info(f"[{source.id}] merged {merge.location}@{merge.ref}")
        except Exception as e:
            logger.warning(f"[{source.id}] additional merge failed for {merge.location}: {e}")

    def _checkout_and_copy(self, workspace: Workspace, source_id: str, index: int, location: str, ref: str,
                           subpath: str, token: Optional[str], target: str, overwrite: bool) -> None:
        scratch = posixpath.join(CHECKOUT_DIR, f"{source_id}-{index}")
        try:
            content_dir = workspace.sparse_checkout(location, ref, scratch, subpath.strip('/'), token=token)
            workspace.copy_tree(content_dir, target, overwrite=overwrite)
        finally:
            workspace.remove(scratch)
