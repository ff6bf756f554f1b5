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

"""SnapshotCommitter: publish the workspace content tree as one commit"""

import posixpath
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from loguru import logger

from docsync.core.protocols import Workspace
from docsync.errors import GitHubAPIError
from docsync.models import PushResult, SnapshotConfig, TreeEntry
from docsync.tools.github_client import GitHubClient


DEFAULT_BLOB_SIZE_THRESHOLD = 100 * 1024


class SnapshotCommitter:
    """
    Commit every file under a workspace content root to a snapshot branch.

    Sequence: collect files -> resolve base -> blobs and entries -> tree ->
    commit -> ref update. The ref update is the only externally visible
    write; objects created before a failure are unreferenced orphans.
    The ref is never force-updated: a rejected fast-forward is returned as
    a failure.
    """

    def __init__(self, github: GitHubClient, blob_size_threshold: int = DEFAULT_BLOB_SIZE_THRESHOLD,
                 blob_workers: int = 1):
        """
        Args:
            github: Client authenticated with write access to the snapshot repo
            blob_size_threshold: Files of this size or larger are uploaded as blobs
            blob_workers: Concurrent blob uploads (1 uploads sequentially)
        """
        self.github = github
        self.blob_size_threshold = blob_size_threshold
        self.blob_workers = max(1, blob_workers)

        logger.debug(f"SnapshotCommitter initialized: threshold={blob_size_threshold}, workers={self.blob_workers}")

    def push(self, workspace: Workspace, content_root: str, snapshot_config: SnapshotConfig,
             message: Optional[str] = None, prune: bool = False) -> PushResult:
        """
        Push the content tree.

        Args:
            workspace: Workspace holding the content
            content_root: Directory inside the workspace, kept as the path prefix in the repo
            snapshot_config: Target repo, branch and token
            message: Commit message
            prune: Build the tree without base so files absent locally disappear

        Returns:
            PushResult, failures carry "<Step> failed: ..." and a retryable flag
        """
        repo, branch = snapshot_config.repo, snapshot_config.branch

        files = self.collect_files(workspace, content_root)
        if not files:
            logger.warning(f"Nothing to push under {content_root}")
            return PushResult(success=False, error="No files to push")

        try:
            base_sha = self.github.get_branch_head(repo, branch)
            base_tree = self.github.get_commit_tree(repo, base_sha) if base_sha else None
            logger.info(f"  Base of {repo}@{branch}: {base_sha or 'none (new branch)'}")

            entries = self.build_entries(repo, files)
            tree_sha = self.github.create_tree(repo, entries, base_tree=None if prune else base_tree)

            commit_message = message or snapshot_config.format_message(0, len(files))
            commit_sha = self.github.create_commit(repo, commit_message, tree_sha, [base_sha] if base_sha else [])

            if base_sha:
                self.github.update_branch(repo, branch, commit_sha)
            else:
                self.github.create_branch(repo, branch, commit_sha)
        except GitHubAPIError as e:
            logger.error(f"Push to {repo}@{branch} failed: {e}")
            return PushResult(success=False, error=str(e), retryable=e.retryable)

        logger.info(f"  ✓ Pushed {len(files)} files to {repo}@{branch}: {commit_sha}")
        return PushResult(success=True, commit_sha=commit_sha, files_changed=len(files))

    def collect_files(self, workspace: Workspace, content_root: str) -> List[Tuple[str, bytes]]:
        """All files under content_root as (repo path, content), sorted by path"""
        return [
            (posixpath.join(content_root, relative), workspace.read_file(posixpath.join(content_root, relative)))
            for relative in workspace.list_files(content_root)
        ]

    def _inline_text(self, content: bytes) -> Optional[str]:
        if len(content) >= self.blob_size_threshold:
            return None
        try:
            return content.decode('utf-8')
        except UnicodeDecodeError:
            return None

    def build_entries(self, repo: str, files: List[Tuple[str, bytes]]) -> List[TreeEntry]:
        """Inline small text files, upload everything else as blobs"""
        entries: Dict[str, TreeEntry] = {}
        uploads: List[Tuple[str, bytes]] = []

        for path, content in files:
            text = self._inline_text(content)
            if text is None:
                uploads.append((path, content))
            else:
                entries[path] = TreeEntry(path=path, content=text)

        if uploads:
            logger.info(f"  Uploading {len(uploads)} blob(s)...")
            if self.blob_workers > 1 and len(uploads) > 1:
                with ThreadPoolExecutor(max_workers=self.blob_workers) as executor:
                    shas = list(executor.map(lambda item: self.github.create_blob(repo, item[1]), uploads))
            else:
                shas = [self.github.create_blob(repo, content) for _, content in uploads]
            for (path, _), sha in zip(uploads, shas):
                entries[path] = TreeEntry(path=path, sha=sha)

        return [entries[path] for path, _ in files]

    def read_branch_files(self, repo: str, branch: str) -> Dict[str, bytes]:
        """
        Re-collect the files of a remote branch.

        Returns:
            Dict mapping path -> content, empty when the branch does not exist
        """
        head = self.github.get_branch_head(repo, branch)
        if head is None:
            return {}
        tree_sha = self.github.get_commit_tree(repo, head)
        return {
            item['path']: self.github.get_blob(repo, item['sha'])
            for item in self.github.get_tree_recursive(repo, tree_sha)
            if item.get('type') == 'blob'
        }


__all__ = ['SnapshotCommitter', 'DEFAULT_BLOB_SIZE_THRESHOLD']
