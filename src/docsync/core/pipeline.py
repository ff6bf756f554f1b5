#!/usr/bin/env python3
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
Documentation sync pipeline.

The orchestrator runs one sync as a sequence of durable steps:
1. get-sources          select the sources of the run
2. prepare-workspace    fresh per-run scratch directory with docs/
3. sync-source:<id>     fetch and filter one source (sequential)
4. push-snapshot        commit docs/ to the snapshot repository
5. record-versions      upsert version records of the pushed refs
6. cleanup              delete the workspace (always, failures swallowed)

Key Features:
- Dependency injection: registry, workspaces, fetchers and committer are factories
- One failed source never aborts its siblings
- Only configuration and selection problems abort the run (FatalError)

Usage:
    orchestrator = SyncOrchestrator(
        registry=SourceRegistry.from_config(),
        engine=WorkflowEngine(),
        workspace_factory=lambda run_id: LocalWorkspace(f"/tmp/docsync/{run_id}"),
        fetchers_factory=lambda cfg: create_fetchers(cfg, github),
        committer_factory=lambda cfg: SnapshotCommitter(github.with_token(cfg.token)),
    )
    result = orchestrator.run_sync(snapshot_config, SyncOptions(push=False))
"""

import uuid
from typing import Callable, Dict, List, Optional

from loguru import logger

from docsync.core.fetcher import BaseFetcher, fetcher_for
from docsync.core.protocols import Workspace
from docsync.core.snapshot import SnapshotCommitter
from docsync.core.versions import VersionRecorder
from docsync.core.workflow import Step, WorkflowEngine
from docsync.errors import FatalError, PushFailedError, StepFailedError
from docsync.models import (
    PushResult,
    SnapshotConfig,
    SyncOptions,
    SyncResult,
    SyncRunResult,
    SyncSummary,
)
from docsync.sources.registry import SourceRegistry
from docsync.tools import stats


DOCS_DIR = 'docs'


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def summarize(results: List[SyncResult]) -> SyncSummary:
    succeeded = [r for r in results if r.success]
    return SyncSummary(
        total=len(results),
        success=len(succeeded),
        failed=len(results) - len(succeeded),
        files=sum(r.file_count for r in succeeded),
    )


class SyncOrchestrator:
    """
    Run sync pipelines.

    Attributes:
        registry: Configured sources
        engine: Workflow engine (bound to a run id per run)
        workspace_factory: run_id -> Workspace, each run owns its workspace
        fetchers_factory: SnapshotConfig -> {source type: fetcher}
        committer_factory: SnapshotConfig -> SnapshotCommitter
        version_recorder: Records pushed versions (optional)
    """

    def __init__(
        self,
        registry: SourceRegistry,
        engine: WorkflowEngine,
        workspace_factory: Callable[[str], Workspace],
        fetchers_factory: Callable[[SnapshotConfig], Dict[str, BaseFetcher]],
        committer_factory: Callable[[SnapshotConfig], SnapshotCommitter],
        version_recorder: Optional[VersionRecorder] = None,
    ):
        self.registry = registry
        self.engine = engine
        self.workspace_factory = workspace_factory
        self.fetchers_factory = fetchers_factory
        self.committer_factory = committer_factory
        self.version_recorder = version_recorder

        logger.info(f"Initialized SyncOrchestrator with {len(registry)} sources")

    # ============ Core Pipeline Methods ============

    def run_sync(self, snapshot_config: SnapshotConfig, options: Optional[SyncOptions] = None,
                 run_id: Optional[str] = None) -> SyncRunResult:
        """
        Execute the complete sync pipeline.

        Re-running with the run id of an interrupted run replays its
        completed steps from their checkpoints.

        Raises:
            FatalError: Missing push configuration, empty or unknown source selection
        """
        options = options or SyncOptions()
        run_id = run_id or new_run_id()
        engine = self.engine.for_run(run_id)
        workspace = self.workspace_factory(run_id)
        stats.reset_stats(run_id)

        logger.info(
            f"Starting sync {run_id} | push={options.push} reset={options.reset} "
            f"filter={options.source_filter or '-'}"
        )

        try:
            self._check_config(snapshot_config, options)

            logger.info("[1/6] Selecting sources...")
            source_ids = engine.run(Step('get-sources', self._select_sources, List[str]), options.source_filter)
            logger.info(f"  ✓ {len(source_ids)} source(s): {', '.join(source_ids)}")

            logger.info("[2/6] Preparing workspace...")
            engine.run(Step('prepare-workspace', lambda root, reset: self._prepare_workspace(workspace, reset), str),
                       workspace.root, options.reset)
            logger.info(f"  ✓ Workspace ready: {workspace.root}")

            logger.info(f"[3/6] Syncing {len(source_ids)} source(s)...")
            fetchers = self.fetchers_factory(snapshot_config)
            results = []
            for i, source_id in enumerate(source_ids, 1):
                source = self.registry.get_source(source_id)
                logger.info(f"  Syncing source {i}/{len(source_ids)}: {source.label} ({source.type})")
                result = engine.run(
                    Step(f"sync-source:{source_id}", lambda src: self._sync_source(fetchers, src, workspace),
                         SyncResult),
                    source,
                )
                stats.record_source(result)
                if result.success:
                    logger.info(f"  ✓ {source_id}: {result.file_count} files in {result.duration_ms}ms")
                else:
                    logger.error(f"  ✗ {source_id}: {result.error}")
                results.append(result)

            summary = summarize(results)
            logger.info(f"  ✓ Success: {summary.success} | Failed: {summary.failed} | Files: {summary.files}")

            push = None
            if not options.push:
                logger.info("[4/6] Skipped: push disabled")
            elif summary.success == 0:
                logger.warning("[4/6] Skipped: no source succeeded, nothing to push")
            else:
                logger.info(f"[4/6] Pushing to {snapshot_config.repo}@{snapshot_config.branch}...")
                push = self._push(engine, workspace, snapshot_config, summary, options.reset)
            stats.record_push(push)

            if push is not None and push.success and self.version_recorder is not None:
                logger.info("[5/6] Recording versions...")
                self._record_versions(engine, results)
            else:
                logger.info("[5/6] Skipped: nothing pushed")

            success = summary.failed == 0 and (push is None or push.success)
            logger.info("=" * 60)
            logger.info(f"{'✅' if success else '❌'} Sync {run_id} completed - {summary.success}/{summary.total} sources")
            logger.info("=" * 60)
            return SyncRunResult(success=success, summary=summary, push=push, results=results, run_id=run_id)

        finally:
            logger.info("[6/6] Cleaning up...")
            self._cleanup(engine, workspace)
            stats.finalize_stats()

    # ============ Steps ============

    def _check_config(self, snapshot_config: SnapshotConfig, options: SyncOptions) -> None:
        if not options.push:
            return
        missing = [name for name, value in (('repo', snapshot_config.repo), ('token', snapshot_config.token))
                   if not value]
        if missing:
            raise FatalError(f"Snapshot {' and '.join(missing)} must be configured to push")
        try:
            snapshot_config.format_message(0, 0)
        except (KeyError, IndexError, ValueError) as e:
            raise FatalError(f"Invalid commit message template {snapshot_config.commit_message!r}: {e!r}")

    def _select_sources(self, source_filter: Optional[str]) -> List[str]:
        if source_filter:
            if self.registry.get_source(source_filter) is None:
                raise FatalError(f"Source not found: {source_filter}")
            return [source_filter]

        source_ids = [s.id for s in self.registry.list_sources()]
        if not source_ids:
            raise FatalError("No sources to sync")
        return source_ids

    def _prepare_workspace(self, workspace: Workspace, reset: bool) -> str:
        if reset:
            logger.info(f"  Resetting {DOCS_DIR}/")
            workspace.remove(DOCS_DIR)
        workspace.mkdir(DOCS_DIR)
        return workspace.root

    def _sync_source(self, fetchers: Dict[str, BaseFetcher], source, workspace: Workspace) -> SyncResult:
        try:
            fetcher = fetcher_for(fetchers, source)
        except ValueError as e:
            return SyncResult(source_id=source.id, label=source.label, success=False, error=str(e))
        return fetcher.fetch(source, workspace, DOCS_DIR)

    def _push(self, engine: WorkflowEngine, workspace: Workspace, snapshot_config: SnapshotConfig,
              summary: SyncSummary, prune: bool) -> PushResult:
        committer = self.committer_factory(snapshot_config)
        message = snapshot_config.format_message(summary.success, summary.files)

        def push_snapshot(repo: str, branch: str, source_count: int, file_count: int, reset: bool) -> PushResult:
            result = committer.push(workspace, DOCS_DIR, snapshot_config, message=message, prune=reset)
            if not result.success and result.retryable:
                raise PushFailedError(result)
            return result

        step = Step('push-snapshot', push_snapshot, PushResult,
                    is_retryable=lambda e: isinstance(e, PushFailedError))
        try:
            push = engine.run(step, snapshot_config.repo, snapshot_config.branch,
                              summary.success, summary.files, prune)
        except StepFailedError as e:
            if isinstance(e.cause, PushFailedError):
                push = e.cause.result
            else:
                push = PushResult(success=False, error=str(e.cause))

        if push.success:
            logger.info(f"  ✓ Pushed {push.files_changed} files, commit: {push.commit_sha}")
        else:
            logger.error(f"  ✗ Push failed: {push.error}")
        return push

    def _record_versions(self, engine: WorkflowEngine, results: List[SyncResult]) -> None:
        try:
            recorded = engine.run(Step('record-versions', self.version_recorder.record, int), results)
        except StepFailedError as e:
            logger.warning(f"  Version recording failed: {e.cause}")
            return
        stats.record_versions(recorded)
        logger.info(f"  ✓ Recorded {recorded} version(s)")

    def _cleanup(self, engine: WorkflowEngine, workspace: Workspace) -> None:
        """Remove the workspace and the run checkpoints; never raises"""
        def remove_workspace(root: str) -> bool:
            workspace.remove(root)
            return True

        try:
            engine.run(Step('cleanup', remove_workspace, bool, enforce_deadline=False), workspace.root)
            logger.info(f"  ✓ Removed {workspace.root}")
        except Exception as e:
            logger.warning(f"  Cleanup failed for {workspace.root}: {e}")
        try:
            engine.clear()
        except Exception as e:
            logger.warning(f"  Failed to clear checkpoints of {engine.run_id}: {e}")


__all__ = ['SyncOrchestrator', 'summarize', 'new_run_id', 'DOCS_DIR']
