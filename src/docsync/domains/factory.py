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

"""Factory functions wiring fetchers, clients and the orchestrator together"""

from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from docsync import config
from docsync.core.cache import TTLCache
from docsync.core.fetcher import BaseFetcher
from docsync.core.pipeline import SyncOrchestrator
from docsync.core.snapshot import SnapshotCommitter
from docsync.core.versions import JsonVersionStore, VersionRecorder
from docsync.core.workflow import JsonCheckpointStore, MemoryCheckpointStore, WorkflowEngine
from docsync.core.workspace import DockerSandboxClient, LocalWorkspace, SandboxWorkspace
from docsync.domains.channel import ChannelClient, ChannelFetcher
from docsync.domains.custom import CustomFetcher
from docsync.domains.repo import RepoFetcher
from docsync.models import SnapshotConfig, SyncOptions, SyncRunResult
from docsync.sources.registry import SourceRegistry
from docsync.tools.github_client import GitHubClient


def create_github_client(token: Optional[str] = None, cache: Optional[TTLCache] = None) -> GitHubClient:
    return GitHubClient(
        token=token,
        api_url=config.GITHUB_API_URL,
        timeout=config.HTTP_TIMEOUT,
        cache=cache,
        release_cache_ttl=config.RELEASE_CACHE_TTL,
    )


def create_fetchers(snapshot_config: SnapshotConfig, github: GitHubClient) -> Dict[str, BaseFetcher]:
    """
    Create one fetcher per source type.

    Returns:
        Dict mapping source type -> fetcher
    """
    def channel_client() -> Optional[ChannelClient]:
        if not snapshot_config.channel_api_key:
            return None
        return ChannelClient(snapshot_config.channel_api_key, timeout=config.HTTP_TIMEOUT)

    fetchers = [
        RepoFetcher(github, token_for=snapshot_config.token_for),
        ChannelFetcher(client_factory=channel_client),
        CustomFetcher(),
    ]
    mapping = {}
    for fetcher in fetchers:
        for source_type in fetcher.source_types:
            mapping[source_type] = fetcher
    logger.debug(f"Fetchers ready for: {', '.join(sorted(mapping))}")
    return mapping


def snapshot_config_from_settings() -> SnapshotConfig:
    """Build the per-run SnapshotConfig from the loaded application config"""
    return SnapshotConfig(
        repo=config.SNAPSHOT_REPO,
        branch=config.SNAPSHOT_BRANCH or 'main',
        token=config.GITHUB_TOKEN,
        commit_message=config.COMMIT_MESSAGE,
        source_token=config.SOURCE_TOKEN,
        channel_api_key=config.YOUTUBE_API_KEY,
    )


def create_workspace_factory(sandbox_container: Optional[str] = None):
    """
    Return a callable run_id -> Workspace.

    Every run gets its own directory, locally or inside the sandbox container.
    """
    container = sandbox_container if sandbox_container is not None else config.SANDBOX_CONTAINER
    if container:
        client = DockerSandboxClient(container)
        logger.debug(f"Using sandbox workspaces in container {container}")
        return lambda run_id: SandboxWorkspace(client, f"/tmp/docsync/{run_id}")

    base = Path(config.WORKSPACE_DIR)
    return lambda run_id: LocalWorkspace(str(base / run_id))


def create_orchestrator(
    registry: Optional[SourceRegistry] = None,
    sandbox_container: Optional[str] = None,
) -> SyncOrchestrator:
    """
    Create the sync orchestrator from the application config.

    Returns:
        Configured orchestrator instance
    """
    logger.debug("Creating sync orchestrator...")
    logger.debug(f"Config: SNAPSHOT_REPO={config.SNAPSHOT_REPO}")
    logger.debug(f"        WORKSPACE_DIR={config.WORKSPACE_DIR}")
    logger.debug(f"        VERSIONS_FILE={config.VERSIONS_FILE}")

    registry = registry or SourceRegistry.from_config()
    logger.debug(f"✓ SourceRegistry ({len(registry)} sources)")

    cache = TTLCache()
    github = create_github_client(cache=cache)

    checkpoint_store = JsonCheckpointStore(config.CHECKPOINT_DIR) if config.CHECKPOINT_DIR else MemoryCheckpointStore()
    engine = WorkflowEngine(
        store=checkpoint_store,
        max_attempts=config.STEP_MAX_ATTEMPTS,
        retry_delay=config.STEP_RETRY_DELAY,
        run_timeout=config.RUN_TIMEOUT or None,
    )
    logger.debug(f"✓ WorkflowEngine ({checkpoint_store.__class__.__name__})")

    orchestrator = SyncOrchestrator(
        registry=registry,
        engine=engine,
        workspace_factory=create_workspace_factory(sandbox_container),
        fetchers_factory=lambda snapshot_config: create_fetchers(snapshot_config, github),
        committer_factory=lambda snapshot_config: SnapshotCommitter(
            github.with_token(snapshot_config.token),
            blob_size_threshold=config.BLOB_SIZE_THRESHOLD,
            blob_workers=config.BLOB_WORKERS,
        ),
        version_recorder=VersionRecorder(JsonVersionStore(config.VERSIONS_FILE)),
    )
    logger.debug("✓ Orchestrator created")
    return orchestrator


def run_sync(
    snapshot_config: Optional[SnapshotConfig] = None,
    options: Optional[SyncOptions] = None,
    run_id: Optional[str] = None,
    sandbox_container: Optional[str] = None,
) -> SyncRunResult:
    """
    Run one sync with the configured registry and collaborators.

    Args:
        snapshot_config: Target and credentials, from the application config when None
        options: reset / push / source_filter
        run_id: Id of the run, pass the id of an interrupted run to resume it

    Raises:
        FatalError: Missing push configuration, empty or unknown source selection
    """
    orchestrator = create_orchestrator(sandbox_container=sandbox_container)
    return orchestrator.run_sync(snapshot_config or snapshot_config_from_settings(), options, run_id)
