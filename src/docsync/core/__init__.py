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
Core abstractions for the docsync system.

This package provides the protocols, the workspace implementations, the
tree filter, the snapshot committer and the durable orchestrator shared by
every source type.
"""

from .protocols import (
    CommandResult,
    Workspace,
    SandboxClient,
    ContentFetcher,
    VersionStore,
    CheckpointStore,
)
from .tree_filter import TreeFilter, FilterStats, filter_directory, count_doc_files
from .workflow import Step, WorkflowEngine, MemoryCheckpointStore, JsonCheckpointStore
from .snapshot import SnapshotCommitter
from .versions import VersionRecorder, JsonVersionStore, MemoryVersionStore
from .pipeline import SyncOrchestrator

__all__ = [
    # Protocols
    'CommandResult',
    'Workspace',
    'SandboxClient',
    'ContentFetcher',
    'VersionStore',
    'CheckpointStore',
    # Filter
    'TreeFilter',
    'FilterStats',
    'filter_directory',
    'count_doc_files',
    # Workflow
    'Step',
    'WorkflowEngine',
    'MemoryCheckpointStore',
    'JsonCheckpointStore',
    # Snapshot and versions
    'SnapshotCommitter',
    'VersionRecorder',
    'JsonVersionStore',
    'MemoryVersionStore',
    # Pipeline
    'SyncOrchestrator',
]
