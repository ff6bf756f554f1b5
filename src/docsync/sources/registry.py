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

"""SourceRegistry: the configured set of documentation sources"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from docsync import config
from docsync.models import Source, source_from_dict
from docsync.sources.catalog import DEFAULT_CATALOG


class SourceRegistry:
    """
    Read-only, ordered collection of sources keyed by id.

    Each source owns its output folder; extra repositories go into a folder
    through `additional_merges`, never through a second source.

    Raises:
        ValueError: On construction when two sources share an id or an output folder
    """

    def __init__(self, sources: Iterable[Source]):
        self._sources: Dict[str, Source] = {}
        owners: Dict[str, str] = {}
        for source in sources:
            if source.id in self._sources:
                raise ValueError(f"Duplicate source id: {source.id}")
            folder = source.output_folder.strip('/')
            if folder in owners:
                raise ValueError(f"Output folder '{folder}' of source {source.id} "
                                 f"is already used by source {owners[folder]}")
            owners[folder] = source.id
            self._sources[source.id] = source

    @classmethod
    def from_dicts(cls, entries: Iterable[Dict[str, Any]]) -> 'SourceRegistry':
        return cls(source_from_dict(entry) for entry in entries)

    @classmethod
    def from_file(cls, filepath: str) -> 'SourceRegistry':
        """
        Load a JSON catalog: either a list of sources or {"sources": [...]}.
        """
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        entries = data.get('sources', []) if isinstance(data, dict) else data
        registry = cls.from_dicts(entries)
        logger.info(f"Loaded {len(registry)} sources from {filepath}")
        return registry

    @classmethod
    def from_config(cls) -> 'SourceRegistry':
        """SOURCES_FILE when configured, the built-in catalog otherwise"""
        sources_file = config.SOURCES_FILE
        if sources_file:
            if not Path(sources_file).exists():
                raise FileNotFoundError(f"Sources file not found: {sources_file}")
            return cls.from_file(sources_file)
        return cls.from_dicts(DEFAULT_CATALOG)

    def list_sources(self) -> List[Source]:
        return list(self._sources.values())

    def get_source(self, source_id: str) -> Optional[Source]:
        return self._sources.get(source_id)

    def list_sources_by_type(self, source_type: str) -> List[Source]:
        return [s for s in self._sources.values() if s.type == source_type]

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._sources
