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

"""Data models for docsync: sources, sync results, versions and push artifacts"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union


# Source type discriminators
SOURCE_TYPE_REPO = 'repo'
SOURCE_TYPE_README = 'readme-only-repo'
SOURCE_TYPE_CHANNEL = 'channel'
SOURCE_TYPE_CUSTOM = 'custom'

SOURCE_TYPES = (SOURCE_TYPE_REPO, SOURCE_TYPE_README, SOURCE_TYPE_CHANNEL, SOURCE_TYPE_CUSTOM)

REF_TYPES = ('branch', 'tag', 'release')

LATEST_REF = 'latest'


def version_folder_name(ref_type: str, ref: str) -> str:
    """
    Build the version folder name used in the snapshot layout.

    Examples:
        >>> version_folder_name('branch', 'main')
        '[branch]-main'
        >>> version_folder_name('release', 'v4.2.0')
        '[release]-v4.2.0'
    """
    if ref_type not in REF_TYPES:
        raise ValueError(f"Unknown ref type: {ref_type}")
    return f"[{ref_type}]-{ref}"


@dataclass
class AdditionalMerge:
    """Extra repository merged into the output folder of a repo source"""
    location: str
    ref: str = 'main'
    content_subpath: str = ''


@dataclass
class BaseSource:
    """Fields shared by every source"""
    id: str
    label: str = ''
    type: str = ''

    def __post_init__(self):
        if not self.id:
            raise ValueError("Source id must not be empty")
        if not self.label:
            self.label = self.id


@dataclass
class RepoSource(BaseSource):
    """
    Git repository documentation source.

    Attributes:
        location: Repository in 'owner/repo' format
        ref: Branch, tag or release name; 'latest' with ref_type='release'
             resolves to the most recent release tag
        ref_type: One of 'branch', 'tag', 'release'
        content_subpath: Path of the documentation directory inside the repo
        output_folder: Folder name in the snapshot (defaults to id)
        additional_merges: Extra repos merged into the same output folder
    """
    type: str = SOURCE_TYPE_REPO
    location: str = ''
    ref: str = 'main'
    ref_type: str = 'branch'
    content_subpath: str = ''
    output_folder: str = ''
    additional_merges: List[AdditionalMerge] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        if not self.location or '/' not in self.location:
            raise ValueError(f"Source '{self.id}': location must be in owner/repo format, got '{self.location}'")
        if self.ref_type not in REF_TYPES:
            raise ValueError(f"Source '{self.id}': unknown ref type '{self.ref_type}'")
        if not self.output_folder:
            self.output_folder = self.id
        self.additional_merges = [
            m if isinstance(m, AdditionalMerge) else AdditionalMerge(**m)
            for m in self.additional_merges
        ]

    @property
    def wants_latest_release(self) -> bool:
        return self.ref_type == 'release' and self.ref.lower() == LATEST_REF


@dataclass
class ReadmeOnlySource(RepoSource):
    """Repository source restricted to its README.md"""
    type: str = SOURCE_TYPE_README


@dataclass
class ChannelSource(BaseSource):
    """Video channel source, synced as one markdown file per video"""
    type: str = SOURCE_TYPE_CHANNEL
    channel_id: str = ''
    handle: str = ''
    max_items: int = 50
    output_folder: str = ''

    def __post_init__(self):
        super().__post_init__()
        if not self.channel_id:
            raise ValueError(f"Source '{self.id}': channel_id is required")
        if self.max_items <= 0:
            raise ValueError(f"Source '{self.id}': max_items must be positive")
        if not self.output_folder:
            self.output_folder = self.id


@dataclass
class ContentFile:
    """File produced by a sync, path relative to its output root"""
    path: str
    content: bytes

    def __post_init__(self):
        if isinstance(self.content, str):
            self.content = self.content.encode('utf-8')


@dataclass
class CustomSource(BaseSource):
    """Source backed by a user supplied function returning content files"""
    type: str = SOURCE_TYPE_CUSTOM
    fetch_fn: Optional[Callable[[], List[ContentFile]]] = None
    output_folder: str = ''

    def __post_init__(self):
        super().__post_init__()
        if self.fetch_fn is None:
            raise ValueError(f"Source '{self.id}': fetch_fn is required")
        if not self.output_folder:
            self.output_folder = self.id


Source = Union[RepoSource, ReadmeOnlySource, ChannelSource, CustomSource]


# camelCase keys accepted from catalog files
_FIELD_ALIASES = {
    'repo': 'location',
    'branch': 'ref',
    'refType': 'ref_type',
    'contentPath': 'content_subpath',
    'contentSubpath': 'content_subpath',
    'outputPath': 'output_folder',
    'outputFolder': 'output_folder',
    'additionalSyncs': 'additional_merges',
    'additionalMerges': 'additional_merges',
    'channelId': 'channel_id',
    'maxVideos': 'max_items',
    'maxItems': 'max_items',
}

_LEGACY_TYPES = {
    'github': SOURCE_TYPE_REPO,
    'youtube': SOURCE_TYPE_CHANNEL,
}


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {_FIELD_ALIASES.get(k, k): v for k, v in data.items()}


def source_from_dict(data: Dict[str, Any]) -> Source:
    """
    Build a Source from a plain dict (catalog file entry).

    Accepts snake_case field names as well as the camelCase names used by
    older catalogs ('repo', 'branch', 'contentPath', 'readmeOnly', ...).

    Raises:
        ValueError: If the type is unknown or required fields are missing
    """
    data = dict(data)
    readme_only = bool(data.pop('readmeOnly', data.pop('readme_only', False)))
    source_type = _LEGACY_TYPES.get(data.get('type', SOURCE_TYPE_REPO), data.get('type', SOURCE_TYPE_REPO))
    if source_type == SOURCE_TYPE_REPO and readme_only:
        source_type = SOURCE_TYPE_README
    data['type'] = source_type

    fields = _normalize_keys(data)
    if 'additional_merges' in fields:
        fields['additional_merges'] = [
            AdditionalMerge(**_normalize_keys(m)) for m in fields['additional_merges'] or []
        ]
    # basePath is a sandbox layout detail, not part of the source identity
    fields.pop('basePath', None)

    if source_type == SOURCE_TYPE_REPO:
        return RepoSource(**fields)
    if source_type == SOURCE_TYPE_README:
        fields.pop('additional_merges', None)
        return ReadmeOnlySource(**fields)
    if source_type == SOURCE_TYPE_CHANNEL:
        return ChannelSource(**fields)
    if source_type == SOURCE_TYPE_CUSTOM:
        return CustomSource(**fields)
    raise ValueError(f"Unknown source type: {source_type}")


@dataclass(frozen=True)
class SyncResult:
    """Outcome of syncing one source during a run"""
    source_id: str
    success: bool
    file_count: int = 0
    error: Optional[str] = None
    duration_ms: int = 0
    label: str = ''
    version_folder_name: Optional[str] = None
    ref_type: Optional[str] = None
    resolved_ref: Optional[str] = None

    @property
    def has_version(self) -> bool:
        return bool(self.version_folder_name and self.ref_type and self.resolved_ref is not None)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'sourceId': self.source_id,
            'label': self.label,
            'success': self.success,
            'fileCount': self.file_count,
            'durationMs': self.duration_ms,
        }
        if self.error:
            data['error'] = self.error
        if self.has_version:
            data['versionFolderName'] = self.version_folder_name
            data['refType'] = self.ref_type
            data['resolvedRef'] = self.resolved_ref
        return data


@dataclass
class VersionRecord:
    """A ref of a source synced into a version folder at a given time"""
    source_id: str
    version_folder_name: str
    ref_type: str
    resolved_ref: str
    synced_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple:
        return (self.source_id, self.version_folder_name)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['synced_at'] = self.synced_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VersionRecord':
        data = dict(data)
        synced_at = data.get('synced_at')
        if isinstance(synced_at, str):
            data['synced_at'] = datetime.fromisoformat(synced_at)
        return cls(**data)


DEFAULT_COMMIT_MESSAGE = 'chore: sync {sources} sources ({files} files)'


@dataclass
class SnapshotConfig:
    """
    Per-run configuration: the snapshot target and fetch credentials.

    Attributes:
        repo: Snapshot repository in 'owner/repo' format
        branch: Branch receiving the commit
        token: Token with write access to the snapshot repository
        commit_message: Template, formatted with {sources}, {files}, {timestamp}
        source_token: Fallback token for cloning sources and API lookups
        tokens_by_source: Per-source token overrides
        channel_api_key: API key of the channel provider
    """
    repo: str = ''
    branch: str = 'main'
    token: str = ''
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    source_token: str = ''
    tokens_by_source: Dict[str, str] = field(default_factory=dict)
    channel_api_key: str = ''

    def token_for(self, source_id: str) -> Optional[str]:
        return self.tokens_by_source.get(source_id) or self.source_token or self.token or None

    def format_message(self, sources: int, files: int) -> str:
        timestamp = datetime.now(timezone.utc).isoformat(timespec='seconds')
        return self.commit_message.format(sources=sources, files=files, timestamp=timestamp)


@dataclass
class SyncOptions:
    reset: bool = False
    push: bool = True
    source_filter: Optional[str] = None


@dataclass
class TreeEntry:
    """Entry of a git tree creation payload"""
    path: str
    mode: str = '100644'
    type: str = 'blob'
    content: Optional[str] = None
    sha: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {'path': self.path, 'mode': self.mode, 'type': self.type}
        if self.sha is not None:
            payload['sha'] = self.sha
        else:
            payload['content'] = self.content
        return payload


@dataclass
class PushResult:
    success: bool
    commit_sha: Optional[str] = None
    files_changed: Optional[int] = None
    error: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'success': self.success}
        if self.commit_sha:
            data['commitSha'] = self.commit_sha
        if self.files_changed is not None:
            data['filesChanged'] = self.files_changed
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class SyncSummary:
    total: int = 0
    success: int = 0
    failed: int = 0
    files: int = 0


@dataclass
class SyncRunResult:
    """Structured result returned by every sync run"""
    success: bool
    summary: SyncSummary
    push: Optional[PushResult]
    results: List[SyncResult] = field(default_factory=list)
    run_id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'runId': self.run_id,
            'summary': asdict(self.summary),
            'push': self.push.to_dict() if self.push else None,
            'results': [r.to_dict() for r in self.results],
        }
