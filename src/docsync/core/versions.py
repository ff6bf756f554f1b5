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

"""Version records: which ref of a source was synced into which version folder"""

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from filelock import FileLock
from loguru import logger

from docsync.models import SyncResult, VersionRecord

_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _path_lock(filepath: Path) -> threading.Lock:
    """One lock per resolved file, shared by every store instance in the process"""
    key = str(filepath.resolve())
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


class MemoryVersionStore:
    """VersionStore backed by a dict"""

    def __init__(self):
        self._records: Dict[Tuple[str, str], VersionRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, record: VersionRecord) -> None:
        with self._lock:
            self._records[record.key] = record

    def get(self, source_id: str, version_folder_name: str) -> Optional[VersionRecord]:
        return self._records.get((source_id, version_folder_name))

    def list(self, source_id: Optional[str] = None) -> List[VersionRecord]:
        records = [r for r in self._records.values() if source_id is None or r.source_id == source_id]
        return sorted(records, key=lambda r: r.key)


class JsonVersionStore:
    """
    VersionStore persisted to a JSON file.

    Writes are serialized by a lock shared by every instance pointing at the
    same file, plus a `<file>.lock` file lock for other processes. The file
    is replaced atomically, so readers never observe a partial write.
    """

    def __init__(self, filepath: str):
        self.filepath = Path(filepath)
        self._lock = _path_lock(self.filepath)
        self._file_lock = FileLock(str(self.filepath) + '.lock')

    def _load(self) -> Dict[Tuple[str, str], VersionRecord]:
        if not self.filepath.exists():
            return {}
        with open(self.filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        records = [VersionRecord.from_dict(item) for item in data.get('versions', [])]
        return {r.key: r for r in records}

    def _save(self, records: Dict[Tuple[str, str], VersionRecord]) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        data = {'versions': [records[key].to_dict() for key in sorted(records)]}
        fd, tmp_path = tempfile.mkstemp(dir=self.filepath.parent, prefix='.versions.', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.filepath)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def upsert(self, record: VersionRecord) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, self._file_lock:
            records = self._load()
            records[record.key] = record
            self._save(records)

    def get(self, source_id: str, version_folder_name: str) -> Optional[VersionRecord]:
        with self._lock:
            return self._load().get((source_id, version_folder_name))

    def list(self, source_id: Optional[str] = None) -> List[VersionRecord]:
        with self._lock:
            records = self._load()
        return [records[key] for key in sorted(records) if source_id is None or key[0] == source_id]


class VersionRecorder:
    """Upsert one VersionRecord per successful result carrying ref metadata"""

    def __init__(self, store):
        self.store = store

    def record(self, results: Iterable[SyncResult], synced_at: Optional[datetime] = None) -> int:
        """
        Record versions of the given results.

        A failure for one record is logged and does not block the others.

        Returns:
            Number of records written
        """
        synced_at = synced_at or datetime.now(timezone.utc)
        recorded = 0
        for result in results:
            if not result.success or not result.has_version:
                continue
            record = VersionRecord(
                source_id=result.source_id,
                version_folder_name=result.version_folder_name,
                ref_type=result.ref_type,
                resolved_ref=result.resolved_ref,
                synced_at=synced_at,
            )
            try:
                self.store.upsert(record)
                recorded += 1
                logger.debug(f"Recorded version {record.source_id}/{record.version_folder_name}")
            except Exception as e:
                logger.warning(f"Failed to record version for {result.source_id}: {e}")
        return recorded


__all__ = ['MemoryVersionStore', 'JsonVersionStore', 'VersionRecorder']
