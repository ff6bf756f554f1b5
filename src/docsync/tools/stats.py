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
Statistics Collection Module

Collects and reports sync run statistics:
- Per-source outcome, file count and duration
- Push outcome
- Errors
"""

import threading
from typing import Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from loguru import logger

from docsync.models import PushResult, SyncResult


@dataclass
class RunStats:
    """Statistics for a single sync run"""

    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    run_id: str = ""

    results: List[SyncResult] = field(default_factory=list)
    push: Optional[PushResult] = None
    versions_recorded: int = 0
    errors: List[str] = field(default_factory=list)

    def mark_complete(self):
        self.end_time = datetime.now()

    def duration(self) -> float:
        """Get run duration in seconds"""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return (datetime.now() - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        succeeded = [r for r in self.results if r.success]
        return {
            "run_id": self.run_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration(),
            "sources": {
                "total": len(self.results),
                "success": len(succeeded),
                "failed": len(self.results) - len(succeeded),
                "files": sum(r.file_count for r in succeeded),
            },
            "push": self.push.to_dict() if self.push else None,
            "versions_recorded": self.versions_recorded,
            "errors": self.errors,
        }

    def summary_lines(self) -> List[str]:
        """Formatted summary, shared by the console and file outputs"""
        data = self.to_dict()
        sources = data["sources"]
        lines = [
            "=" * 80,
            "SYNC SUMMARY",
            "=" * 80,
            f"Run: {self.run_id}",
            f"Duration: {self.duration():.2f} seconds",
            "",
            "SOURCES:",
        ]
        for i, result in enumerate(self.results):
            prefix = "  ├─" if i < len(self.results) - 1 else "  └─"
            if result.success:
                lines.append(f"{prefix} ✓ {result.source_id}: {result.file_count} files ({result.duration_ms}ms)")
            else:
                lines.append(f"{prefix} ✗ {result.source_id}: {result.error}")
        lines.append(
            f"  Total: {sources['total']} | Success: {sources['success']} | "
            f"Failed: {sources['failed']} | Files: {sources['files']}"
        )
        lines.append("")

        lines.append("PUSH:")
        if self.push is None:
            lines.append("  └─ skipped")
        elif self.push.success:
            lines.append(f"  ├─ Commit: {self.push.commit_sha}")
            lines.append(f"  └─ Files: {self.push.files_changed}")
        else:
            lines.append(f"  └─ Failed: {self.push.error}")
        lines.append("")

        if self.versions_recorded:
            lines.append(f"VERSIONS RECORDED: {self.versions_recorded}")
            lines.append("")

        if self.errors:
            lines.append("ERRORS:")
            for error in self.errors:
                lines.append(f"  ├─ {error}")
            lines.append("")

        lines.append("=" * 80)
        return lines


class StatsCollector:
    """
    Global statistics collector singleton.

    Stats are kept per run id. Each thread records into the run it last
    reset, so concurrent runs in one process never share a RunStats.
    """

    _instance: Optional['StatsCollector'] = None
    _runs: Dict[str, RunStats] = {}
    _current = threading.local()
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def reset(cls, run_id: str = ""):
        """Reset statistics for a new run and make it this thread's current run"""
        previous = getattr(cls._current, 'run_id', None)
        with cls._lock:
            if previous is not None:
                cls._runs.pop(previous, None)
            cls._runs[run_id] = RunStats(run_id=run_id)
        cls._current.run_id = run_id
        logger.debug(f"Statistics collector initialized for run: {run_id}")

    @classmethod
    def get_stats(cls, run_id: Optional[str] = None) -> RunStats:
        """Stats of `run_id`, or of this thread's current run"""
        if run_id is None:
            run_id = getattr(cls._current, 'run_id', "")
        with cls._lock:
            if run_id not in cls._runs:
                cls._runs[run_id] = RunStats(run_id=run_id)
            return cls._runs[run_id]

    @classmethod
    def record_source(cls, result: SyncResult):
        cls.get_stats().results.append(result)
        if not result.success:
            cls.record_error(f"{result.source_id}: {result.error}")
        logger.debug(f"Recorded source result: {result.source_id} success={result.success}")

    @classmethod
    def record_push(cls, push: Optional[PushResult]):
        cls.get_stats().push = push
        if push is not None and not push.success:
            cls.record_error(f"push: {push.error}")

    @classmethod
    def record_versions(cls, count: int):
        cls.get_stats().versions_recorded = count

    @classmethod
    def record_error(cls, error: str):
        cls.get_stats().errors.append(error)
        logger.debug(f"Recorded error: {error}")

    @classmethod
    def finalize(cls) -> RunStats:
        stats = cls.get_stats()
        stats.mark_complete()
        return stats

    @classmethod
    def save_to_file(cls, filepath: Path):
        """Save statistics to text file (same format as print_summary)"""
        stats = cls.get_stats()
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write('\n'.join(stats.summary_lines()))
        logger.info(f"Statistics saved to: {filepath}")

    @classmethod
    def print_summary(cls):
        for line in cls.get_stats().summary_lines():
            logger.info(line)


# Convenience functions for easy access
def reset_stats(run_id: str = ""):
    StatsCollector.reset(run_id)


def record_source(result: SyncResult):
    StatsCollector.record_source(result)


def record_push(push: Optional[PushResult]):
    StatsCollector.record_push(push)


def record_versions(count: int):
    StatsCollector.record_versions(count)


def record_error(error: str):
    StatsCollector.record_error(error)


def get_stats(run_id: Optional[str] = None) -> RunStats:
    return StatsCollector.get_stats(run_id)


def finalize_stats() -> RunStats:
    return StatsCollector.finalize()


def print_summary():
    StatsCollector.print_summary()


def save_stats(filepath: Path):
    StatsCollector.save_to_file(filepath)
