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
Durable step runner.

A run is a sequence of named steps. The output of every completed step is
checkpointed under (run_id, step_id, input_hash): re-running the same run id
replays completed steps from their checkpoint instead of executing them again,
so a crashed run resumes where it stopped.

Usage:
    engine = WorkflowEngine(store=MemoryCheckpointStore()).for_run('run-1')
    ids = engine.run(Step('get-sources', list_ids, List[str]), source_filter)
"""

import hashlib
import json
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from loguru import logger
from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python

from docsync.errors import FatalError, StepFailedError, WorkflowTimeout


def _describe(obj: Any) -> str:
    return getattr(obj, '__qualname__', None) or type(obj).__name__


def hash_inputs(inputs: tuple) -> str:
    """Stable sha256 of step inputs; callables hash by qualified name"""
    data = to_jsonable_python(list(inputs), fallback=_describe)
    encoded = json.dumps(data, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return hashlib.sha256(encoded.encode('utf-8')).hexdigest()


@dataclass
class Step:
    """
    A named unit of work.

    Attributes:
        step_id: Identifier, unique within a run
        fn: Callable invoked with the step inputs
        output_type: Type of the return value, used to (de)serialize checkpoints
        is_retryable: Decides whether an exception deserves another attempt
                      (FatalError is never retried)
        enforce_deadline: False for steps that must run after a timeout (cleanup)
    """
    step_id: str
    fn: Callable[..., Any]
    output_type: Any = Any
    is_retryable: Optional[Callable[[BaseException], bool]] = None
    enforce_deadline: bool = True


class MemoryCheckpointStore:
    """Checkpoints kept in process memory"""

    def __init__(self):
        self._data: Dict[str, Dict[tuple, Any]] = {}
        self._lock = threading.Lock()

    def load(self, run_id: str, step_id: str, input_hash: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            run = self._data.get(run_id, {})
            key = (step_id, input_hash)
            if key not in run:
                return None
            return {'output': run[key]}

    def save(self, run_id: str, step_id: str, input_hash: str, output: Any) -> None:
        with self._lock:
            self._data.setdefault(run_id, {})[(step_id, input_hash)] = output

    def clear(self, run_id: str) -> None:
        with self._lock:
            self._data.pop(run_id, None)


class JsonCheckpointStore:
    """
    Checkpoints persisted as one JSON file per run in `directory`.

    Writes go through a temp file and os.replace so a crash never leaves a
    half-written checkpoint file behind.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, run_id: str) -> Path:
        return self.directory / f"{run_id}.json"

    def _read(self, run_id: str) -> Dict[str, Any]:
        path = self._path(run_id)
        if not path.exists():
            return {}
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def load(self, run_id: str, step_id: str, input_hash: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._read(run_id).get(f"{step_id}@{input_hash}")

    def save(self, run_id: str, step_id: str, input_hash: str, output: Any) -> None:
        with self._lock:
            data = self._read(run_id)
            data[f"{step_id}@{input_hash}"] = {'output': output}
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{run_id}.", suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self._path(run_id))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

    def clear(self, run_id: str) -> None:
        with self._lock:
            self._path(run_id).unlink(missing_ok=True)


class WorkflowEngine:
    """
    Executes steps with checkpointing, bounded retries and a run deadline.

    Args:
        store: Checkpoint store (in memory when None)
        max_attempts: Attempts per step before StepFailedError
        retry_delay: Base delay in seconds, multiplied by the attempt number
        run_timeout: Seconds a run may take, None for no deadline
        sleep: Injectable sleep function
        clock: Injectable monotonic clock
    """

    def __init__(
        self,
        store=None,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        run_timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store if store is not None else MemoryCheckpointStore()
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.run_timeout = run_timeout
        self.sleep = sleep
        self.clock = clock
        self.run_id: Optional[str] = None
        self.deadline: Optional[float] = None

    def for_run(self, run_id: str) -> 'WorkflowEngine':
        """Engine bound to one run; the deadline starts now"""
        engine = WorkflowEngine(
            store=self.store,
            max_attempts=self.max_attempts,
            retry_delay=self.retry_delay,
            run_timeout=self.run_timeout,
            sleep=self.sleep,
            clock=self.clock,
        )
        engine.run_id = run_id
        if self.run_timeout:
            engine.deadline = self.clock() + self.run_timeout
        return engine

    def _check_deadline(self, step: Step) -> None:
        if step.enforce_deadline and self.deadline is not None and self.clock() > self.deadline:
            raise WorkflowTimeout(f"Run '{self.run_id}' exceeded {self.run_timeout}s before step '{step.step_id}'")

    def run(self, step: Step, *inputs: Any) -> Any:
        """
        Execute a step, or replay its checkpoint.

        Raises:
            FatalError: Propagated unchanged from the step, never retried
            StepFailedError: When every attempt failed
            WorkflowTimeout: When the run deadline passed
        """
        if self.run_id is None:
            raise RuntimeError("WorkflowEngine.run() called on an engine not bound to a run, use for_run()")

        self._check_deadline(step)
        adapter = TypeAdapter(step.output_type)
        input_hash = hash_inputs(inputs)

        checkpoint = self.store.load(self.run_id, step.step_id, input_hash)
        if checkpoint is not None:
            logger.debug(f"[{step.step_id}] replayed from checkpoint")
            return adapter.validate_python(checkpoint['output'])

        attempt = 0
        while True:
            attempt += 1
            try:
                output = step.fn(*inputs)
                break
            except FatalError:
                raise
            except Exception as e:
                retryable = step.is_retryable(e) if step.is_retryable else True
                if not retryable or attempt >= self.max_attempts:
                    raise StepFailedError(step.step_id, attempt, e) from e
                delay = self.retry_delay * attempt
                logger.warning(f"[{step.step_id}] attempt {attempt}/{self.max_attempts} failed: {e}, retrying in {delay:.1f}s")
                self.sleep(delay)
                self._check_deadline(step)

        self.store.save(self.run_id, step.step_id, input_hash, adapter.dump_python(output, mode='json'))
        return output

    def clear(self) -> None:
        """Drop every checkpoint of the bound run"""
        if self.run_id is not None:
            self.store.clear(self.run_id)


__all__ = [
    'Step',
    'WorkflowEngine',
    'MemoryCheckpointStore',
    'JsonCheckpointStore',
    'hash_inputs',
]
