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

"""Expiring key/value cache with an injectable clock"""

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from loguru import logger


class TTLCache:
    """
    Thread-safe cache whose entries expire at an absolute time.

    Components receive a cache instance instead of keeping module level
    state, so tests can pass a deterministic clock.

    Example:
        cache = TTLCache(clock=lambda: 100.0)
        cache.put('nuxt/nuxt', 'v4.2.0', expiry=160.0)
        cache.get('nuxt/nuxt')  # 'v4.2.0' until the clock reaches 160
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expiry = entry
            if self._clock() >= expiry:
                del self._entries[key]
                logger.debug(f"Cache entry expired: {key}")
                return None
            return value

    def put(self, key: Hashable, value: Any, expiry: float) -> None:
        """Store value until the clock reaches `expiry`"""
        with self._lock:
            self._entries[key] = (value, expiry)

    def put_for(self, key: Hashable, value: Any, ttl: float) -> None:
        """Store value for `ttl` seconds from now"""
        self.put(key, value, self._clock() + ttl)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
