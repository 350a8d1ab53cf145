"""
KEYED_STORE.PY - Sharded concurrent map

Keys are spread over a fixed number of shards, each a dict with its own
lock, so writers on different keys rarely contend. Every public operation
is atomic with respect to the key it touches.
"""
import threading
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple


DEFAULT_SHARDS = 64


class ShardedMap:
    """Dict split into independently locked shards"""

    def __init__(self, shards: int = DEFAULT_SHARDS):
        if shards <= 0:
            raise ValueError("shards must be positive")
        self._shards: List[Tuple[threading.Lock, Dict[Hashable, Any]]] = [
            (threading.Lock(), {}) for _ in range(shards)
        ]

    def _shard(self, key: Hashable) -> Tuple[threading.Lock, Dict[Hashable, Any]]:
        return self._shards[hash(key) % len(self._shards)]

    def insert_if_absent(self, key: Hashable, value: Any) -> Tuple[bool, Any]:
        """
        Atomic check-and-insert

        Returns:
            (inserted, stored_value) where stored_value is whatever the
            key maps to after the call
        """
        lock, data = self._shard(key)
        with lock:
            current = data.get(key)
            if current is not None:
                return False, current
            data[key] = value
            return True, value

    def get(self, key: Hashable) -> Optional[Any]:
        lock, data = self._shard(key)
        with lock:
            return data.get(key)

    def pop(self, key: Hashable) -> Optional[Any]:
        """Atomic remove-and-return"""
        lock, data = self._shard(key)
        with lock:
            return data.pop(key, None)

    def pop_if(self, key: Hashable, predicate: Callable[[Any], bool]) -> Optional[Any]:
        """Remove and return the value only if predicate(value) holds"""
        lock, data = self._shard(key)
        with lock:
            value = data.get(key)
            if value is None or not predicate(value):
                return None
            del data[key]
            return value

    def keys_snapshot(self) -> List[Hashable]:
        """Point-in-time copy of all keys, one shard at a time"""
        keys = []
        for lock, data in self._shards:
            with lock:
                keys.extend(data.keys())
        return keys

    def __len__(self) -> int:
        total = 0
        for lock, data in self._shards:
            with lock:
                total += len(data)
        return total
