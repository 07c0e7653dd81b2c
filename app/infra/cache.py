from __future__ import annotations

"""
进程内 TTL 缓存。

当前提供：
- `Cache` Protocol：定义 get/set/clear/stats 接口（依赖倒置，方便替换实现）
- `TTLCache`：每个 entry 自带 ttl，读取时惰性过期（没有后台清理线程）
- `build_cache_key`：endpoint + 排序后的参数 -> 稳定 key

约束：
- entry 写入后不可变，刷新时整体覆盖
- get/set 本身在事件循环里是原子的；miss -> fetch -> set 不是原子的，
  并发重复拉取同一个 key 只是浪费，不影响正确性（后写覆盖）
"""

import json
import logging
import time
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CacheEntryStats(BaseModel):
    """单个 entry 的状态快照（毫秒）。"""

    key: str
    ageMs: int
    ttlMs: int


class CacheStats(BaseModel):
    """缓存整体状态（供 /api/cache/status 使用）。"""

    count: int
    entries: list[CacheEntryStats]


class Cache(Protocol):
    """缓存接口协议。"""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, data: Any, ttl: float) -> None: ...

    def clear(self) -> None: ...

    def stats(self) -> CacheStats: ...


@dataclass(frozen=True)
class CacheEntry:
    """缓存条目：data 为 JSON 值，timestamp/ttl 单位为秒。"""

    data: Any
    timestamp: float
    ttl: float


def build_cache_key(endpoint: str, params: Mapping[str, object] | None = None) -> str:
    """
    生成缓存 key：参数名按字典序排序后再序列化。

    `{"a": 1, "b": 2}` 与 `{"b": 2, "a": 1}` 得到同一个 key。
    """
    serialized = json.dumps(dict(params or {}), sort_keys=True, separators=(",", ":"), default=str)
    return f"{endpoint}:{serialized}"


@dataclass
class TTLCache:
    """
    内存 TTL 缓存。

    - `clock`：返回秒数的单调时钟，测试时可注入假时钟
    - 内存上界 = 自上次过期淘汰以来请求过的不同 key 数
    """

    store: MutableMapping[str, CacheEntry] = field(default_factory=dict)
    clock: Callable[[], float] = time.monotonic

    def get(self, key: str) -> Any | None:
        entry = self.store.get(key)
        if entry is None:
            return None
        if self.clock() - entry.timestamp < entry.ttl:
            logger.debug(f"Cache hit: {key}")
            return entry.data
        logger.debug(f"Cache expired: {key}")
        del self.store[key]
        return None

    def set(self, key: str, data: Any, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        self.store[key] = CacheEntry(data=data, timestamp=self.clock(), ttl=ttl)
        logger.debug(f"Cache set: {key} (ttl={ttl}s)")

    def clear(self) -> None:
        count = len(self.store)
        self.store.clear()
        logger.info(f"Cache cleared ({count} entries)")

    def stats(self) -> CacheStats:
        """列出当前全部 entry（包含已过期但尚未被读取淘汰的）。"""
        now = self.clock()
        entries = [
            CacheEntryStats(
                key=key,
                ageMs=int((now - entry.timestamp) * 1000),
                ttlMs=int(entry.ttl * 1000),
            )
            for key, entry in list(self.store.items())
        ]
        return CacheStats(count=len(entries), entries=entries)
