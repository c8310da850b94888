"""Redis-backed sliding window rate limiter shared across service replicas."""

from __future__ import annotations

import time
import uuid
from typing import Final

from redis import Redis
from redis.exceptions import ResponseError


class RedisSlidingWindowRateLimiter:
    """Distributed limiter storing hit timestamps in one sorted set per key.

    Pruning, counting and recording run in one Lua script, so a hit is only
    added after the count check passes.
    """

    _LUA_SCRIPT: Final[str] = """
    local key = KEYS[1]
    local now_ms = tonumber(ARGV[1])
    local window_ms = tonumber(ARGV[2])
    local max_requests = tonumber(ARGV[3])

    redis.call('ZREMRANGEBYSCORE', key, 0, now_ms - window_ms)
    if redis.call('ZCARD', key) >= max_requests then
        return 0
    end
    redis.call('ZADD', key, now_ms, ARGV[4])
    redis.call('PEXPIRE', key, window_ms)
    return 1
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "accounts:rate",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._script = client.register_script(self._LUA_SCRIPT)

    def allow(self, key: str) -> bool:
        """Return ``True`` while ``key`` is within the distributed limit."""
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        member = f"{now_ms}:{uuid.uuid4().hex}"
        try:
            result = self._script(
                keys=[redis_key],
                args=[now_ms, self._window_ms, self._max_requests, member],
            )
        except ResponseError as exc:
            message = str(exc).lower()
            if "unknown command" in message and "eval" in message:
                return self._allow_without_scripting(redis_key, now_ms, member)
            raise
        return int(result) == 1

    def reset(self) -> None:
        for redis_key in self._client.scan_iter(match=f"{self._key_prefix}:*"):
            self._client.delete(redis_key)

    def _allow_without_scripting(self, redis_key: str, now_ms: int, member: str) -> bool:
        """Non-atomic fallback for servers with scripting disabled."""
        self._client.zremrangebyscore(redis_key, 0, now_ms - self._window_ms)
        if self._client.zcard(redis_key) >= self._max_requests:
            return False
        self._client.zadd(redis_key, {member: now_ms})
        self._client.pexpire(redis_key, self._window_ms)
        return True
