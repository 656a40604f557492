"""
Response Caching

TTL key/value cache shared by the assistant's response and context caches,
plus the key derivation for cached chat responses. Identical questions asked
on the same course day in the same language reuse one model answer.
"""

import hashlib
import json
import logging
import re
import threading
import time
from typing import Any, Callable, Dict, Optional, Pattern, Union

from ai_learning_assistant.models import CacheEntry

logger = logging.getLogger(__name__)

RESPONSE_KEY_PREFIX = "ai-assistant"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_message(message: str) -> str:
    """Trim, collapse whitespace runs and lowercase."""
    return _WHITESPACE_RE.sub(" ", (message or "").strip()).lower()


def generate_cache_key(prefix: str, data: Any) -> str:
    """Key of the form "{prefix}:{sha256}" over a canonical JSON dump of data."""
    payload = json.dumps(data, sort_keys=True, ensure_ascii=False, default=str)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


def response_key_prefix(language_id: Optional[str] = None, day: Optional[int] = None) -> str:
    """Readable key prefix used for pattern invalidation."""
    prefix = RESPONSE_KEY_PREFIX
    if language_id is not None:
        prefix += f":{language_id}"
        if day is not None:
            prefix += f":day{day}"
    return prefix


def response_cache_key(message: str, day: int, language_id: str, request_type: str = "question") -> str:
    """
    Cache key for an assistant response.

    The tier is deliberately not an input: every tier shares the answer.

    Args:
        message: Raw user message (normalized here)
        day: Course day
        language_id: Programming language of the course
        request_type: question / code-help / advice / general

    Returns:
        "ai-assistant:{language}:day{day}:{request_type}:{sha256}"
    """
    request_type = getattr(request_type, "value", request_type)
    prefix = f"{response_key_prefix(language_id, day)}:{request_type}"
    return generate_cache_key(prefix, [normalize_message(message), day, language_id, request_type])


class TTLCache:
    """
    Thread-safe in-memory cache with per-entry TTL.

    Expiry is lazy: an expired entry is evicted on the read that finds it
    (or by cleanup_expired()). When max_size is set the oldest entry is
    evicted to make room for a new key.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: Time-to-live in seconds used when set() gets no ttl
            max_size: Optional entry bound (None = unbounded)
            clock: Monotonic time source, injectable for tests
            name: Label used in log lines
        """
        self.default_ttl = default_ttl
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            now = self._clock()
            if self.max_size is not None and key not in self._entries:
                self._evict_for_insert(now)
            self._entries[key] = CacheEntry(value=value, expires_at=now + ttl, created_at=now)

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.expires_at > self._clock()

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_pattern(self, pattern: Union[str, Pattern]) -> int:
        """Remove every key matching a regex (re.search semantics); returns the count."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        with self._lock:
            doomed = [key for key in self._entries if regex.search(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.info(f"🧹 [{self.name}] Invalidated {len(doomed)} entries matching {regex.pattern!r}")
        return len(doomed)

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def cleanup_expired(self) -> int:
        """Evict every expired entry; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }

    def _evict_for_insert(self, now: float) -> None:
        # Caller holds the lock
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        while len(self._entries) >= self.max_size:
            oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
            del self._entries[oldest_key]
