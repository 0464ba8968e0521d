"""
Query Cache Service

Caches request listings, dashboard stats, request detail and timelines.
Uses Redis in production (via REDIS_URL), falls back to a simple in-memory
dict for development/testing.

Invalidation is declared in one place: ``INVALIDATION_MAP`` lists, per
mutation kind, the key prefixes that mutation makes stale. Blueprints call
``invalidate_for(kind)`` once their write has committed; nothing else deletes keys.
"""

import hashlib
import json
import logging
import os
import time

import redis
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

# ── Key prefixes ─────────────────────────────────────────────────────────

LIST_PREFIX = "requests:list:"
DETAIL_PREFIX = "requests:detail:"
TIMELINE_PREFIX = "requests:timeline:"
STATS_PREFIX = "requests:stats:"
TEMPLATES_PREFIX = "templates:"

# mutation kind → prefixes it invalidates
INVALIDATION_MAP = {
    "create_request": (LIST_PREFIX, STATS_PREFIX),
    "update_draft": (LIST_PREFIX, STATS_PREFIX, DETAIL_PREFIX),
    "delete_draft": (LIST_PREFIX, STATS_PREFIX, DETAIL_PREFIX, TIMELINE_PREFIX),
    "transition": (LIST_PREFIX, STATS_PREFIX, DETAIL_PREFIX, TIMELINE_PREFIX),
    "update_deadline": (LIST_PREFIX, STATS_PREFIX, DETAIL_PREFIX),
    "template_change": (TEMPLATES_PREFIX,),
}

DEFAULT_TTL = 60

# ── In-memory fallback ───────────────────────────────────────────────────

_memory_store: dict = {}  # key → (value_json, expire_ts)


class _MemoryBackend:
    """Simple dict cache for dev/testing."""

    def get(self, key):
        entry = _memory_store.get(key)
        if entry is None:
            return None
        val, expires = entry
        if expires and time.time() > expires:
            _memory_store.pop(key, None)
            return None
        return val

    def setex(self, key, ttl_seconds, value):
        _memory_store[key] = (value, time.time() + ttl_seconds)

    def delete(self, *keys):
        for k in keys:
            _memory_store.pop(k, None)

    def keys(self, pattern):
        """Simple glob matching for 'prefix*' patterns."""
        if pattern.endswith("*"):
            prefix = pattern[:-1]
            return [k for k in _memory_store if k.startswith(prefix)]
        return [k for k in _memory_store if k == pattern]

    def flushdb(self):
        _memory_store.clear()

    def ping(self):
        return True


# ── Singleton cache backend ──────────────────────────────────────────────

_backend = None


def _get_backend():
    """Lazy-initialise Redis or fall back to in-memory."""
    global _backend
    if _backend is not None:
        return _backend

    redis_url = os.getenv("REDIS_URL")
    if redis_url and not redis_url.startswith("memory://"):
        try:
            _backend = redis.from_url(redis_url, decode_responses=True)
            _backend.ping()
            logger.info("Cache: using Redis at %s", redis_url.split("@")[-1])
        except redis.RedisError as exc:
            logger.warning("Redis unavailable (%s), falling back to memory cache", exc)
            _backend = _MemoryBackend()
    else:
        _backend = _MemoryBackend()
    return _backend


def _ttl():
    if has_app_context():
        return int(current_app.config.get("CACHE_TTL", DEFAULT_TTL))
    return DEFAULT_TTL


def make_key(prefix: str, params) -> str:
    """Stable key from a prefix plus JSON-serialisable parameters."""
    raw = json.dumps(params, sort_keys=True, default=str)
    return prefix + hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


# ── Public API ───────────────────────────────────────────────────────────


def cached(prefix: str, params, loader):
    """Return the cached value for (prefix, params), computing it with *loader* on a miss.

    *loader* must return a JSON-serialisable value.
    """
    key = make_key(prefix, params)
    backend = _get_backend()
    raw = backend.get(key)
    if raw is not None:
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            backend.delete(key)
    value = loader()
    backend.setex(key, _ttl(), json.dumps(value, default=str))
    return value


def invalidate_for(kind: str) -> int:
    """Drop every key the given mutation kind makes stale. Returns the number removed."""
    prefixes = INVALIDATION_MAP.get(kind)
    if prefixes is None:
        raise KeyError(f"Unknown mutation kind for cache invalidation: {kind}")
    backend = _get_backend()
    removed = 0
    for prefix in prefixes:
        keys = backend.keys(f"{prefix}*")
        if keys:
            backend.delete(*keys)
            removed += len(keys)
    logger.debug("Cache invalidated for %s: %d key(s)", kind, removed)
    return removed


def invalidate_all_cache():
    """Flush everything (used in tests and admin tools)."""
    _get_backend().flushdb()


def health_check():
    """Return cache backend status."""
    try:
        backend = _get_backend()
        backend.ping()
    except redis.RedisError as exc:
        return {"status": "error", "detail": str(exc)}
    backend_type = "memory" if isinstance(backend, _MemoryBackend) else "redis"
    return {"status": "ok", "backend": backend_type}
