"""
Response caching package.

ResponseCache holds rendered responses for a fixed TTL; CacheGate wraps the
route handlers of a resource family, serving reads from the cache and
invalidating the family's entries on every write.
"""

from .response_cache import CacheEntry, ResponseCache
from .cache_gate import CacheGate, CachedResponse, GateResult, RequestDescriptor

__all__ = [
    "CacheEntry",
    "ResponseCache",
    "CacheGate",
    "CachedResponse",
    "GateResult",
    "RequestDescriptor",
]
