"""Cache layer for kubedeps.

Submodules:
    resource_cache  -- Request-scoped memoization of cluster list calls.
"""

from kubedeps.cache.resource_cache import ResourceCache

__all__ = ["ResourceCache"]
