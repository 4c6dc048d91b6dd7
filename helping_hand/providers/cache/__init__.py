"""Cache providers.

MemoryCacheProvider holds adapter responses for a few minutes so repeated
identical searches skip the network.  A shared backend can replace it by
implementing ICacheProvider.
"""

from helping_hand.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
