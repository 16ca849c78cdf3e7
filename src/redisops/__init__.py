"""
redisops - Batch operations against a Redis-compatible key-value store
"""

__version__ = "0.1.0"

from .core import Dispatcher
from .errors import RedisOpsError

__all__ = ["Dispatcher", "RedisOpsError"]
