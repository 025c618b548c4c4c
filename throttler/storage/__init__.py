from .base import StorageAdapter
from .memory import InMemoryAdapter
from .redis_adapter import RedisAdapter

__all__ = ['StorageAdapter', 'InMemoryAdapter', 'RedisAdapter']
