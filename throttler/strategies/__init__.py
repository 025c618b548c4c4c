from .base import ThrottlingStrategy, validate_config
from .counter import SimpleCounterStrategy
from .token_bucket import TokenBucketStrategy

__all__ = ['ThrottlingStrategy', 'validate_config', 'SimpleCounterStrategy', 'TokenBucketStrategy']
