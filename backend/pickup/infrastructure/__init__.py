"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import get_redis, close_redis
from .expo_client import ExpoPushProvider

__all__ = ['get_redis', 'close_redis', 'ExpoPushProvider']
