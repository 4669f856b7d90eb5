"""
Infrastructure layer - external system integrations.
"""

from .redis_client import get_redis, close_redis

__all__ = ["get_redis", "close_redis"]
