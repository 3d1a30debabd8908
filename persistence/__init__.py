"""
Traffic Guard Persistence Layer

Public exports for Redis connection, override lists, daily stats and audit.
"""

from .connection import get_redis_client, get_optional_redis_client
from .ip_list_repository import IpListRepository
from .stats_repository import DailyStatsRepository
from .audit_logger import AuditLogger

__all__ = [
    "get_redis_client",
    "get_optional_redis_client",
    "IpListRepository",
    "DailyStatsRepository",
    "AuditLogger",
]
