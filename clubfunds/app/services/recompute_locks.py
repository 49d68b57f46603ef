"""
Recompute lock registry.

Serializes summary refreshes per (club, level) across workers using Redis
locks, so two refreshes of the same node never interleave their
read-compute-write cycles.
"""

from clubfunds.app.core.config import settings
from clubfunds.app.models.ledger_enums import OwnershipLevel

LOCK_PREFIX = "clubfunds:recompute"


def lock_name(club_id: int, level: OwnershipLevel) -> str:
    return f"{LOCK_PREFIX}:{club_id}:{level.value}"


class RecomputeLockRegistry:
    """
    Hands out Redis locks keyed by (club_id, level).

    Args:
        redis: async Redis client
        timeout: seconds after which a held lock expires on its own
        blocking_timeout: seconds to wait for the lock before giving up
            (redis raises LockError, which the coordinator retries)
    """

    def __init__(self, redis, timeout: float = None, blocking_timeout: float = None):
        self._redis = redis
        self._timeout = timeout or settings.recompute_lock_timeout_seconds
        self._blocking_timeout = blocking_timeout or settings.recompute_lock_timeout_seconds

    def lock(self, club_id: int, level: OwnershipLevel):
        return self._redis.lock(
            lock_name(club_id, level),
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
