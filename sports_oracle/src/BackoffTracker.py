"""BackoffTracker: Per-key failure tracking with exponential backoff.

When a match submission fails it enters a backoff period. The backoff
duration doubles with each consecutive failure, up to a maximum. A confirmed
submission clears the entry.

This prevents resubmitting a deterministically rejected result every cycle,
which would only burn transaction fees.

.. code-block:: python

    >>> tracker = BackoffTracker(base_backoff_seconds=60, max_backoff_seconds=3600)
    >>> tracker.record_failure(42)
    60.0
    >>> tracker.record_failure(42)
    120.0
    >>> tracker.is_active(42)
    False
    >>> tracker.record_success(42)
    >>> tracker.is_active(42)
    True
"""

from __future__ import annotations

import time
from collections.abc import Hashable
from dataclasses import dataclass


@dataclass
class BackoffStatus:
    """Tracks the failure history of a single key.

    :ivar consecutive_failures: Number of consecutive failures.
    :ivar backoff_until: Unix timestamp when backoff period ends.
    :ivar total_failures: Total failures since tracking began.
    """

    consecutive_failures: int = 0
    backoff_until: float = 0.0
    total_failures: int = 0


class BackoffTracker:
    """Exponential backoff keyed by match id (or any hashable key).

    Unknown keys are active. Keys are created on first failure and removed
    on success.

    :ivar base_backoff_seconds: Backoff after the first failure.
    :ivar max_backoff_seconds: Cap on backoff duration.
    """

    DEFAULT_BASE_BACKOFF_SECONDS = 60.0
    DEFAULT_MAX_BACKOFF_SECONDS = 3600.0  # 1 hour

    def __init__(
        self,
        base_backoff_seconds: float = DEFAULT_BASE_BACKOFF_SECONDS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
    ) -> None:
        """Initialize the tracker.

        :param base_backoff_seconds: Initial backoff duration after first failure.
        :param max_backoff_seconds: Maximum backoff duration (caps exponential growth).
        """
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self._status: dict[Hashable, BackoffStatus] = {}

    def record_failure(self, key: Hashable) -> float:
        """Record a failure and apply exponential backoff.

        :param key: Key that failed.
        :returns: The backoff duration in seconds.
        """
        status = self._status.setdefault(key, BackoffStatus())
        status.consecutive_failures += 1
        status.total_failures += 1

        # Exponential backoff: base * 2^(failures-1), capped at max
        backoff_seconds = min(
            self.base_backoff_seconds * (2 ** (status.consecutive_failures - 1)),
            self.max_backoff_seconds,
        )
        status.backoff_until = time.time() + backoff_seconds
        return float(backoff_seconds)

    def record_success(self, key: Hashable) -> None:
        """Forget the failure history of a key.

        :param key: Key that succeeded.
        """
        self._status.pop(key, None)

    def is_active(self, key: Hashable) -> bool:
        """Check if a key may be attempted now.

        :param key: Key to check.
        :returns: True if the key is unknown or its backoff has elapsed.
        """
        status = self._status.get(key)
        return status is None or time.time() >= status.backoff_until

    def get_status(self, key: Hashable) -> BackoffStatus | None:
        """Get the status of a key, or None if it has no recorded failures."""
        return self._status.get(key)

    def get_backoff_remaining(self, key: Hashable) -> float:
        """Get remaining backoff time for a key.

        :param key: Key to check.
        :returns: Seconds remaining in backoff, or 0 if not in backoff.
        """
        status = self._status.get(key)
        if status is None:
            return 0.0
        return max(0.0, status.backoff_until - time.time())
