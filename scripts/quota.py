"""
YouTube API quota accounting for a single harvest run.

YouTube Data API v3 has a daily quota of 10,000 units (default).
This module tallies the units spent by this run. By default it only counts;
when a limit is configured it warns near the limit and refuses to issue a
call that would push usage past it.

Nothing is persisted: every run starts counting from zero.
Thread-safe for parallel comment fetching.

Configuration is loaded from the settings.yaml settings section or environment variables.
"""

import threading
from datetime import datetime
from typing import Optional

from config import get_config
from logger import get_logger

log = get_logger("quota")


class QuotaExhaustedError(Exception):
    """Raised when API quota is exhausted or insufficient for operation."""
    pass


class QuotaTracker:
    """
    Track YouTube API quota usage for the current run.

    Features:
    - Thread-safe counters
    - Optional limit (0 or None = unlimited, tally only)
    - Warning once usage crosses the warn threshold of a configured limit
    - Hard stop (QuotaExhaustedError) before a call that cannot be afforded
    """

    # API operation costs (units)
    # See: https://developers.google.com/youtube/v3/determine_quota_cost
    COSTS = {
        'channels.list': 1,
        'commentThreads.list': 1,
        'search.list': 100,  # Very expensive
    }

    def __init__(
        self,
        daily_limit: Optional[int] = None,
        warn_threshold: Optional[float] = None,
    ):
        """
        Args:
            daily_limit: Quota limit in units (default: from config; 0 = unlimited)
            warn_threshold: Fraction of quota at which to warn (default: from config or 0.8)
        """
        cfg = get_config()
        self.daily_limit = daily_limit if daily_limit is not None else cfg.quota_limit
        self.warn_threshold = warn_threshold if warn_threshold is not None else cfg.quota_warn_threshold

        self.used = 0
        self.calls = 0
        self.operations = {}  # Units by operation type
        self.session_start = datetime.now()
        self._warned = False

        self._lock = threading.Lock()

        log.debug(f"Quota tracker initialized: limit={self.daily_limit or 'unlimited'}, "
                  f"warn={self.warn_threshold}")

    @property
    def limited(self) -> bool:
        return bool(self.daily_limit)

    def cost_of(self, operation: str, count: int = 1) -> int:
        return self.COSTS.get(operation, 1) * count

    def spend(self, operation: str, count: int = 1) -> int:
        """
        Record quota usage for an operation about to be issued. Thread-safe.

        Args:
            operation: API operation name (e.g., 'search.list')
            count: Number of API calls

        Returns:
            Cost in quota units

        Raises:
            QuotaExhaustedError: If a limit is set and the call would exceed it.
                Nothing is recorded.
        """
        cost = self.cost_of(operation, count)

        with self._lock:
            if self.limited and self.used + cost > self.daily_limit:
                raise QuotaExhaustedError(
                    f"Insufficient quota for {operation}: need {cost}, "
                    f"have {max(0, self.daily_limit - self.used)}"
                )
            self.used += cost
            self.calls += count
            self.operations[operation] = self.operations.get(operation, 0) + cost
            current_used = self.used

        log.debug(f"Quota: +{cost} for {operation} x{count} "
                  f"(total: {current_used}/{self.daily_limit or 'unlimited'})")

        self._check_thresholds()

        return cost

    def _check_thresholds(self):
        """Warn once when usage crosses the warn threshold."""
        if not self.limited:
            return
        with self._lock:
            usage_fraction = self.used / self.daily_limit
            if self._warned or usage_fraction < self.warn_threshold:
                return
            self._warned = True

        log.warning(f"QUOTA WARNING: {self.used}/{self.daily_limit} ({usage_fraction:.1%})")

    def remaining(self) -> Optional[int]:
        """Get remaining quota units, or None when unlimited. Thread-safe."""
        if not self.limited:
            return None
        with self._lock:
            return max(0, self.daily_limit - self.used)

    def can_afford(self, operation: str, count: int = 1) -> bool:
        """Check if an operation fits in the remaining quota. Thread-safe."""
        remaining = self.remaining()
        return remaining is None or self.cost_of(operation, count) <= remaining

    def get_summary(self) -> dict:
        """Get summary of quota usage for logging/reporting."""
        with self._lock:
            used = self.used
            calls = self.calls
            operations = self.operations.copy()
        return {
            'used': used,
            'calls': calls,
            'remaining': max(0, self.daily_limit - used) if self.limited else None,
            'limit': self.daily_limit if self.limited else None,
            'used_fraction': used / self.daily_limit if self.limited else None,
            'session_duration': str(datetime.now() - self.session_start),
            'by_operation': operations,
        }

    def log_summary(self):
        """Log a summary of quota usage."""
        summary = self.get_summary()
        if summary['limit'] is None:
            log.info(f"Quota summary: {summary['used']} units in {summary['calls']} API calls")
        else:
            log.info(f"Quota summary: {summary['used']}/{summary['limit']} "
                     f"({summary['used_fraction']:.1%}) in {summary['calls']} API calls")
        for op, cost in sorted(summary['by_operation'].items(), key=lambda x: -x[1]):
            log.debug(f"  {op}: {cost} units")
