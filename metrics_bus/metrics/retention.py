from dataclasses import dataclass
from typing import List, Optional

from metrics_bus.domain.models import LatencyPoint

DEFAULT_MAX_AGE_MS = 35 * 24 * 60 * 60 * 1000
DEFAULT_MAX_POINTS = 10_000


@dataclass(frozen=True)
class RetentionPolicy:
    """Age and count bounds applied to every latency series."""

    max_age_ms: int = DEFAULT_MAX_AGE_MS
    max_points: int = DEFAULT_MAX_POINTS

    def trim(
        self, points: List[LatencyPoint], now_ms: Optional[int] = None
    ) -> List[LatencyPoint]:
        """Drop points older than the window and keep at most the newest N.

        The window is measured back from ``now_ms`` or, when omitted, from the
        newest point, so trimming an already trimmed series changes nothing.
        """
        if not points:
            return points
        reference = points[-1].timestamp if now_ms is None else now_ms
        cutoff = reference - self.max_age_ms
        if len(points) <= self.max_points and points[0].timestamp >= cutoff:
            return points
        kept = [p for p in points if p.timestamp >= cutoff]
        if len(kept) > self.max_points:
            kept = kept[-self.max_points :]
        return kept
