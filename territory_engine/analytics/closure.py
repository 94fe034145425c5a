"""
Closure Detector Module
=======================

Decides when a walked path has returned near its own start.

Design:
- Latching flag: is_closed only goes False -> True until reset()
- Geofence-style radius instead of exact coincidence (GPS noise)
"""

from typing import Optional, Sequence

from territory_engine.config import ClosureConfig
from territory_engine.geometry.shapes import GeoPoint, distance_m


class ClosureDetector:
    """
    Latching loop-closure detector.

    Usage:
        detector = ClosureDetector(ClosureConfig())
        if detector.check_closure(path.points):
            ...  # validate the claim
    """

    def __init__(self, config: Optional[ClosureConfig] = None):
        self.config = config or ClosureConfig()
        self._is_closed = False

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    def check_closure(self, path: Sequence[GeoPoint]) -> bool:
        """
        Evaluate closure for the current path.

        Idempotent: once closed, stays closed regardless of later input.

        Args:
            path: Recorded path points

        Returns:
            True if the loop is (or was already) closed
        """
        if self._is_closed:
            return True

        if len(path) < self.config.min_points:
            return False

        if distance_m(path[-1], path[0]) <= self.config.closure_radius_m:
            self._is_closed = True

        return self._is_closed

    @staticmethod
    def distance_to_start(path: Sequence[GeoPoint]) -> float:
        """Gap between the last and first point (0.0 for < 2 points)."""
        if len(path) < 2:
            return 0.0
        return distance_m(path[-1], path[0])

    def reset(self) -> None:
        self._is_closed = False
