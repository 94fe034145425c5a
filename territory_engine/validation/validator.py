"""
Claim Validator Module
======================

Accept/reject decision for a closed claim path.

Design:
- Pure: no I/O, no state; same path -> same result
- Ordered, short-circuiting checks (cheapest first):
  point count -> walked distance -> self-intersection -> area
- Failures are data (FailureReason), not exceptions
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from territory_engine.config import ValidationConfig
from territory_engine.geometry.area import enclosed_area_m2
from territory_engine.geometry.intersection import find_self_intersection
from territory_engine.geometry.shapes import GeoPoint, path_length_m

logger = logging.getLogger(__name__)


class FailureReason(str, Enum):
    """Why a claim was rejected (or failed mid-recording)."""

    INSUFFICIENT_POINTS = "insufficient_points"
    INSUFFICIENT_DISTANCE = "insufficient_distance"
    SELF_INTERSECTING = "self_intersecting"
    AREA_TOO_SMALL = "area_too_small"
    OVERSPEED = "overspeed"
    POINT_IN_TERRITORY = "point_in_territory"
    PATH_CROSSES_TERRITORY = "path_crosses_territory"


@dataclass(frozen=True)
class ValidationResult:
    """
    Immutable validation outcome.

    Attributes:
        is_valid: Claim accepted
        reason: Failure reason (None when valid)
        area_m2: Enclosed area (0.0 when not computed)
        message: Human-readable explanation
    """

    is_valid: bool
    reason: Optional[FailureReason] = None
    area_m2: float = 0.0
    message: str = ""

    def __post_init__(self):
        if self.is_valid and self.reason is not None:
            raise ValueError(f"Valid result cannot carry a failure reason, got {self.reason}")
        if not self.is_valid and self.reason is None:
            raise ValueError("Invalid result must carry a failure reason")

    def __str__(self) -> str:
        if self.is_valid:
            return f"VALID ({self.area_m2:.0f} m²)"
        return f"INVALID [{self.reason.value}] {self.message}"


class ClaimValidator:
    """
    Validates closed claim paths.

    Usage:
        validator = ClaimValidator(ValidationConfig())
        result = validator.validate(path, cumulative_distance_m)
        if not result.is_valid:
            print(result.reason, result.message)
    """

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or ValidationConfig()

    def validate(
        self,
        path: Sequence[GeoPoint],
        cumulative_distance_m: Optional[float] = None,
    ) -> ValidationResult:
        """
        Validate a closed path.

        Args:
            path: Recorded path points
            cumulative_distance_m: Walked distance as accumulated by the
                                   recorder (recomputed from path if None)

        Returns:
            ValidationResult
        """
        cfg = self.config

        if len(path) < cfg.min_points:
            return ValidationResult(
                is_valid=False,
                reason=FailureReason.INSUFFICIENT_POINTS,
                message=f"Path has {len(path)} points, needs at least {cfg.min_points}",
            )

        walked_m = cumulative_distance_m if cumulative_distance_m is not None else path_length_m(path)
        if walked_m < cfg.min_distance_m:
            return ValidationResult(
                is_valid=False,
                reason=FailureReason.INSUFFICIENT_DISTANCE,
                message=f"Walked {walked_m:.1f} m, needs at least {cfg.min_distance_m:.0f} m",
            )

        crossing = find_self_intersection(path, cfg.skip_window)
        if crossing is not None:
            logger.debug("Self-intersection between edges %d and %d", *crossing)
            return ValidationResult(
                is_valid=False,
                reason=FailureReason.SELF_INTERSECTING,
                message=f"Path crosses itself (edges {crossing[0]} and {crossing[1]})",
            )

        area = enclosed_area_m2(path)
        if area < cfg.min_area_m2:
            return ValidationResult(
                is_valid=False,
                reason=FailureReason.AREA_TOO_SMALL,
                area_m2=area,
                message=f"Enclosed area {area:.1f} m² is below the minimum {cfg.min_area_m2:.0f} m²",
            )

        return ValidationResult(is_valid=True, area_m2=area, message=f"Claim accepted ({area:.0f} m²)")

    def validate_session(self, session) -> ValidationResult:
        """Validate a ClaimSession snapshot (path + cumulative distance)."""
        return self.validate(session.path, session.cumulative_distance_m)
