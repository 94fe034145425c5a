"""
Path Recorder Module
====================

Accumulates the de-noised boundary of a claim attempt.

Design:
- Filters run in order: accuracy -> speed gate -> drift jump -> spacing
- Every fix with usable accuracy feeds the speed gate; a drift jump only
  stops the append
- Append-only ClaimPath while recording; cleared atomically by reset()
- Owns the SpeedGate and ClosureDetector of one session
- Caller must synchronize if multi-threaded (fixes arrive serially)
"""

from enum import Enum
from typing import Iterator, List, Optional, Tuple

from territory_engine.analytics.closure import ClosureDetector
from territory_engine.analytics.speed_gate import SpeedDecision, SpeedGate
from territory_engine.config import ClosureConfig, RecorderConfig, SpeedGateConfig
from territory_engine.geometry.shapes import GeoPoint, TimedFix, distance_m


class RecordOutcome(str, Enum):
    """What happened to one fix."""

    APPENDED = "appended"
    SKIPPED_TOO_CLOSE = "skipped_too_close"
    SKIPPED_REJECTED_BY_SPEED_GATE = "skipped_rejected_by_speed_gate"
    SKIPPED_LOW_ACCURACY = "skipped_low_accuracy"
    SKIPPED_JUMP = "skipped_jump"


class ClaimPath:
    """
    Ordered, append-only sequence of recorded points.

    Consecutive points are at least the recorder's minimum spacing apart.
    """

    def __init__(self):
        self._points: List[GeoPoint] = []

    def append(self, point: GeoPoint) -> None:
        self._points.append(point)

    def clear(self) -> None:
        self._points.clear()

    @property
    def points(self) -> Tuple[GeoPoint, ...]:
        """Immutable copy of the recorded points."""
        return tuple(self._points)

    @property
    def first(self) -> Optional[GeoPoint]:
        return self._points[0] if self._points else None

    @property
    def last(self) -> Optional[GeoPoint]:
        return self._points[-1] if self._points else None

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[GeoPoint]:
        return iter(tuple(self._points))

    def __getitem__(self, index):
        return self._points[index]

    def __repr__(self) -> str:
        return f"ClaimPath(points={len(self._points)})"


class PathRecorder:
    """
    Turns raw fixes into a minimum-spaced claim path.

    Usage:
        recorder = PathRecorder(RecorderConfig())

        outcome = recorder.try_record(fix)
        if recorder.halted:
            ...  # sustained overspeed
        if recorder.is_closed:
            ...  # loop closed, validate
    """

    def __init__(
        self,
        config: Optional[RecorderConfig] = None,
        speed_gate: Optional[SpeedGate] = None,
        closure_detector: Optional[ClosureDetector] = None,
        speed_config: Optional[SpeedGateConfig] = None,
        closure_config: Optional[ClosureConfig] = None,
    ):
        """
        Initialize recorder.

        Args:
            config: Recording filters (spacing, accuracy, jump)
            speed_gate: Gate instance (built from speed_config if None)
            closure_detector: Detector instance (built from closure_config if None)
            speed_config: Gate thresholds when no gate is given
            closure_config: Closure thresholds when no detector is given
        """
        self.config = config or RecorderConfig()
        self.speed_gate = speed_gate or SpeedGate(speed_config)
        self.closure_detector = closure_detector or ClosureDetector(closure_config)

        self.path = ClaimPath()
        self._cumulative_distance_m = 0.0
        self._jump_anchor: Optional[GeoPoint] = None
        self._last_decision: Optional[SpeedDecision] = None

    @property
    def cumulative_distance_m(self) -> float:
        return self._cumulative_distance_m

    @property
    def halted(self) -> bool:
        return self.speed_gate.halted

    @property
    def is_closed(self) -> bool:
        return self.closure_detector.is_closed

    @property
    def last_decision(self) -> Optional[SpeedDecision]:
        """Speed decision of the most recent fix (None when it never reached the gate)."""
        return self._last_decision

    def try_record(self, fix: TimedFix) -> RecordOutcome:
        """
        Run one fix through the filters and append it if it survives.

        Every fix with usable accuracy feeds the speed gate, including
        fixes later dropped as drift jumps.

        Args:
            fix: Incoming fix (device frame)

        Returns:
            RecordOutcome describing what happened
        """
        self._last_decision = None

        accuracy = fix.horizontal_accuracy_m
        if not fix.has_valid_accuracy or accuracy > self.config.max_horizontal_accuracy_m:
            return RecordOutcome.SKIPPED_LOW_ACCURACY

        decision = self.speed_gate.evaluate(fix)
        self._last_decision = decision
        if decision is SpeedDecision.REJECT_AND_HALT:
            return RecordOutcome.SKIPPED_REJECTED_BY_SPEED_GATE

        is_jump = self._is_drift_jump(fix.point)
        self._jump_anchor = fix.point
        if is_jump:
            return RecordOutcome.SKIPPED_JUMP

        last = self.path.last
        if last is None:
            self.path.append(fix.point)
            return RecordOutcome.APPENDED

        step_m = distance_m(last, fix.point)
        if step_m < self.config.min_spacing_m:
            return RecordOutcome.SKIPPED_TOO_CLOSE

        self.path.append(fix.point)
        self._cumulative_distance_m += step_m
        self.closure_detector.check_closure(self.path.points)
        return RecordOutcome.APPENDED

    def _is_drift_jump(self, point: GeoPoint) -> bool:
        limit = self.config.max_jump_distance_m
        if limit is None or self._jump_anchor is None:
            return False
        return distance_m(self._jump_anchor, point) > limit

    def reset(self) -> None:
        """Clear path, distance, closure and gate together."""
        self.path.clear()
        self._cumulative_distance_m = 0.0
        self._jump_anchor = None
        self._last_decision = None
        self.speed_gate.reset()
        self.closure_detector.reset()

    def __repr__(self) -> str:
        return (
            f"PathRecorder(points={len(self.path)}, "
            f"distance={self._cumulative_distance_m:.1f}m, closed={self.is_closed})"
        )
