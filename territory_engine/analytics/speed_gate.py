"""
Speed Gate Module
=================

Stateful plausibility filter for successive location fixes.

Design:
- Mutable state (last fix, rolling speed window, streak counter)
- Immutable snapshots (SpeedGateState)
- Hysteresis: warmup fixes and a consecutive-violation streak tolerate
  GPS jitter; sustained overspeed halts the claim
- Halting is terminal until reset()
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Optional

from territory_engine.config import SpeedGateConfig
from territory_engine.geometry.shapes import TimedFix, distance_m

MS_TO_KMH = 3.6


class SpeedDecision(str, Enum):
    """Outcome of evaluating one fix."""

    ACCEPT = "accept"
    ACCEPT_WITH_WARNING = "accept_with_warning"
    REJECT_AND_HALT = "reject_and_halt"


@dataclass(frozen=True)
class SpeedGateState:
    """
    Immutable snapshot of the gate.

    Attributes:
        current_speed_kmh: Rolling-window mean speed (reported speed)
        is_warning: Advisory warning active
        consecutive_violations: Current overspeed streak length
        fixes_seen: Fixes evaluated since last reset
        halted: Gate has issued REJECT_AND_HALT
    """

    current_speed_kmh: float = 0.0
    is_warning: bool = False
    consecutive_violations: int = 0
    fixes_seen: int = 0
    halted: bool = False


class SpeedGate:
    """
    Rejects or flags fixes implying implausible movement speed.

    The speed compared against the thresholds is the smaller of the
    instantaneous speed and the window mean: a lone spike is averaged down,
    and a normal fix right after a spike is not penalised by the spike still
    sitting in the window.

    Usage:
        gate = SpeedGate(SpeedGateConfig())

        decision = gate.evaluate(fix)
        if decision is SpeedDecision.REJECT_AND_HALT:
            ...  # fail the claim

        state = gate.snapshot()  # Immutable
    """

    def __init__(self, config: Optional[SpeedGateConfig] = None):
        self.config = config or SpeedGateConfig()

        self._last_fix: Optional[TimedFix] = None
        self._window: Deque[float] = deque(maxlen=self.config.window_size)
        self._fixes_seen = 0
        self._violations = 0
        self._is_warning = False
        self._halted = False

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def current_speed_kmh(self) -> float:
        if not self._window:
            return 0.0
        return sum(self._window) / len(self._window)

    def evaluate(self, fix: TimedFix) -> SpeedDecision:
        """
        Evaluate one fix against the last one.

        Args:
            fix: Incoming fix (device frame)

        Returns:
            SpeedDecision for this fix
        """
        if self._halted:
            return SpeedDecision.REJECT_AND_HALT

        self._fixes_seen += 1

        if self._last_fix is None:
            self._last_fix = fix
            return SpeedDecision.ACCEPT

        elapsed_s = (fix.timestamp - self._last_fix.timestamp).total_seconds()
        if elapsed_s <= 0:
            # Duplicate or out-of-order timestamp: no speed sample
            return SpeedDecision.ACCEPT

        instantaneous = distance_m(self._last_fix.point, fix.point) / elapsed_s * MS_TO_KMH
        self._window.append(instantaneous)
        self._last_fix = fix

        effective = min(instantaneous, self.current_speed_kmh)
        in_warmup = self._fixes_seen <= self.config.warmup_fixes

        if effective > self.config.stop_speed_kmh and not in_warmup:
            self._violations += 1
            self._is_warning = True
            if self._violations >= self.config.required_streak:
                self._halted = True
                return SpeedDecision.REJECT_AND_HALT
            return SpeedDecision.ACCEPT_WITH_WARNING

        self._violations = 0

        if effective > self.config.warning_speed_kmh:
            self._is_warning = True
            return SpeedDecision.ACCEPT_WITH_WARNING

        self._is_warning = False
        return SpeedDecision.ACCEPT

    def snapshot(self) -> SpeedGateState:
        """Immutable copy of the current state."""
        return SpeedGateState(
            current_speed_kmh=self.current_speed_kmh,
            is_warning=self._is_warning,
            consecutive_violations=self._violations,
            fixes_seen=self._fixes_seen,
            halted=self._halted,
        )

    def reset(self) -> None:
        """Clear all state (new session)."""
        self._last_fix = None
        self._window.clear()
        self._fixes_seen = 0
        self._violations = 0
        self._is_warning = False
        self._halted = False

    def __repr__(self) -> str:
        return (
            f"SpeedGate(speed={self.current_speed_kmh:.1f}km/h, "
            f"violations={self._violations}, halted={self._halted})"
        )
