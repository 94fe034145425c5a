"""
Analytics Layer
===============

Bounded Context: Stateful per-session fix processing.

Responsibilities:
- Speed plausibility with hysteresis (SpeedGate)
- Minimum-spaced path accumulation (PathRecorder)
- Latching loop closure (ClosureDetector)

Design Philosophy:
- Mutable accumulators (SpeedGate, PathRecorder)
- Immutable outputs (SpeedGateState, path tuples)
- Thread-safe via encapsulation
- Clear state management (reset())
"""

from territory_engine.analytics.speed_gate import SpeedDecision, SpeedGate, SpeedGateState
from territory_engine.analytics.recorder import ClaimPath, PathRecorder, RecordOutcome
from territory_engine.analytics.closure import ClosureDetector

__all__ = [
    "SpeedDecision",
    "SpeedGate",
    "SpeedGateState",
    "ClaimPath",
    "PathRecorder",
    "RecordOutcome",
    "ClosureDetector",
]
