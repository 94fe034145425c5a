"""
Claim Pipeline Module
=====================

Bounded Context: Orchestration of one territory claim attempt.

Design:
- Orchestrator: Combines recorder, speed gate, closure, validation, collision
- Explicit state machine (ClaimState); illegal transitions raise ClaimStateError
- Builder pattern: Fluent configuration
- Territory snapshot is an immutable tuple swapped by reference; every check
  captures one reference, so a refresh from another thread is safe

State machine:
    IDLE → RECORDING → {RECORDING, CLOSED} → {ACCEPTED | REJECTED} → IDLE
    RECORDING → FAILED → IDLE   (overspeed, collision violation)
    any → IDLE                  (cancel)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Tuple

from territory_engine.analytics.recorder import PathRecorder, RecordOutcome
from territory_engine.analytics.speed_gate import SpeedDecision, SpeedGate, SpeedGateState
from territory_engine.analytics.closure import ClosureDetector
from territory_engine.collision.engine import (
    CollisionEngine,
    CollisionKind,
    CollisionResult,
    Territory,
)
from territory_engine.config import EngineConfig
from territory_engine.geometry.shapes import GeoPoint, TimedFix
from territory_engine.validation.validator import ClaimValidator, FailureReason, ValidationResult

logger = logging.getLogger(__name__)


class ClaimStateError(RuntimeError):
    """Operation not allowed in the current claim state."""


class ClaimState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    CLOSED = "closed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    FAILED = "failed"


_COLLISION_REASONS = {
    CollisionKind.POINT_IN_TERRITORY: FailureReason.POINT_IN_TERRITORY,
    CollisionKind.PATH_CROSSES_TERRITORY: FailureReason.PATH_CROSSES_TERRITORY,
}


@dataclass(frozen=True)
class ClaimSession:
    """
    Immutable snapshot of the active claim session.

    Attributes:
        owner_id: Claiming user
        path: Recorded points (device frame)
        started_at: When recording started
        is_closed: Loop closure reached
        cumulative_distance_m: Walked distance along recorded points
        speed_state: Speed gate snapshot
    """

    owner_id: str
    path: Tuple[GeoPoint, ...]
    started_at: datetime
    is_closed: bool
    cumulative_distance_m: float
    speed_state: SpeedGateState

    @property
    def point_count(self) -> int:
        return len(self.path)


@dataclass(frozen=True)
class StepResult:
    """
    What one fix did to the session.

    Attributes:
        state: Claim state after the fix
        outcome: Recorder outcome (None when the fix was ignored)
        speed_decision: Speed gate decision (None when the gate was not reached)
        collision: Collision/proximity check run for this fix, if any
        validation: Validation result when this fix closed the loop
        failure_reason: Set when this fix failed the session
    """

    state: ClaimState
    outcome: Optional[RecordOutcome] = None
    speed_decision: Optional[SpeedDecision] = None
    collision: Optional[CollisionResult] = None
    validation: Optional[ValidationResult] = None
    failure_reason: Optional[FailureReason] = None

    @property
    def appended(self) -> bool:
        return self.outcome is RecordOutcome.APPENDED

    @property
    def is_warning(self) -> bool:
        return self.speed_decision is SpeedDecision.ACCEPT_WITH_WARNING


class ClaimPipeline:
    """
    Drives one claim attempt at a time.

    Usage:
        pipeline = (
            ClaimPipelineBuilder()
            .with_config(EngineConfig.from_yaml("config/claim_engine.yaml"))
            .with_territories(territories)
            .build()
        )

        pipeline.start(owner_id="u-1")
        for fix in fixes:
            step = pipeline.on_fix(fix)
            if step.state is not ClaimState.RECORDING:
                break

        if pipeline.state is ClaimState.ACCEPTED:
            publisher.publish_claim(pipeline.build_payload())
        pipeline.finish()
    """

    def __init__(
        self,
        config: EngineConfig,
        recorder: PathRecorder,
        validator: ClaimValidator,
        collision_engine: CollisionEngine,
        territories: Iterable[Territory] = (),
    ):
        """
        Initialize pipeline with its collaborators.

        Args:
            config: Engine configuration
            recorder: Path recorder (owns speed gate and closure detector)
            validator: Claim validator
            collision_engine: Collision engine
            territories: Initial territory snapshot
        """
        self.config = config
        self.recorder = recorder
        self.validator = validator
        self.collision_engine = collision_engine

        self._territories: Tuple[Territory, ...] = tuple(territories)
        self._state = ClaimState.IDLE
        self._owner_id: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._validation: Optional[ValidationResult] = None
        self._failure_reason: Optional[FailureReason] = None
        self._failure_message: Optional[str] = None
        self._last_collision: CollisionResult = CollisionResult.safe()
        self._last_collision_check: Optional[datetime] = None

    # ─────────────────────────────────────────────────────────────────────
    # Read-only views
    # ─────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> ClaimState:
        return self._state

    @property
    def territories(self) -> Tuple[Territory, ...]:
        return self._territories

    @property
    def validation_result(self) -> Optional[ValidationResult]:
        return self._validation

    @property
    def failure_reason(self) -> Optional[FailureReason]:
        return self._failure_reason

    @property
    def failure_message(self) -> Optional[str]:
        return self._failure_message

    @property
    def last_collision(self) -> CollisionResult:
        return self._last_collision

    @property
    def session(self) -> Optional[ClaimSession]:
        """Snapshot of the current session (None when IDLE)."""
        if self._state is ClaimState.IDLE:
            return None
        return ClaimSession(
            owner_id=self._owner_id,
            path=self.recorder.path.points,
            started_at=self._started_at,
            is_closed=self.recorder.is_closed,
            cumulative_distance_m=self.recorder.cumulative_distance_m,
            speed_state=self.recorder.speed_gate.snapshot(),
        )

    def distance_to_start(self) -> float:
        return ClosureDetector.distance_to_start(self.recorder.path.points)

    # ─────────────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────────────

    def start(self, owner_id: str, started_at: Optional[datetime] = None) -> None:
        """
        Begin recording a new claim.

        Raises:
            ClaimStateError: If a session is already in progress
            ValueError: If owner_id is empty
        """
        if self._state is not ClaimState.IDLE:
            raise ClaimStateError(f"Cannot start a claim while {self._state.value}")
        if not owner_id:
            raise ValueError("owner_id must be non-empty")

        self._clear()
        self._owner_id = owner_id
        self._started_at = started_at or datetime.now(timezone.utc)
        self._state = ClaimState.RECORDING
        logger.info("Claim started for %s", owner_id)

    def on_fix(self, fix: TimedFix) -> StepResult:
        """
        Process one location fix.

        Fixes arriving outside RECORDING are ignored.

        Args:
            fix: Location fix (device frame)

        Returns:
            StepResult describing the effect of the fix
        """
        if self._state is not ClaimState.RECORDING:
            logger.debug("Ignoring fix while %s", self._state.value)
            return StepResult(state=self._state)

        first_point = len(self.recorder.path) == 0
        outcome = self.recorder.try_record(fix)
        decision = self.recorder.last_decision

        if self.recorder.halted:
            speed = self.recorder.speed_gate.current_speed_kmh
            self._fail(FailureReason.OVERSPEED, f"Sustained speed {speed:.1f} km/h exceeds the limit")
            return StepResult(
                state=self._state,
                outcome=outcome,
                speed_decision=decision,
                failure_reason=self._failure_reason,
            )

        if decision is SpeedDecision.ACCEPT_WITH_WARNING:
            logger.info("Speed warning: %.1f km/h", self.recorder.speed_gate.current_speed_kmh)

        if outcome is not RecordOutcome.APPENDED:
            return StepResult(state=self._state, outcome=outcome, speed_decision=decision)

        territories = self._territories
        if first_point:
            collision = self.collision_engine.check_start(fix.point, self._owner_id, territories)
        else:
            # Newest edge only; the full path is re-checked by on_timer_tick()
            newest_edge = self.recorder.path.points[-2:]
            collision = self.collision_engine.check_comprehensive(newest_edge, self._owner_id, territories)
        self._last_collision = collision

        if collision.has_collision:
            self._fail(_COLLISION_REASONS[collision.kind], collision.message)
            return StepResult(
                state=self._state,
                outcome=outcome,
                speed_decision=decision,
                collision=collision,
                failure_reason=self._failure_reason,
            )

        validation = None
        if self.recorder.is_closed:
            validation = self._close_and_validate()

        return StepResult(
            state=self._state,
            outcome=outcome,
            speed_decision=decision,
            collision=collision,
            validation=validation,
        )

    def on_timer_tick(self) -> CollisionResult:
        """
        Full path-vs-territories check (coarse cadence).

        Returns:
            The check result; outside RECORDING the last known result
        """
        if self._state is not ClaimState.RECORDING:
            return self._last_collision

        result = self.collision_engine.check_comprehensive(
            self.recorder.path.points, self._owner_id, self._territories
        )
        self._last_collision = result
        if result.has_collision:
            self._fail(_COLLISION_REASONS[result.kind], result.message)
        return result

    def tick_if_due(self, now: datetime) -> Optional[CollisionResult]:
        """Run on_timer_tick() when the configured interval has elapsed."""
        last = self._last_collision_check
        if last is not None and (now - last).total_seconds() < self.config.collision_check_interval_s:
            return None
        self._last_collision_check = now
        return self.on_timer_tick()

    def cancel(self) -> None:
        """Abandon the current attempt from any state."""
        if self._state is not ClaimState.IDLE:
            logger.info("Claim cancelled while %s", self._state.value)
        self._clear()

    def finish(self) -> None:
        """
        Acknowledge a terminal outcome and return to IDLE.

        Raises:
            ClaimStateError: If the session has no terminal outcome yet
        """
        if self._state not in (ClaimState.ACCEPTED, ClaimState.REJECTED, ClaimState.FAILED):
            raise ClaimStateError(f"Cannot finish a claim while {self._state.value}")
        self._clear()

    def update_territories(self, territories: Iterable[Territory]) -> None:
        """Swap the territory snapshot."""
        snapshot = tuple(territories)
        self._territories = snapshot
        logger.debug("Territory snapshot updated (%d territories)", len(snapshot))

    def build_payload(self):
        """
        Upload payload of the accepted claim.

        Returns:
            territory_store.schemas.ClaimPayload

        Raises:
            ClaimStateError: If the claim is not ACCEPTED
        """
        if self._state is not ClaimState.ACCEPTED:
            raise ClaimStateError(f"No accepted claim to upload (state {self._state.value})")

        from territory_store.schemas.claim import ClaimPayload

        return ClaimPayload.from_path(
            user_id=self._owner_id,
            path=self.recorder.path.points,
            area_m2=self._validation.area_m2,
            started_at=self._started_at,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────

    def _close_and_validate(self) -> ValidationResult:
        self._state = ClaimState.CLOSED
        session = self.session
        result = self.validator.validate_session(session)
        self._validation = result

        if result.is_valid:
            self._state = ClaimState.ACCEPTED
            logger.info(
                "Claim accepted for %s: %.0f m² from %d points",
                self._owner_id, result.area_m2, session.point_count,
            )
        else:
            self._state = ClaimState.REJECTED
            logger.info("Claim rejected for %s: %s", self._owner_id, result.message)
        return result

    def _fail(self, reason: FailureReason, message: Optional[str]) -> None:
        self._state = ClaimState.FAILED
        self._failure_reason = reason
        self._failure_message = message
        logger.warning("Claim failed for %s [%s]: %s", self._owner_id, reason.value, message)

    def _clear(self) -> None:
        self.recorder.reset()
        self._state = ClaimState.IDLE
        self._owner_id = None
        self._started_at = None
        self._validation = None
        self._failure_reason = None
        self._failure_message = None
        self._last_collision = CollisionResult.safe()
        self._last_collision_check = None


class ClaimPipelineBuilder:
    """
    Builder for ClaimPipeline.

    Design:
    - Fluent API for construction
    - Sensible defaults (EngineConfig())
    - Explicit components override the ones derived from config

    Usage:
        pipeline = (
            ClaimPipelineBuilder()
            .with_config(config)
            .with_territories(territories)
            .build()
        )
    """

    def __init__(self):
        self._config: Optional[EngineConfig] = None
        self._speed_gate: Optional[SpeedGate] = None
        self._validator: Optional[ClaimValidator] = None
        self._collision_engine: Optional[CollisionEngine] = None
        self._territories: Tuple[Territory, ...] = ()

    def with_config(self, config: EngineConfig) -> "ClaimPipelineBuilder":
        """Set engine configuration."""
        self._config = config
        return self

    def with_speed_gate(self, speed_gate: SpeedGate) -> "ClaimPipelineBuilder":
        """Set a custom speed gate."""
        self._speed_gate = speed_gate
        return self

    def with_validator(self, validator: ClaimValidator) -> "ClaimPipelineBuilder":
        """Set a custom validator."""
        self._validator = validator
        return self

    def with_collision_engine(self, engine: CollisionEngine) -> "ClaimPipelineBuilder":
        """Set a custom collision engine."""
        self._collision_engine = engine
        return self

    def with_territories(self, territories: Iterable[Territory]) -> "ClaimPipelineBuilder":
        """Set the initial territory snapshot."""
        self._territories = tuple(territories)
        return self

    def build(self) -> ClaimPipeline:
        """
        Build the pipeline.

        Returns:
            Configured pipeline in IDLE state
        """
        config = self._config or EngineConfig()

        recorder = PathRecorder(
            config=config.recorder,
            speed_gate=self._speed_gate or SpeedGate(config.speed_gate),
            closure_detector=ClosureDetector(config.closure),
        )

        return ClaimPipeline(
            config=config,
            recorder=recorder,
            validator=self._validator or ClaimValidator(config.validation),
            collision_engine=self._collision_engine or CollisionEngine(config.proximity),
            territories=self._territories,
        )
