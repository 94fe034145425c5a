"""
Territory Claim Engine
======================

Bounded Context: Turning a walked GPS trace into a validated territory claim.

Design Philosophy:
- Separation of Concerns: Geometry, Analytics, Validation, Collision separated
- Pure geometry, stateful analytics, one orchestrator
- Failures are data (enums), illegal transitions are exceptions
- Device frame (WGS-84) everywhere; display frame only at the UI boundary

Architecture:

    territory_engine/
    ├── geometry/          # Pure geometry (immutable, stateless)
    │   ├── shapes.py      # GeoPoint, TimedFix, distance, containment
    │   ├── intersection.py# Self-intersection detection
    │   ├── area.py        # Spherical enclosed area
    │   └── converter.py   # WGS-84 <-> GCJ-02
    │
    ├── analytics/         # Per-session state
    │   ├── speed_gate.py  # SpeedGate, SpeedGateState
    │   ├── recorder.py    # PathRecorder, ClaimPath
    │   └── closure.py     # ClosureDetector
    │
    ├── validation/        # Pure accept/reject
    │   └── validator.py   # ClaimValidator
    │
    ├── collision/         # Other owners' territories
    │   └── engine.py      # Territory, CollisionEngine
    │
    ├── config.py          # EngineConfig (YAML)
    └── pipeline.py        # ClaimPipeline state machine

Usage:

    from territory_engine import ClaimPipelineBuilder, EngineConfig, GeoPoint, TimedFix

    pipeline = (
        ClaimPipelineBuilder()
        .with_config(EngineConfig.from_yaml("config/claim_engine.yaml"))
        .with_territories(territories)
        .build()
    )

    pipeline.start(owner_id="u-1")
    step = pipeline.on_fix(TimedFix(GeoPoint(31.2304, 121.4737), timestamp, 5.0))
"""

# Geometry Layer (immutable, stateless)
from territory_engine.geometry.shapes import GeoPoint, TimedFix, BoundingBox, distance_m
from territory_engine.geometry.intersection import has_self_intersection, find_self_intersection
from territory_engine.geometry.area import enclosed_area_m2, format_area
from territory_engine.geometry import converter

# Analytics Layer (stateful)
from territory_engine.analytics.speed_gate import SpeedGate, SpeedGateState, SpeedDecision
from territory_engine.analytics.recorder import PathRecorder, ClaimPath, RecordOutcome
from territory_engine.analytics.closure import ClosureDetector

# Validation & Collision
from territory_engine.validation.validator import ClaimValidator, ValidationResult, FailureReason
from territory_engine.collision.engine import (
    Territory,
    CollisionEngine,
    CollisionResult,
    CollisionKind,
    WarningLevel,
)

# Configuration
from territory_engine.config import EngineConfig

# Pipeline (orchestration)
from territory_engine.pipeline import (
    ClaimPipeline,
    ClaimPipelineBuilder,
    ClaimSession,
    ClaimState,
    ClaimStateError,
    StepResult,
)

__all__ = [
    # Geometry
    "GeoPoint",
    "TimedFix",
    "BoundingBox",
    "distance_m",
    "has_self_intersection",
    "find_self_intersection",
    "enclosed_area_m2",
    "format_area",
    "converter",
    # Analytics
    "SpeedGate",
    "SpeedGateState",
    "SpeedDecision",
    "PathRecorder",
    "ClaimPath",
    "RecordOutcome",
    "ClosureDetector",
    # Validation & Collision
    "ClaimValidator",
    "ValidationResult",
    "FailureReason",
    "Territory",
    "CollisionEngine",
    "CollisionResult",
    "CollisionKind",
    "WarningLevel",
    # Configuration
    "EngineConfig",
    # Pipeline
    "ClaimPipeline",
    "ClaimPipelineBuilder",
    "ClaimSession",
    "ClaimState",
    "ClaimStateError",
    "StepResult",
]

__version__ = "1.0.0"
