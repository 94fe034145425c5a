"""
Collision Layer
===============

Bounded Context: Claim-in-progress vs. other owners' territories.

Responsibilities:
- Start-point containment
- Full path crossing / containment
- Nearest-vertex proximity tiers
"""

from territory_engine.collision.engine import (
    CollisionEngine,
    CollisionKind,
    CollisionResult,
    Territory,
    WarningLevel,
)

__all__ = [
    "CollisionEngine",
    "CollisionKind",
    "CollisionResult",
    "Territory",
    "WarningLevel",
]
