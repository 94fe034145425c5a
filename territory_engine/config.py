"""
Configuration schema for the territory claim engine.

This module defines the tunable thresholds of every claim stage (speed gate,
path recording, closure, validation, proximity tiers) plus the MQTT settings
of the territory store boundary. Loaded from YAML and validated at startup.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml


@dataclass(frozen=True)
class SpeedGateConfig:
    """
    Speed gate thresholds.

    Warning/stop thresholds are policy, not invariants. The default pair is
    15/30 km/h (walking-only claims); 25/50 km/h is the lenient alternative.
    """

    warning_speed_kmh: float = 15.0
    stop_speed_kmh: float = 30.0
    required_streak: int = 2
    window_size: int = 3
    warmup_fixes: int = 3

    def __post_init__(self):
        """Validate speed gate configuration."""
        if self.warning_speed_kmh <= 0:
            raise ValueError(
                f"warning_speed_kmh must be > 0, got {self.warning_speed_kmh}"
            )
        if self.stop_speed_kmh <= self.warning_speed_kmh:
            raise ValueError(
                f"stop_speed_kmh ({self.stop_speed_kmh}) must be greater than "
                f"warning_speed_kmh ({self.warning_speed_kmh})"
            )
        if self.required_streak < 1:
            raise ValueError(
                f"required_streak must be >= 1, got {self.required_streak}"
            )
        if self.window_size < 1:
            raise ValueError(
                f"window_size must be >= 1, got {self.window_size}"
            )
        if self.warmup_fixes < 0:
            raise ValueError(
                f"warmup_fixes must be >= 0, got {self.warmup_fixes}"
            )


@dataclass(frozen=True)
class RecorderConfig:
    """Path recording filters."""

    min_spacing_m: float = 10.0
    max_horizontal_accuracy_m: float = 50.0
    max_jump_distance_m: Optional[float] = 100.0  # None disables drift rejection

    def __post_init__(self):
        """Validate recorder configuration."""
        if self.min_spacing_m < 0:
            raise ValueError(
                f"min_spacing_m must be >= 0, got {self.min_spacing_m}"
            )
        if self.max_horizontal_accuracy_m <= 0:
            raise ValueError(
                f"max_horizontal_accuracy_m must be > 0, got {self.max_horizontal_accuracy_m}"
            )
        if self.max_jump_distance_m is not None and self.max_jump_distance_m <= self.min_spacing_m:
            raise ValueError(
                f"max_jump_distance_m ({self.max_jump_distance_m}) must exceed "
                f"min_spacing_m ({self.min_spacing_m})"
            )


@dataclass(frozen=True)
class ClosureConfig:
    """Loop closure preconditions."""

    min_points: int = 10
    closure_radius_m: float = 30.0

    def __post_init__(self):
        """Validate closure configuration."""
        if self.min_points < 3:
            raise ValueError(f"min_points must be >= 3, got {self.min_points}")
        if self.closure_radius_m <= 0:
            raise ValueError(
                f"closure_radius_m must be > 0, got {self.closure_radius_m}"
            )


@dataclass(frozen=True)
class ValidationConfig:
    """Claim acceptance thresholds."""

    min_points: int = 10
    min_distance_m: float = 50.0
    min_area_m2: float = 100.0
    skip_window: int = 2

    def __post_init__(self):
        """Validate validation configuration."""
        if self.min_points < 3:
            raise ValueError(f"min_points must be >= 3, got {self.min_points}")
        if self.min_distance_m < 0:
            raise ValueError(
                f"min_distance_m must be >= 0, got {self.min_distance_m}"
            )
        if self.min_area_m2 < 0:
            raise ValueError(f"min_area_m2 must be >= 0, got {self.min_area_m2}")
        if self.skip_window < 0:
            raise ValueError(f"skip_window must be >= 0, got {self.skip_window}")


@dataclass(frozen=True)
class ProximityConfig:
    """
    Distance bands of the proximity tiers (meters).

    distance > safe_m -> SAFE, > caution_m -> CAUTION,
    > warning_m -> WARNING, otherwise DANGER.
    """

    safe_m: float = 100.0
    caution_m: float = 50.0
    warning_m: float = 25.0

    def __post_init__(self):
        """Validate proximity bands are strictly decreasing."""
        if not self.safe_m > self.caution_m > self.warning_m > 0:
            raise ValueError(
                "Proximity bands must satisfy safe_m > caution_m > warning_m > 0, "
                f"got {self.safe_m}/{self.caution_m}/{self.warning_m}"
            )


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration for the territory store boundary."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1  # Claims must not be lost

    claim_topic: str = "territory/claims/{owner_id}"
    snapshot_topic: str = "territory/snapshots"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )


@dataclass(frozen=True)
class EngineConfig:
    """
    Main configuration for the claim engine.

    Immutable after construction (frozen dataclass).
    """

    speed_gate: SpeedGateConfig = field(default_factory=SpeedGateConfig)
    recorder: RecorderConfig = field(default_factory=RecorderConfig)
    closure: ClosureConfig = field(default_factory=ClosureConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    proximity: ProximityConfig = field(default_factory=ProximityConfig)
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)

    # Coarse cadence of the full path-vs-territories check
    collision_check_interval_s: float = 10.0

    def __post_init__(self):
        """Validate cross-section constraints."""
        if self.collision_check_interval_s <= 0:
            raise ValueError(
                f"collision_check_interval_s must be > 0, got {self.collision_check_interval_s}"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        """Build from a plain dict (sections optional)."""
        data = data or {}
        try:
            return cls(
                speed_gate=SpeedGateConfig(**data.get("speed_gate", {})),
                recorder=RecorderConfig(**data.get("recorder", {})),
                closure=ClosureConfig(**data.get("closure", {})),
                validation=ValidationConfig(**data.get("validation", {})),
                proximity=ProximityConfig(**data.get("proximity", {})),
                mqtt=MQTTConfig(**data.get("mqtt", {})),
                collision_check_interval_s=float(data.get("collision_check_interval_s", 10.0)),
            )
        except TypeError as e:
            raise ValueError(f"Invalid config section: {e}")

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "EngineConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            speed_gate:
              warning_speed_kmh: 15
              stop_speed_kmh: 30
              required_streak: 2

            recorder:
              min_spacing_m: 10

            closure:
              min_points: 10
              closure_radius_m: 30

            validation:
              min_distance_m: 50
              min_area_m2: 100

            mqtt:
              broker: "localhost"
              port: 1883
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {yaml_path}: {e}")

        return cls.from_dict(data or {})
