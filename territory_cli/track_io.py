"""
Track and territory file loading for the CLI.

Supported track formats:
- YAML: ``start`` (ISO 8601, optional) and ``fixes: [{lat, lon, t, accuracy}]``
  where ``t`` is seconds since ``start`` or an ISO 8601 timestamp
- CSV export: ``geoTime`` (epoch ms), ``latitude``, ``longitude``,
  ``horizontalAccuracy`` (optional, -1 when unknown)

Territory files are YAML with ``territories: [store rows]``.
"""

import csv
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import yaml

from territory_engine.collision.engine import Territory
from territory_engine.geometry.shapes import GeoPoint, TimedFix
from territory_store.schemas import territories_from_rows

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TrackSummary:
    """Quick summary of track parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int

    def __str__(self) -> str:
        return f"{self.rows_parsed}/{self.rows_total} fixes ({self.rows_skipped} skipped)"


def load_yaml_file(path: str) -> Dict[str, Any]:
    """
    Load a YAML mapping.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If YAML is invalid or not a mapping
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        with open(p) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}, got {type(data).__name__}")
    return data


def load_track(path: str) -> Tuple[List[TimedFix], TrackSummary]:
    """Load fixes from a YAML or CSV track, sorted by timestamp."""
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        fixes, summary = _load_csv_track(path)
    elif suffix in (".yaml", ".yml"):
        fixes, summary = _load_yaml_track(path)
    else:
        raise ValueError(f"Unsupported track format '{suffix}' (use .yaml, .yml or .csv)")

    if summary.rows_skipped > 0:
        logger.warning("Skipped %d unreadable rows in %s", summary.rows_skipped, path)

    fixes.sort(key=lambda fix: fix.timestamp)
    return fixes, summary


def load_territories(path: str) -> Tuple[Territory, ...]:
    """Active territories from a YAML file of store rows."""
    data = load_yaml_file(path)
    rows = data.get("territories", [])
    if not isinstance(rows, list):
        raise ValueError(f"'territories' must be a list in {path}")
    return territories_from_rows(rows)


def _load_yaml_track(path: str) -> Tuple[List[TimedFix], TrackSummary]:
    data = load_yaml_file(path)
    rows = data.get("fixes", [])
    if not isinstance(rows, list):
        raise ValueError(f"'fixes' must be a list in {path}")

    start = _parse_time(data["start"], EPOCH) if "start" in data else EPOCH

    fixes: List[TimedFix] = []
    for row in rows:
        try:
            fixes.append(
                TimedFix(
                    point=GeoPoint(latitude=float(row["lat"]), longitude=float(row["lon"])),
                    timestamp=_parse_time(row["t"], start),
                    horizontal_accuracy_m=float(row.get("accuracy", 5.0)),
                )
            )
        except (KeyError, TypeError, ValueError):
            continue

    return fixes, TrackSummary(len(rows), len(fixes), len(rows) - len(fixes))


def _load_csv_track(path: str) -> Tuple[List[TimedFix], TrackSummary]:
    rows_total = 0
    fixes: List[TimedFix] = []

    with Path(path).open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            rows_total += 1
            try:
                fixes.append(
                    TimedFix(
                        point=GeoPoint(
                            latitude=float(row["latitude"].strip()),
                            longitude=float(row["longitude"].strip()),
                        ),
                        timestamp=EPOCH + timedelta(milliseconds=int(row["geoTime"].strip())),
                        horizontal_accuracy_m=float((row.get("horizontalAccuracy") or "-1").strip()),
                    )
                )
            except (KeyError, AttributeError, TypeError, ValueError):
                continue

    return fixes, TrackSummary(rows_total, len(fixes), rows_total - len(fixes))


def _parse_time(value: Any, start: datetime) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return start + timedelta(seconds=float(value))
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def points_of(fixes: Sequence[TimedFix]) -> List[GeoPoint]:
    return [fix.point for fix in fixes]
