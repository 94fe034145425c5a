"""
Territory CLI - Main entry point.

Replays recorded tracks through the claim engine, converts coordinates
between device and display frames, and measures tracks.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from territory_engine.config import EngineConfig
from territory_engine.geometry import converter
from territory_engine.geometry.area import enclosed_area_m2, format_area
from territory_engine.geometry.intersection import find_self_intersection
from territory_engine.collision.engine import WarningLevel
from territory_engine.geometry.shapes import GeoPoint, path_length_m
from territory_engine.pipeline import ClaimPipeline, ClaimPipelineBuilder, ClaimState
from territory_engine.validation.validator import FailureReason
from territory_store.logging import ClaimLogBuffer, LogEvent, StructuredLogger, create_logger
from territory_store.publishers import ClaimPublisher

from .track_io import load_territories, load_track, points_of


def load_engine_config(config_path: Optional[str]) -> EngineConfig:
    """Engine config from YAML, or defaults when no path is given."""
    if config_path is None:
        return EngineConfig()
    return EngineConfig.from_yaml(Path(config_path))


def replay_track(
    pipeline: ClaimPipeline,
    track_path: str,
    owner_id: str,
    events: Optional[StructuredLogger] = None,
) -> ClaimState:
    """
    Feed a recorded track through the pipeline until it leaves RECORDING.

    Args:
        pipeline: Pipeline in IDLE state
        track_path: Track file (.yaml/.yml or .csv)
        owner_id: Claiming user id
        events: Claim event logger, usually bound to the owner (optional)

    Returns:
        Final claim state (RECORDING if the track ended before closure)
    """
    fixes, summary = load_track(track_path)
    print(f"Loaded {summary} from {track_path}")
    if not fixes:
        raise ValueError(f"No usable fixes in {track_path}")

    pipeline.start(owner_id=owner_id, started_at=fixes[0].timestamp)
    _emit(events, LogEvent.CLAIM_STARTED, "Claim started",
          {'fixes': summary.rows_parsed})

    last_level = WarningLevel.SAFE
    for index, fix in enumerate(fixes):
        step = pipeline.on_fix(fix)
        speed = pipeline.recorder.speed_gate.current_speed_kmh

        if step.appended:
            _emit(events, LogEvent.CLAIM_POINT_RECORDED, "Point recorded",
                  {'index': index, 'point_count': len(pipeline.recorder.path)})
        if step.is_warning:
            print(f"  fix {index}: speed warning ({speed:.1f} km/h)")
            _emit(events, LogEvent.SPEED_WARNING, "Moving too fast",
                  {'index': index, 'speed_kmh': round(speed, 1)})

        collision = step.collision
        if collision is not None and not collision.has_collision:
            if collision.message:
                print(f"  fix {index}: {collision.message}")
            if collision.warning_level is not last_level:
                _emit(events, LogEvent.COLLISION_PROXIMITY, "Proximity tier changed",
                      {'level': collision.warning_level.value,
                       'distance_m': round(collision.nearest_distance_m, 1)})
                last_level = collision.warning_level

        if step.state is ClaimState.RECORDING:
            pipeline.tick_if_due(fix.timestamp)
        if pipeline.state is not ClaimState.RECORDING:
            break

    _emit_outcome(events, pipeline)
    return pipeline.state


def _emit(events: Optional[StructuredLogger], event: LogEvent,
          message: str, metadata: Optional[dict] = None) -> None:
    if events is not None:
        events.emit(event, message, metadata)


def _emit_outcome(events: Optional[StructuredLogger], pipeline: ClaimPipeline) -> None:
    state = pipeline.state
    if state in (ClaimState.ACCEPTED, ClaimState.REJECTED):
        _emit(events, LogEvent.CLAIM_CLOSED, "Loop closed",
              {'point_count': len(pipeline.recorder.path)})

    if state is ClaimState.ACCEPTED:
        _emit(events, LogEvent.CLAIM_ACCEPTED, "Claim accepted",
              {'area_m2': round(pipeline.validation_result.area_m2, 1)})
    elif state is ClaimState.REJECTED:
        _emit(events, LogEvent.CLAIM_REJECTED, "Claim rejected",
              {'reason': pipeline.validation_result.reason.value})
    elif state is ClaimState.FAILED:
        reason = pipeline.failure_reason
        if reason is FailureReason.OVERSPEED:
            _emit(events, LogEvent.SPEED_HALTED, "Sustained overspeed",
                  {'speed_kmh': round(pipeline.recorder.speed_gate.current_speed_kmh, 1)})
        else:
            _emit(events, LogEvent.COLLISION_VIOLATION, "Claim collided with a territory",
                  {'reason': reason.value})
        _emit(events, LogEvent.CLAIM_FAILED, pipeline.failure_message or "Claim failed",
              {'reason': reason.value})


def print_outcome(pipeline: ClaimPipeline) -> None:
    session = pipeline.session
    if session is not None:
        print(
            f"Recorded {session.point_count} points, "
            f"{session.cumulative_distance_m:.1f} m walked, "
            f"{pipeline.distance_to_start():.1f} m from start"
        )

    state = pipeline.state
    if state is ClaimState.ACCEPTED:
        print(f"ACCEPTED: {format_area(pipeline.validation_result.area_m2)}")
    elif state is ClaimState.REJECTED:
        result = pipeline.validation_result
        print(f"REJECTED [{result.reason.value}]: {result.message}")
    elif state is ClaimState.FAILED:
        print(f"FAILED [{pipeline.failure_reason.value}]: {pipeline.failure_message}")
    else:
        print("Track ended before the loop closed")


def publish_claim(pipeline: ClaimPipeline, config: EngineConfig) -> bool:
    logger = create_logger("cli")
    publisher = ClaimPublisher(config.mqtt, logger=logger)
    if not publisher.connect():
        return False
    try:
        return publisher.publish_claim(pipeline.build_payload())
    finally:
        publisher.disconnect()


def cmd_replay(args: argparse.Namespace) -> int:
    config = load_engine_config(args.config)
    territories = load_territories(args.territories) if args.territories else ()

    pipeline = (
        ClaimPipelineBuilder()
        .with_config(config)
        .with_territories(territories)
        .build()
    )

    log_buffer = ClaimLogBuffer.attach("territory_engine") if args.export_log else None
    events = create_logger(
        "claim", level=logging.DEBUG if args.verbose else logging.INFO,
    ).bind(owner_id=args.owner)

    state = replay_track(pipeline, args.track, args.owner, events=events)
    print_outcome(pipeline)

    if state is ClaimState.RECORDING:
        pipeline.cancel()
        _emit(events, LogEvent.CLAIM_CANCELLED, "Track ended before the loop closed")

    if args.publish and state is ClaimState.ACCEPTED:
        if publish_claim(pipeline, config):
            print(f"Published claim to {config.mqtt.broker}:{config.mqtt.port}")
        else:
            print("Failed to publish claim", file=sys.stderr)
            return 1

    if log_buffer is not None:
        Path(args.export_log).write_text(log_buffer.export(), encoding="utf-8")
        print(f"Claim log written to {args.export_log}")
        log_buffer.detach()

    return 0 if state is ClaimState.ACCEPTED else 2


def cmd_convert(args: argparse.Namespace) -> int:
    point = GeoPoint(latitude=args.lat, longitude=args.lon)
    if args.inverse:
        result = converter.to_device_frame(point)
        label = "device (WGS-84)"
    else:
        result = converter.to_display_frame(point)
        label = "display (GCJ-02)"

    if result == point:
        print("Point is outside the offset region; frames coincide")
    print(f"{label}: {result.latitude:.7f}, {result.longitude:.7f}")
    return 0


def cmd_area(args: argparse.Namespace) -> int:
    fixes, summary = load_track(args.track)
    points = points_of(fixes)
    print(f"Loaded {summary} from {args.track}")

    print(f"Path length: {path_length_m(points):.1f} m")
    print(f"Enclosed area: {format_area(enclosed_area_m2(points))}")

    crossing = find_self_intersection(points)
    if crossing is not None:
        print(f"Self-intersection between edges {crossing[0]} and {crossing[1]}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Territory CLI - Replay and inspect territory claims",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay a recorded walk against known territories
  territory-cli replay walk.yaml --territories territories.yaml --owner u-1

  # Use a custom config and upload the claim when accepted
  territory-cli replay Path.csv --config config/claim_engine.yaml --publish

  # Convert coordinates (device -> display, or back with --inverse)
  territory-cli convert --lat 31.2304 --lon 121.4737
  territory-cli convert --lat 31.2284 --lon 121.4781 --inverse

  # Measure a track
  territory-cli area walk.yaml
"""
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show engine debug logs"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    replay = subparsers.add_parser('replay', help='Replay a track through the claim engine')
    replay.add_argument('track', help='Track file (.yaml/.yml or .csv)')
    replay.add_argument('--territories', help='YAML file with existing territories')
    replay.add_argument('--config', help='Engine config YAML (default: built-in defaults)')
    replay.add_argument('--owner', default='local-user', help='Claiming user id (default: local-user)')
    replay.add_argument('--publish', action='store_true', help='Publish the claim over MQTT when accepted')
    replay.add_argument('--export-log', help='Write the claim log to this file')

    convert = subparsers.add_parser('convert', help='Convert between device and display frames')
    convert.add_argument('--lat', type=float, required=True, help='Latitude in degrees')
    convert.add_argument('--lon', type=float, required=True, help='Longitude in degrees')
    convert.add_argument('--inverse', action='store_true', help='Display frame -> device frame')

    area = subparsers.add_parser('area', help='Length, area and self-intersection of a track')
    area.add_argument('track', help='Track file (.yaml/.yml or .csv)')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        'replay': cmd_replay,
        'convert': cmd_convert,
        'area': cmd_area,
    }

    try:
        return commands[args.command](args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
