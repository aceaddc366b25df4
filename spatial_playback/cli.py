"""
CLI - Command-line interface.

Thin wrapper over config + engine.
"""

from __future__ import annotations

import argparse
import logging
import math
import random
import sys
import threading
from pathlib import Path

from spatial_playback.config import EngineConfig
from spatial_playback.monitoring.logging import configure_logging


def main(args: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="spatial-playback",
        description="Listener-centric playback of tracks placed around a circle",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # play command
    play_parser = subparsers.add_parser("play", help="Play a directory of assigned tracks")
    play_parser.add_argument("directory", help='Directory of files named "<emitter>.<track> Title.ext"')
    play_parser.add_argument("-c", "--config", help="YAML configuration file")
    play_parser.add_argument("--seed", type=int, help="Seed for the listener's random walk")
    play_parser.add_argument("--tick-rate", type=float, help="Simulation ticks per second")
    play_parser.add_argument("--duration", type=float, help="Stop after this many seconds")
    play_parser.add_argument(
        "--backend",
        choices=["sounddevice", "memory"],
        help="Media backend (default: from config, sounddevice)",
    )
    play_parser.add_argument("--json-logs", action="store_true", help="Emit events as JSON lines")
    play_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    # layout command
    layout_parser = subparsers.add_parser("layout", help="Show emitter positions and boundaries")
    layout_parser.add_argument("-c", "--config", help="YAML configuration file")

    # version command
    subparsers.add_parser("version", help="Show version")

    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 0

    if parsed.command == "version":
        from spatial_playback import __version__
        print(f"spatial-playback {__version__}")
        return 0

    if parsed.command == "layout":
        return _cmd_layout(parsed)

    if parsed.command == "play":
        return _cmd_play(parsed)

    return 1


def _load_config(path: str | None) -> EngineConfig:
    if path is None:
        return EngineConfig()
    return EngineConfig.from_yaml(path)


def _cmd_layout(args: argparse.Namespace) -> int:
    """Print the emitter layout."""
    try:
        config = _load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Emitters ({config.emitter_count} on radius {config.radius:g} m):")
    print()
    for emitter in config.build_emitters():
        angle = math.degrees(emitter.position.angle())
        print(f"  {emitter.index + 1}. {emitter.name}")
        print(f"     x={emitter.position.x:+.3f}  z={emitter.position.z:+.3f}  ({angle:+.1f}°)")
        for slot, track in enumerate(emitter.tracks):
            print(f"       {emitter.index + 1}.{slot + 1} {track.title}")
    print()
    print(f"Boundaries: soft {config.boundaries.soft:.3f} m, hard {config.boundaries.hard:.3f} m")
    print(
        f"Attenuation: {config.attenuation.distance_model.value} "
        f"(ref {config.attenuation.ref_distance:g}, max {config.attenuation.max_distance:g}, "
        f"rolloff {config.attenuation.rolloff_factor:g})"
    )
    return 0


def _cmd_play(args: argparse.Namespace) -> int:
    """Play until Ctrl+C or --duration."""
    from spatial_playback.engine import SpatialPlaybackEngine

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    event_log = configure_logging(
        level="debug" if args.verbose else "info",
        json_format=args.json_logs,
    )

    try:
        config = _load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.tick_rate is not None:
        config.tick_rate = args.tick_rate
    if args.backend is not None:
        config.backend = args.backend

    directory = Path(args.directory).expanduser()
    rng = random.Random(args.seed) if args.seed is not None else None

    engine = SpatialPlaybackEngine(config, rng=rng, event_log=event_log)
    stop = threading.Event()
    try:
        result = engine.assign(directory)
        if not result:
            print(f"Error: {result.message}", file=sys.stderr)
            return 1

        result = engine.start()
        if not result:
            print(f"Error: {result.message}", file=sys.stderr)
            return 1
        print(f"{result.message} from {directory} (Ctrl+C to stop)")

        max_ticks = None
        if args.duration is not None:
            max_ticks = int(args.duration * config.tick_rate)
        engine.run(stop_event=stop, max_ticks=max_ticks)
        return 0

    except KeyboardInterrupt:
        stop.set()
        print("\nStopping")
        return 0

    finally:
        engine.destroy()


if __name__ == "__main__":
    sys.exit(main())
