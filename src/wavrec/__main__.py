"""wavrec entry point.

Usage:
    python -m wavrec [OPTIONS]

Options:
    --config PATH       Path to YAML/JSON configuration file
    --list              List available configurations and exit
    --select N          Record with configuration number N (see --list)
    --match TEXT        Record with the first configuration matching TEXT
    --output PATH       Override the output WAV path
    --duration SECONDS  Stop after this many seconds
    --help              Show this help message
    --version           Show version
"""

import argparse
import dataclasses
import logging
import os
import signal
import sys
import threading
import time
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .audio import create_audio_device
from .config import AudioConfig, WavrecConfig
from .config.loader import load_config
from .recorder import CaptureError, CaptureSession, EventKind

MOCK_READ_DELAY_S: float = 0.02


def setup_logging(level: str) -> None:
    """Configure logging based on config."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="wavrec",
        description="wavrec - record microphone input to WAV files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  wavrec --list                         # Show available configurations
  wavrec                                # Record with the first configuration
  wavrec --select 2 --duration 30       # Record 30s with configuration 2
  wavrec --match "8 channel" -o a.wav   # Pick by description, fixed output

Environment:
  WAVREC_CONFIG      Configuration file used when --config is not given
  WAVREC_LOG_LEVEL   Log level used when --log-level is not given
""",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML/JSON configuration file",
        metavar="PATH",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List available configurations and exit",
    )

    selection = parser.add_mutually_exclusive_group()
    selection.add_argument(
        "--select",
        type=int,
        metavar="N",
        help="Configuration number to record with (1-based)",
    )
    selection.add_argument(
        "--match",
        metavar="TEXT",
        help="Record with the first configuration whose description contains TEXT",
    )

    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        metavar="PATH",
        help="Output WAV path (overrides the configuration)",
    )

    parser.add_argument(
        "--duration",
        type=float,
        metavar="SECONDS",
        help="Stop recording after this many seconds",
    )

    parser.add_argument(
        "--mock-audio",
        action="store_true",
        help="Record silence from a mock device (for testing without hardware)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Load config, resolve the selection and exit",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"wavrec v{__version__}",
    )

    return parser.parse_args(argv)


def select_config(config: WavrecConfig, args: argparse.Namespace) -> AudioConfig:
    """Pick the recording configuration requested on the command line.

    Raises:
        ValueError: If the selection does not match any configuration
    """
    if not config.configs:
        raise ValueError("No recording configurations available")

    if args.select is not None:
        if not 1 <= args.select <= len(config.configs):
            raise ValueError(f"Configuration number must be between 1 and {len(config.configs)}")
        selected = config.configs[args.select - 1]
    elif args.match is not None:
        found = config.find(args.match)
        if found is None:
            raise ValueError(f"No configuration matches '{args.match}'")
        selected = found
    else:
        selected = config.configs[0]

    if args.output is not None:
        selected = dataclasses.replace(selected, output_path=str(args.output))
    return selected


def print_configs(config: WavrecConfig) -> None:
    """Print the numbered configuration list."""
    for index, item in enumerate(config.configs, start=1):
        target = item.output_path or "(auto)"
        print(f"  {index:2d}. {item.summary()} -> {target}")


def report_events(session: CaptureSession) -> bool:
    """Print every queued event.

    Returns:
        True if any drained event was an ERROR
    """
    failed = False
    for event in session.events.drain():
        if event.kind is EventKind.ERROR:
            print(f"Error: {event.message}", file=sys.stderr)
            failed = True
        else:
            print(f"{event.kind.name.capitalize()}: {event.output_path}")
    return failed


def record(
    session: CaptureSession,
    duration: float | None,
    stop_requested: threading.Event,
    logger: logging.Logger,
) -> int:
    """Run one recording until duration, stream end, or a stop request.

    Returns:
        Exit code
    """
    try:
        session.start()
    except CaptureError as e:
        logger.debug(f"Start failed: {e}")
        report_events(session)
        return 1

    failed = False
    deadline = time.monotonic() + duration if duration is not None else None
    while session.is_recording and not stop_requested.is_set():
        if deadline is not None and time.monotonic() >= deadline:
            break
        failed |= report_events(session)
        stop_requested.wait(0.1)

    session.stop()
    failed |= report_events(session)
    logger.info(f"Recorded {session.bytes_recorded} bytes to {session.output_path}")

    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for wavrec.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    load_dotenv()
    args = parse_args(argv)

    try:
        config = load_config(path=args.config)
    except FileNotFoundError as e:
        print(f"Error: Config file not found: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    setup_logging(args.log_level or os.environ.get("WAVREC_LOG_LEVEL") or config.logging.level)
    logger = logging.getLogger("wavrec")

    if args.list:
        print_configs(config)
        return 0

    try:
        selected = select_config(config, args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info(f"wavrec v{__version__}")
    logger.info(f"Configuration: {selected.summary()}")

    if args.dry_run:
        logger.info("Dry run mode - exiting after config load")
        return 0

    try:
        device = create_audio_device(use_mock=args.mock_audio)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.mock_audio:
        device.read_delay = MOCK_READ_DELAY_S

    stop_requested = threading.Event()

    def signal_handler(_signum: int, _frame: object) -> None:
        if stop_requested.is_set():
            logger.warning("Force quit requested")
            sys.exit(1)
        logger.info("Stop requested, finalizing recording...")
        stop_requested.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if args.duration is None:
        print("Recording... press Ctrl+C to stop.")

    with CaptureSession(device, settings=config.recorder, config=selected) as session:
        return record(session, args.duration, stop_requested, logger)


if __name__ == "__main__":
    sys.exit(main())
