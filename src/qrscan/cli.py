"""
Command-line QR scanner.

Opens a camera, decodes frames in a loop and prints every payload found.
"""

import argparse
import logging
import sys
from typing import List, Optional

from qrscan.core.config import Config, load_config
from qrscan.decode.decoder import DECODERS
from qrscan.errors import ScanError
from qrscan.scanner import QRScanStream
from qrscan.video.formats import Resolution

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scan QR codes from a V4L2 camera")
    parser.add_argument(
        "device",
        nargs="?",
        help="Path to the V4L2 device (default from config, /dev/video0)",
        default=None
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration file",
        default=None
    )
    parser.add_argument(
        "-r", "--resolution",
        help="Target capture resolution, e.g. 640x480",
        type=Resolution.from_string,
        default=None
    )
    parser.add_argument(
        "--decoder",
        help="Symbol decoder backend",
        choices=sorted(DECODERS),
        default=None
    )
    parser.add_argument(
        "-n", "--count",
        help="Stop after this many frames (default: run forever)",
        type=int,
        default=None
    )
    parser.add_argument(
        "-v", "--verbose",
        help="Enable verbose logging",
        action="store_true"
    )
    parser.add_argument(
        "--debug",
        help="Enable debug logging",
        action="store_true"
    )
    return parser


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Override configuration with command-line arguments."""
    if args.device:
        config.camera.device = args.device
    if args.resolution:
        config.camera.width = args.resolution.width
        config.camera.height = args.resolution.height
    if args.decoder:
        config.decoder.backend = args.decoder
    return config


def run(stream: QRScanStream, count: Optional[int] = None) -> int:
    """
    Decode frames and print results.

    Per-frame failures are logged and scanning continues.

    Returns:
        Number of payloads found.
    """
    found = 0
    frames = 0

    while count is None or frames < count:
        frames += 1
        try:
            results = stream.decode_next()
        except (ScanError, OSError) as e:
            logger.error(f"Failed to decode image: {e}")
            continue

        for text in results:
            print(f"Found: {text}")
            found += 1

    return found


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the qrscan command."""
    args = build_parser().parse_args(argv)
    config = apply_args(load_config(args.config), args)

    # Setup logging
    if args.debug:
        log_level = logging.DEBUG
    elif args.verbose:
        log_level = logging.INFO
    else:
        log_level = getattr(logging, config.logging.level.upper(), logging.WARNING)
    logging.basicConfig(level=log_level, format=config.logging.format)

    try:
        stream = QRScanStream.from_config(config)
    except (ScanError, OSError, ValueError, ImportError) as e:
        print(f"Failed to create QR scan stream: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        with stream:
            run(stream, args.count)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
