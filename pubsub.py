"""
Command-line entry point for the FIFO message bus.

Usage examples:
    pubsub sub
    pubsub pub --generate --count 1000
    echo "Hello World" | pubsub pub --stdin
    pubsub --input-path /tmp/my-fifo sub --follow
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import List, Optional

from publisher.main import run_publisher
from shared.protocol.errors import BusError, ConfigError
from shared.settings import CorruptFramePolicy, Settings, load_settings
from subscriber.main import run_subscriber

logger = logging.getLogger("pubsub")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pubsub", description="Point-to-point message bus over a named pipe")
    parser.add_argument("--env-file", default=".env", help="dotenv file with PUBSUB_* settings")
    parser.add_argument("--input-path", help="input FIFO path")
    parser.add_argument("--output-path", help="output sink path")
    parser.add_argument("--log-level", help="logging level (DEBUG, INFO, ...)")
    parser.add_argument("--poll-interval", type=float, help="initial readiness poll delay in seconds")

    commands = parser.add_subparsers(dest="command", metavar="{pub,sub}")
    commands.required = True

    pub = commands.add_parser("pub", help="publish messages")
    source = pub.add_mutually_exclusive_group()
    source.add_argument("--generate", dest="generate_synthetic", action="store_true", default=None,
                        help="publish random alphanumeric messages (default)")
    source.add_argument("--stdin", dest="generate_synthetic", action="store_false", default=None,
                        help="publish one message per line of standard input")
    pub.add_argument("--count", dest="message_count", type=int, help="stop after N messages (0 = unbounded)")

    sub = commands.add_parser("sub", help="subscribe to messages")
    sub.add_argument("--follow", action="store_true", default=None, help="keep waiting after a publisher closes")
    sub.add_argument("--output-fifo", action="store_true", default=None, help="treat the output path as a FIFO")
    sub.add_argument("--corrupt-frames", choices=[p.value for p in CorruptFramePolicy],
                     help="skip or abort on frames that fail to decode")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "input_path": args.input_path,
        "output_path": args.output_path,
        "log_level": args.log_level,
        "poll_interval": args.poll_interval,
    }
    if args.command == "pub":
        overrides.update(generate_synthetic=args.generate_synthetic, message_count=args.message_count)
    else:
        overrides.update(follow=args.follow, output_fifo=args.output_fifo, corrupt_frames=args.corrupt_frames)
    return load_settings(args.env_file, **overrides)


async def _run(command: str, settings: Settings) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handler for %s unavailable", sig)
    if command == "pub":
        await run_publisher(settings, stop_event=stop_event)
    else:
        await run_subscriber(settings, stop_event=stop_event)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = _settings_from_args(args)
    except ConfigError as exc:
        parser.error(exc.message)

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Running as %s on %s", args.command, settings.input_path)
    try:
        asyncio.run(_run(args.command, settings))
    except BusError as exc:
        logger.error("Fatal: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
