"""Command line interface: run command lines in one scenario and report their results.

Example:
    cmd-harness --exit-timeout 5 "echo hello" "ls -la"
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from cmd_harness import __version__
from cmd_harness.announcer import CHANNELS, Announcer
from cmd_harness.config import Configuration
from cmd_harness.errors import SpawnFailureError
from cmd_harness.scenario import Scenario

EXIT_TIMED_OUT = 124
EXIT_SPAWN_FAILURE = 127
EXIT_SIGNAL_BASE = 128


def _shell_status(status: int) -> int:
    """Map a negative (signal) status to the shell's 128 + signum convention."""
    return EXIT_SIGNAL_BASE - status if status < 0 else status


def _parse_channels(value: str) -> tuple[str, ...]:
    channels = tuple(item.strip() for item in value.split(",") if item.strip())
    unknown = [c for c in channels if c not in CHANNELS]
    if unknown:
        error_message = f"unknown channel(s) {', '.join(unknown)}; choose from {', '.join(CHANNELS)}"
        raise argparse.ArgumentTypeError(error_message)
    return channels


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmd-harness",
        description="Run command lines with timeouts and report their output and exit status.",
    )
    parser.add_argument("cmdlines", nargs="*", metavar="CMDLINE", help="command line to run, one per argument")
    parser.add_argument("--exit-timeout", type=float, default=None, help="seconds before a command is killed")
    parser.add_argument("--io-wait", type=float, default=None, help="seconds of silence before a command counts as hung")
    parser.add_argument("--cwd", type=Path, default=None, help="directory to run the commands in (default: current)")
    parser.add_argument("--announce", type=_parse_channels, default=(), help=f"channels to echo: {','.join(CHANNELS)}")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _build_config(args: argparse.Namespace) -> Configuration:
    config = Configuration.from_environ()
    if args.exit_timeout is not None:
        config.exit_timeout = args.exit_timeout
    if args.io_wait is not None:
        config.io_wait_timeout = args.io_wait
    # Unlike test scenarios, the CLI runs commands where it is invoked unless told otherwise
    config.root_directory = (args.cwd if args.cwd is not None else Path.cwd()).resolve()
    config.working_directory = "."
    if args.announce:
        config.announce_channels = args.announce
    return config


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if not args.cmdlines:
        parser.print_usage()
        return 0

    config = _build_config(args)
    exit_code = 0
    with Scenario(config=config, announcer=Announcer(channels=config.announce_channels)) as scenario:
        for cmdline in args.cmdlines:
            try:
                process = scenario.run(cmdline)
            except SpawnFailureError as e:
                print(f"cmd-harness: {e}", file=sys.stderr)
                return EXIT_SPAWN_FAILURE
            process.close_io("stdin")
            scenario.process_monitor.stop_process(process)

            sys.stdout.write(process.stdout)
            sys.stderr.write(process.stderr)
            if process.timed_out:
                print(f"cmd-harness: {cmdline!r} timed out after {config.exit_timeout} seconds", file=sys.stderr)
                exit_code = EXIT_TIMED_OUT
            elif process.exit_status and exit_code == 0:
                exit_code = _shell_status(process.exit_status)
    sys.stdout.flush()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
