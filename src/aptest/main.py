"""Command-line entrypoint: ``aptest init NAME`` and ``aptest run``."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from aptest.core.coordinator import RunCoordinator
from aptest.core.project import init_project
from aptest.errors import AptestError
from aptest.types import RunConfig
from aptest.utils.config_loader import load_settings

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")
    else:
        root.setLevel(level)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--settings", type=str, default=None, help="Settings YAML (default: ./aptest.yaml if present)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aptest", description="A small framework to assist in testing aptos programs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Initialize a new project")
    init_parser.add_argument("name", type=str, help="Name of the Move package")
    _add_common_arguments(init_parser)

    run_parser = subparsers.add_parser("run", help="Runs the framework in the current directory")
    run_parser.add_argument("-c", "--no-compile", action="store_true", help='Removes call to "aptos move compile"')
    run_parser.add_argument("-p", "--no-publish", action="store_true", help='Removes call to "aptos move publish"')
    run_parser.add_argument(
        "-d",
        "--start-delay",
        type=int,
        default=14,
        help="Seconds to wait on the validator spinning up before interacting with it (default: 14)",
    )
    run_parser.add_argument("-f", "--no-faucet", action="store_true", help="Run just the validator node, without a faucet")
    run_parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Start the validator and wait for Ctrl+C so that end to end tests can be run manually",
    )
    run_parser.add_argument("-l", "--log", dest="log_node", action="store_true", help="Log the output of the validator to a file")
    run_parser.add_argument(
        "--strict-funding",
        action="store_true",
        help="Treat a failed faucet funding call as a deployment failure",
    )
    run_parser.add_argument(
        "--fail-on-test-failure",
        action="store_true",
        help="Exit with code 1 when the e2e test command exits non-zero",
    )
    run_parser.add_argument(
        "--ready-timeout",
        type=float,
        default=None,
        help="Poll the validator REST endpoint for up to this many seconds instead of sleeping",
    )
    _add_common_arguments(run_parser)
    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_run_config(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        skip_compile=args.no_compile,
        skip_publish=args.no_publish,
        no_faucet=args.no_faucet,
        start_delay_seconds=args.start_delay,
        interactive=args.interactive,
        log_node=args.log_node,
        strict_funding=args.strict_funding,
        fail_on_test_failure=args.fail_on_test_failure,
        ready_timeout=args.ready_timeout,
    )


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    try:
        settings = load_settings(Path(args.settings) if args.settings else None)
        if args.command == "init":
            init_project(args.name, settings)
            return 0
        config = build_run_config(args)
    except AptestError as e:
        logger.error("%s", e.context)
        if e.detail:
            logger.error("%s", e.detail)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return RunCoordinator(config, settings).run()


if __name__ == "__main__":
    raise SystemExit(main())
