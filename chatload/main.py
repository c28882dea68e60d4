"""Command-line entry point.

Usage:
    chatload load-test [--max-concurrent N] [--exchanges K] [--verbose]
    chatload scenarios [--only 1a 4 ...]
    chatload aggregate results/test_20250101_120000
    chatload probe [--placeholder-key]

Exit codes: 0 when a run completes (whatever the individual outcomes),
1 on a fatal setup or configuration error.
"""

import argparse
import json
import sys
from typing import Any

from pydantic import ValidationError

from chatload.app import probe, reaggregate, run_load_test, run_scenario_suite
from chatload.core.config import Settings, get_settings
from chatload.core.exceptions import EXIT_FATAL, EXIT_OK, LoadTestError
from chatload.core.logging import (
    bind_run_context,
    clear_run_context,
    configure_logging,
    get_logger,
)
from chatload.models.outcome import Success

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chatload",
        description="Concurrent load testing for chat-completion APIs",
    )
    parser.add_argument("--base-url", help="API base URL (env: BASE_URL)")
    parser.add_argument("--api-keys-file", help="Credential store (env: API_KEYS_FILE)")
    parser.add_argument("--results-dir", help="Result root (env: RESULTS_DIR)")
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Log every request and response (env: VERBOSE_OUTPUT=1)",
    )
    parser.add_argument("--log-level", help="Logging level (env: LOG_LEVEL)")
    parser.add_argument("--log-format", choices=["json", "console"], help="Log format")

    sub = parser.add_subparsers(dest="command", required=True)

    load = sub.add_parser("load-test", help="Run batched multi-exchange conversations")
    load.add_argument(
        "--max-concurrent",
        type=int,
        dest="max_concurrent_requests",
        help="Concurrency limit (env: MAX_CONCURRENT_REQUESTS)",
    )
    load.add_argument(
        "--exchanges",
        type=int,
        dest="exchanges_per_conversation",
        help="Exchanges per conversation",
    )

    scenarios = sub.add_parser("scenarios", help="Run the named load-shape scenarios")
    scenarios.add_argument(
        "--only",
        nargs="+",
        metavar="ID",
        help="Scenario ids (1a) or groups (4) to run",
    )
    scenarios.add_argument(
        "--max-workers",
        type=int,
        dest="max_workers",
        help="Thread ceiling for concurrent scenarios (env: MAX_WORKERS)",
    )

    aggregate = sub.add_parser("aggregate", help="Recompute summary and report of a result tree")
    aggregate.add_argument("test_dir", help="test_<timestamp> or scenario_test_<timestamp> directory")

    probe_cmd = sub.add_parser("probe", help="Send a single request and print the outcome")
    probe_cmd.add_argument(
        "--placeholder-key",
        action="store_true",
        help="Use a generated key instead of the credential store",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Environment settings overridden by the flags that were given.

    Without any flag this is the process-wide cached ``get_settings()``.
    """
    overrides: dict[str, Any] = {}
    for name in (
        "base_url",
        "api_keys_file",
        "results_dir",
        "log_level",
        "log_format",
        "max_concurrent_requests",
        "exchanges_per_conversation",
        "max_workers",
    ):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if args.verbose:
        overrides["verbose_output"] = True
    if not overrides:
        return get_settings()
    return Settings(**overrides)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValidationError as e:
        configure_logging()
        logger.error("Invalid configuration", errors=e.errors(include_url=False))
        return EXIT_FATAL

    configure_logging(level=settings.log_level, format=settings.log_format)
    clear_run_context()
    bind_run_context(command=args.command)

    try:
        if args.command == "load-test":
            run_load_test(settings)
        elif args.command == "scenarios":
            run_scenario_suite(settings, scenario_ids=args.only)
        elif args.command == "aggregate":
            reaggregate(args.test_dir)
        elif args.command == "probe":
            result = probe(settings, placeholder_key=args.placeholder_key)
            outcome = result.outcome
            print(
                json.dumps(
                    {
                        "outcome": outcome.kind.value,
                        "duration": round(result.duration, 3),
                        "error": outcome.error_message,
                        "response": outcome.response_body if isinstance(outcome, Success) else None,
                    },
                    indent=2,
                    default=str,
                )
            )
    except LoadTestError as e:
        logger.error(e.message, kind=e.kind.value, details=e.details)
        return e.exit_code
    except ValueError as e:
        # Unknown scenario ids
        logger.error(str(e))
        return EXIT_FATAL

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
