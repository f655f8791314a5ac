from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from clipscout.domain.entities.clip import ResolutionResult
from clipscout.infrastructure.config import AppConfig, load_config
from clipscout.infrastructure.logging.setup import configure_logging
from clipscout.infrastructure.persistence import serialize_result
from clipscout.interfaces.composition import open_runtime
from clipscout.interfaces.main import build_app

log = structlog.get_logger(__name__)


def _add_config_flags(parser: argparse.ArgumentParser) -> None:
    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="clipscout")
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Resolve one clip and print JSON.")
    resolve.add_argument("target", help="Clip URL or bare clip slug.")
    resolve.add_argument(
        "--no-browser",
        action="store_true",
        help="Skip browser strategies (structured query, then markup scan).",
    )
    resolve.add_argument(
        "--deadline-ms",
        default=None,
        type=int,
        help="Override the run deadline.",
    )
    _add_config_flags(resolve)

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument(
        "--host",
        default=None,
        help="Bind host (overrides HOST env).",
    )
    serve.add_argument(
        "--port",
        default=None,
        type=int,
        help="Bind port (overrides PORT env).",
    )
    _add_config_flags(serve)

    return parser.parse_args(list(argv) if argv is not None else None)


def _load(args: argparse.Namespace) -> AppConfig:
    cli_overrides: dict[str, Any] = {}
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format
    if getattr(args, "deadline_ms", None):
        cli_overrides["run_deadline_ms"] = args.deadline_ms

    return load_config(
        config_path=Path(args.config) if args.config else None,
        dotenv_path=Path(args.dotenv) if args.dotenv else None,
        cli_overrides=cli_overrides,
    )


async def _resolve(
    config: AppConfig, target: str, *, use_browser: bool
) -> ResolutionResult:
    async with open_runtime(config, use_browser=use_browser) as runtime:
        return await runtime.resolver.execute(target)


def run_resolve(args: argparse.Namespace, config: AppConfig) -> int:
    """Resolve ``args.target``, print the record to stdout, return exit code."""
    result = asyncio.run(_resolve(config, args.target, use_browser=not args.no_browser))
    sys.stdout.write(json.dumps(serialize_result(args.target, result), indent=2) + "\n")
    sys.stdout.flush()
    return 0 if result.ok else 1


def run_serve(args: argparse.Namespace, config: AppConfig) -> int:
    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = int(args.port or os.getenv("PORT", "7980"))

    log_config = configure_logging(config)
    uvicorn.run(
        build_app(config),
        host=host,
        port=port,
        log_config=log_config,
    )
    return 0


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Config is loaded exactly once here and handed to the chosen command.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)
    config = _load(args)

    if args.command == "serve":
        return run_serve(args, config)

    configure_logging(config)
    return run_resolve(args, config)


if __name__ == "__main__":
    raise SystemExit(start())
