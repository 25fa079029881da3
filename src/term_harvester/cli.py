"""CLI entrypoint for term-harvester."""

from __future__ import annotations

import argparse
import os
from collections.abc import Callable, Sequence
from dataclasses import replace

import uvicorn

from .app import create_app
from .client import PollingClient
from .config import (
    DEFAULT_CLIENT_TIMEOUT,
    DEFAULT_DEBOUNCE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SERVER_URL,
    DEFAULT_USER_AGENT,
    ClientConfig,
    HarvestConfig,
    ServerConfig,
)
from .console import SearchConsole
from .errors import ConfigError
from .fetchers import make_session
from .index import ResultStore
from .io_json import dump_job
from .logging_utils import configure_logging, get_logger
from .models import JobStatus, JoinPolicy
from .pipeline import run_harvest

SHELL_HELP = "Type a search and press ENTER twice to query online. :sources, :remove ID, :quit"


def _add_server_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--max-results-per-query",
        type=int,
        help="Search results requested per query (1-10).",
    )
    parser.add_argument(
        "--join-policy",
        choices=[policy.value for policy in JoinPolicy],
        help="all_or_nothing fails a job on any bad page; best_effort drops the page.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(
        description="Term Harvester - turn a search into a searchable set of terms and definitions."
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve_parser = commands.add_parser("serve", help="Run the job API server.")
    serve_parser.add_argument("--host", help="Bind address (or set HOST).")
    serve_parser.add_argument("--port", type=int, help="Listening port (or set PORT).")
    _add_server_options(serve_parser)

    harvest_parser = commands.add_parser(
        "harvest", help="Run one query in-process and print its job."
    )
    harvest_parser.add_argument("query", help="Free-text search query.")
    harvest_parser.add_argument("--output", help="Write the job JSON here instead of stdout.")
    harvest_parser.add_argument(
        "--no-progress", action="store_true", help="Disable tqdm progress bars."
    )
    _add_server_options(harvest_parser)

    shell_parser = commands.add_parser("shell", help="Interactive client for a running server.")
    shell_parser.add_argument(
        "--server",
        default=os.getenv("TERM_HARVESTER_SERVER", DEFAULT_SERVER_URL),
        help="Base URL of the server.",
    )
    shell_parser.add_argument(
        "--request-timeout",
        type=float,
        default=DEFAULT_CLIENT_TIMEOUT,
        help="Seconds before a single request is abandoned.",
    )
    shell_parser.add_argument(
        "--poll-interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help="Seconds between job polls.",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI input."""
    return build_parser().parse_args(argv)


def namespace_to_server_config(args: argparse.Namespace) -> ServerConfig:
    """Overlay CLI flags on the environment-derived server config."""
    config = ServerConfig.from_env()
    overrides: dict[str, object] = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    if args.max_results_per_query is not None:
        overrides["max_results_per_query"] = args.max_results_per_query
    if args.join_policy:
        overrides["join_policy"] = JoinPolicy(args.join_policy)
    return replace(config, **overrides) if overrides else config


def namespace_to_client_config(args: argparse.Namespace) -> ClientConfig:
    return ClientConfig(
        server_url=args.server,
        request_timeout=args.request_timeout,
        poll_interval=args.poll_interval,
        debounce=DEFAULT_DEBOUNCE,
    )


def run_shell(
    config: ClientConfig,
    *,
    read_line: Callable[[str], str] = input,
    echo: Callable[[str], None] = print,
) -> int:
    """Line-oriented front end: a typed line is a keystroke plus ENTER."""
    logger = get_logger("client")
    store = ResultStore()
    client = PollingClient(
        session=make_session(DEFAULT_USER_AGENT, pool_size=1),
        base_url=config.server_url,
        store=store,
        timeout=config.request_timeout,
        poll_interval=config.poll_interval,
        logger=logger,
    )
    console = SearchConsole(client=client, store=store, debounce=config.debounce, echo=echo)
    echo(SHELL_HELP)
    while True:
        try:
            line = read_line("> ").strip()
        except EOFError:
            return 0
        if line == ":quit":
            return 0
        if line == ":sources":
            for entry in console.sources() or ["No sources yet."]:
                echo(entry)
            continue
        if line.startswith(":remove "):
            result_id = line.split(maxsplit=1)[1]
            echo("Removed." if console.remove_source(result_id) else f"No source {result_id}.")
            continue
        if line:
            console.keystroke(line, forced=True)
        console.submit()


def serve(config: ServerConfig) -> int:
    """Run the job API under uvicorn until interrupted."""
    get_logger().info("Serving on %s:%d", config.host, config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port)
    return 0


def harvest(config: HarvestConfig) -> int:
    """Run one job without the HTTP layer; exit 1 when it errored."""
    logger = get_logger()
    job = run_harvest(config, logger=logger)
    if config.output:
        logger.info("Wrote job %s to %s", job.id, config.output)
    else:
        print(dump_job(job.to_dict()))
    return 0 if job.status is JobStatus.COMPLETED else 1


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    logger = get_logger()
    try:
        if args.command == "shell":
            client_config = namespace_to_client_config(args)
        elif args.command == "serve":
            server_config = namespace_to_server_config(args)
        else:
            harvest_config = HarvestConfig(
                query=args.query,
                server=namespace_to_server_config(args),
                output=args.output,
                show_progress=not args.no_progress,
            )
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    if args.command == "shell":
        return run_shell(client_config)
    if args.command == "serve":
        return serve(server_config)
    return harvest(harvest_config)


if __name__ == "__main__":
    raise SystemExit(main())
