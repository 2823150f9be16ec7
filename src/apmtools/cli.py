# src/apmtools/cli.py
"""apmtools Command Line Interface.

Entry point for the apmtools CLI tool.

Usage:
    # Wait for at least 5 transactions of a service
    apmtools espoll --target 'traces-apm*' --min-hits 5 \\
        --query '{"term": {"service.name": "checkout"}}'

    # Read the query from stdin
    echo '{"match_all": {}}' | apmtools espoll --timeout 60
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import structlog
import typer
from pydantic import SecretStr, ValidationError

from apmtools import __version__
from apmtools.core.config import DEFAULT_PASSWORD, DEFAULT_USERNAME, ElasticsearchSettings
from apmtools.espoll import (
    DEFAULT_INTERVAL,
    Client,
    EspollError,
    PollCancelledError,
    PollContext,
    summarize_result,
    with_interval,
    with_timeout,
)

__all__ = ["app"]

logger = structlog.get_logger(__name__)

DEFAULT_TARGET = "traces-*,logs-*,metrics-*"

app = typer.Typer(
    name="apmtools",
    help="apmtools: Verify APM telemetry becomes searchable in Elasticsearch.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"apmtools version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence is checked in _load_dotenv for a better message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """apmtools: Verify APM telemetry becomes searchable in Elasticsearch."""
    from apmtools.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    # Runs before subcommand options resolve, so .env values reach envvar options.
    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _read_query(query: str | None) -> Any:
    """Resolve the query from the flag or stdin and parse it as JSON.

    Raises:
        typer.Exit: If no query was given or it is not valid JSON.
    """
    if not query:
        if sys.stdin.isatty():
            typer.echo("Error: empty --query flag and stdin, please set one.", err=True)
            raise typer.Exit(1)
        query = sys.stdin.read().strip("\n")
    if not query.strip():
        typer.echo("Error: empty --query flag and stdin, please set one.", err=True)
        raise typer.Exit(1)
    try:
        return json.loads(query)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: query is not valid JSON: {e}", err=True)
        raise typer.Exit(1) from None


@app.command()
def espoll(
    query: str | None = typer.Option(
        None,
        "--query",
        "-q",
        help="The Elasticsearch query in Query DSL. Must be set via this flag or stdin.",
    ),
    target: str = typer.Option(
        DEFAULT_TARGET,
        "--target",
        "-t",
        help="Comma-separated list of data streams, indices, and aliases to search (supports wildcards).",
    ),
    timeout: float = typer.Option(
        30.0,
        "--timeout",
        min=0.001,
        help="Seconds to keep polling before giving up.",
    ),
    min_docs: int = typer.Option(
        1,
        "--min-hits",
        min=0,
        help="Minimum number of hits to wait for. Values above 10 also set the search size.",
    ),
    interval: float = typer.Option(
        DEFAULT_INTERVAL,
        "--interval",
        min=0.001,
        help="Seconds to wait between unsuccessful searches.",
    ),
    es_url: str = typer.Option(
        "",
        "--elasticsearch-url",
        envvar="ELASTICSEARCH_URL",
        help="Elasticsearch URL.",
    ),
    es_username: str = typer.Option(
        DEFAULT_USERNAME,
        "--elasticsearch-user",
        envvar="ELASTICSEARCH_USERNAME",
        help="Elasticsearch username.",
    ),
    es_password: str = typer.Option(
        DEFAULT_PASSWORD,
        "--elasticsearch-pass",
        envvar="ELASTICSEARCH_PASSWORD",
        help="Elasticsearch password.",
    ),
    es_api_key: str | None = typer.Option(
        None,
        "--elasticsearch-api-key",
        envvar="ELASTICSEARCH_API_KEY",
        help="Elasticsearch API key (takes precedence over username/password).",
    ),
    tls_skip_verify: bool = typer.Option(
        False,
        "--tls-skip-verify",
        envvar="TLS_SKIP_VERIFY",
        help="Skip TLS certificate verification.",
    ),
) -> None:
    """Poll Elasticsearch until documents matching a query are visible."""
    parsed_query = _read_query(query)

    try:
        settings = ElasticsearchSettings(
            url=es_url,
            username=es_username,
            password=SecretStr(es_password),
            api_key=SecretStr(es_api_key) if es_api_key else None,
            tls_skip_verify=tls_skip_verify,
        )
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    logger.info("Polling Elasticsearch", target=target, min_hits=min_docs, query=parsed_query)

    context = PollContext.background()
    with Client.from_settings(settings) as es, context.cancel_on_signals():
        try:
            result = es.search_index_min_docs(
                min_docs,
                target,
                parsed_query,
                with_timeout(timeout),
                with_interval(interval),
                context=context,
            )
        except PollCancelledError as e:
            typer.secho(f"ERROR: search request returned error: {e}", fg=typer.colors.RED, err=True)
            typer.echo(f"Last seen: {summarize_result(e.last_result)}", err=True)
            raise typer.Exit(1) from None
        except EspollError as e:
            typer.secho(f"ERROR: search request returned error: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1) from None

    typer.echo(result.model_dump_json(by_alias=True))
