import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timedelta
from typing import Any

import click
import structlog

from atletiek_scraper.client import AtletiekClient, CachedResult, to_jsonable
from atletiek_scraper.config import LOG_LEVELS, Settings, load_settings
from atletiek_scraper.exceptions import ScraperError

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configures structlog; logs go to stderr so stdout stays JSON."""
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _to_json(result: CachedResult[Any]) -> str:
    return json.dumps(
        {
            "cached": result.cached,
            "age": result.age,
            "value": to_jsonable(result.value),
        },
        ensure_ascii=False,
        indent=2,
    )


def _run(
    settings: Settings,
    operation: Callable[[AtletiekClient], Awaitable[CachedResult[Any]]],
) -> None:
    async def run() -> CachedResult[Any]:
        async with AtletiekClient(settings=settings) as client:
            return await operation(client)

    try:
        result = asyncio.run(run())
    except ScraperError as e:
        logger.error("command_failed", **e.to_dict())
        raise click.ClickException(str(e)) from e

    click.echo(_to_json(result))


def _parse_date(value: str | None, parameter: str) -> date | None:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(
            f"'{value}' is not a date in YYYY-MM-DD format", param_hint=parameter
        ) from None


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="YAML settings file",
)
@click.option(
    "--snapshot",
    type=click.Path(dir_okay=False),
    help="Cache snapshot file (restored on start, written on exit)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Log level",
)
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str | None,
    snapshot: str | None,
    log_level: str | None,
    json_logs: bool,
) -> None:
    """atletiek.nu scraper: prints competitions, registrations and results as JSON."""
    try:
        settings = load_settings(config_path)
    except ScraperError as e:
        raise click.ClickException(str(e)) from e

    if snapshot:
        settings = settings.model_copy(update={"snapshot_path": snapshot})
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level.upper()})

    configure_logging(settings.log_level, json_logs)
    ctx.obj = settings


@cli.command()
@click.option("--start", help="Start date (YYYY-MM-DD), default today")
@click.option("--end", help="End date (YYYY-MM-DD), default start + 4 weeks")
@click.option("--query", default=None, help="Search text")
@click.option("--country", default=None, help="Country code or name (default NL)")
@click.pass_obj
def competitions(
    settings: Settings,
    start: str | None,
    end: str | None,
    query: str | None,
    country: str | None,
) -> None:
    """Search competitions in a date range."""
    start_date = _parse_date(start, "--start") or date.today()
    end_date = _parse_date(end, "--end") or start_date + timedelta(weeks=4)
    if end_date < start_date:
        raise click.BadParameter("End date is before start date", param_hint="--end")

    _run(
        settings,
        lambda client: client.search_competitions(start_date, end_date, query, country),
    )


@cli.command()
@click.argument("competition_id", type=int)
@click.pass_obj
def registrations(settings: Settings, competition_id: int) -> None:
    """List the registrations of a competition."""
    _run(settings, lambda client: client.get_registrations(competition_id))


@cli.command()
@click.argument("competition_id", type=int)
@click.pass_obj
def events(settings: Settings, competition_id: int) -> None:
    """List the events of a competition."""
    _run(settings, lambda client: client.get_competition_events(competition_id))


@cli.command()
@click.argument("participant_id", type=int)
@click.pass_obj
def results(settings: Settings, participant_id: int) -> None:
    """Show the results of a participant at a competition."""
    _run(settings, lambda client: client.get_results(participant_id))


@cli.command()
@click.argument("query")
@click.pass_obj
def athletes(settings: Settings, query: str) -> None:
    """Search athletes by name."""
    _run(settings, lambda client: client.search_athletes(query))


@cli.command()
@click.argument("athlete_id", type=int)
@click.pass_obj
def profile(settings: Settings, athlete_id: int) -> None:
    """Show an athlete profile with personal bests."""
    _run(settings, lambda client: client.get_athlete_profile(athlete_id))


if __name__ == "__main__":
    cli()
