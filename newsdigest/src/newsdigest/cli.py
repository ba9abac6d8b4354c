import sys
import json
import click
import logging
from .errors import format_error, NewsDigestError
from .logging import configure_logging
from .config import load_settings
from .dates import digest_date
from .store.sqlite import DigestStore
from .preferences import load_preferences_file, normalize_preferences
from .pipeline import load_user_preferences, plan_steps, run_digest, run_schedule
from .digest.today import today_digest, today_summaries
from .export.paths import export_summaries
from . import __version__

# Configure logging at module level
configure_logging()
logger = logging.getLogger(__name__)


def _open_store(settings):
    return DigestStore(db_path=settings.db_path)


@click.group()
def cli():
    """newsdigest: RSS news digest with per-ticker AI summaries."""
    pass


@cli.command()
@click.option("--offset", default=0, show_default=True, type=int, help="Index of the first feed query in this page")
@click.option("--limit", default=20, show_default=True, type=int, help="Feeds in this page (0 = no fetching)")
@click.option("--final", is_flag=True, help="Summarize groups after merging")
def run(offset, limit, final):
    """
    Run one pipeline invocation.
    Fetches one page of feeds into today's accumulation; --final also writes summaries.
    """
    if offset < 0:
        raise click.BadParameter("--offset must be >= 0.")
    if limit < 0:
        raise click.BadParameter("--limit must be >= 0.")

    settings = load_settings()
    result = run_digest(_open_store(settings), settings, offset=offset, limit=limit, final=final)
    _print_result(result)


@cli.command()
@click.option("--limit", default=20, show_default=True, type=int, help="Feeds per page")
@click.option("--pages", default=4, show_default=True, type=int, help="Fetch pages before the final step")
def schedule(limit, pages):
    """Run all fetch pages followed by the summaries-only final step."""
    if limit < 1:
        raise click.BadParameter("--limit must be >= 1.")
    if pages < 1:
        raise click.BadParameter("--pages must be >= 1.")

    settings = load_settings()
    results = run_schedule(_open_store(settings), settings, limit=limit, pages=pages)
    _print_json([r.model_dump(mode="json") for r in results])
    if not all(r.ok for r in results):
        sys.exit(1)


@cli.command()
@click.option("--limit", default=20, show_default=True, type=int, help="Feeds per page")
@click.option("--pages", default=4, show_default=True, type=int, help="Fetch pages before the final step")
def plan(limit, pages):
    """Print the invocation plan for a full day."""
    if limit < 0 or limit > 50:
        raise click.BadParameter("--limit must be between 0 and 50.")
    if pages < 1 or pages > 10:
        raise click.BadParameter("--pages must be between 1 and 10.")
    steps = plan_steps(limit, pages)
    _print_json({"steps": [s.model_dump() for s in steps], "limit": limit, "pages": pages})


@cli.group()
def prefs():
    """Show or change tickers and topics."""
    pass


@prefs.command("show")
def prefs_show():
    """Print stored preferences."""
    settings = load_settings()
    current = load_user_preferences(_open_store(settings), settings.user_id)
    _print_json({"user_id": settings.user_id, **current.model_dump()})


@prefs.command("set")
@click.option("--tickers", default="", help="Comma-separated tickers (e.g. AAPL,MSFT)")
@click.option("--topics", default="", help="Comma-separated topics (e.g. oil,inflation)")
def prefs_set(tickers, topics):
    """Replace stored tickers and topics."""
    new_prefs = normalize_preferences(tickers, topics)
    if new_prefs.is_empty:
        raise click.BadParameter("provide at least one ticker or topic.")
    settings = load_settings()
    store = _open_store(settings)
    store.set_preferences(settings.user_id, new_prefs)
    _print_json(new_prefs.model_dump())


@prefs.command("load")
@click.option("--file", "path", default="preferences.yaml", show_default=True, help="YAML preferences file")
def prefs_load(path):
    """Replace stored preferences from a YAML file."""
    new_prefs = load_preferences_file(path)
    settings = load_settings()
    _open_store(settings).set_preferences(settings.user_id, new_prefs)
    _print_json(new_prefs.model_dump())


@cli.group()
def today():
    """Read today's accumulated items and summaries."""
    pass


@today.command("items")
@click.option("--date", "day", required=False, help="Date (YYYY-MM-DD), defaults to today")
def today_items(day):
    """Print the accumulated items and stats."""
    settings = load_settings()
    day = day or digest_date(tz_name=settings.timezone)
    acc = today_digest(_open_store(settings), day)
    _print_json(acc.model_dump(mode="json"))


@today.command("summaries")
@click.option("--date", "day", required=False, help="Date (YYYY-MM-DD), defaults to today")
def today_group_summaries(day):
    """Print group summaries for current tickers and topics."""
    settings = load_settings()
    store = _open_store(settings)
    day = day or digest_date(tz_name=settings.timezone)
    current = load_user_preferences(store, settings.user_id)
    _print_json(today_summaries(store, day, current))


@cli.command()
@click.option("--date", "day", required=False, help="Date (YYYY-MM-DD), defaults to today")
@click.option("--out", default="./exports", help="Export root directory")
def export(day, out):
    """Export group summaries to JSON and Markdown."""
    settings = load_settings()
    store = _open_store(settings)
    day = day or digest_date(tz_name=settings.timezone)
    current = load_user_preferences(store, settings.user_id)
    paths = export_summaries(today_summaries(store, day, current), root=out)
    _print_json({"exported": paths, "date": day})


@cli.command()
def version():
    """Print version information."""
    _print_json({"version": __version__})


def _print_result(result):
    if not result.ok:
        click.echo(json.dumps({
            "ok": False,
            "error": {"type": "ConfigError", "message": result.error, "details": {}},
            "meta": {"version": 1},
        }, indent=2))
        sys.exit(1)
    _print_json(result.model_dump(mode="json"))


def _print_json(data):
    """Helper to print standard JSON envelope."""
    payload = {
        "ok": True,
        "data": data,
        "meta": {
            "version": 1
        }
    }
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def main():
    """Entry point for the CLI."""
    try:
        cli(standalone_mode=False)
    except Exception as e:
        if isinstance(e, click.exceptions.Exit):
             sys.exit(e.exit_code)
        if isinstance(e, click.exceptions.Abort):
             sys.exit(130)

        # Click usage errors (missing args) raise UsageError
        # convert them to JSON
        if isinstance(e, click.exceptions.UsageError):
             print(format_error(e))
             sys.exit(1)

        if not isinstance(e, NewsDigestError):
            logger.exception("Unexpected failure")
        print(format_error(e))
        sys.exit(1)

if __name__ == "__main__":
    main()
