from __future__ import annotations

import json

import typer

from ..constants import DEFAULT_CLEANUP_DAYS
from ..db import get_session, init_db, ping_database
from ..logging_config import setup_logging
from ..repositories.analyses import analysis_stats, latest_sentiment_analysis
from ..repositories.news import cleanup_old_data, news_stats
from ..services.market_sentiment import analyze_market_sentiment

app = typer.Typer(no_args_is_help=True, add_completion=False)


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
):
    """Market sentiment from news headlines via an external agent CLI."""
    setup_logging(level=log_level)


def _print_verdict(result: dict) -> None:
    score = result.get("score")
    typer.echo("")
    typer.echo("=" * 43)
    typer.echo("AI MARKET VERDICT")
    typer.echo("=" * 43)
    typer.echo(f"SENTIMENT : {result['sentiment']} ({'N/A' if score is None else score}/100)")
    typer.echo(f"RISK LEVEL: {result['risk_level']}")
    typer.echo("")
    typer.echo("CATALYSTS:")
    for c in result.get("catalysts") or []:
        typer.echo(f" - {c}")
    typer.echo("")
    typer.echo("SUMMARY:")
    typer.echo(result.get("summary", ""))
    source = result.get("data_source")
    if source:
        typer.echo(f"\n[{result.get('analysis_method')} | {source} | {result.get('news_count', 0)} headlines]")
    typer.echo("=" * 43)


@app.command("init-db")
def init_db_cmd():
    """Create all tables."""
    init_db()
    typer.echo("DB initialized.")


@app.command("analyze")
def analyze_cmd(
    force_refresh: bool = typer.Option(False, "--force-refresh", help="Ignore the news cache and scrape again."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON."),
):
    """Run a full market sentiment analysis."""
    result = analyze_market_sentiment(force_refresh=force_refresh)
    if as_json:
        typer.echo(json.dumps(result, indent=2))
    else:
        _print_verdict(result)


@app.command("latest")
def latest_cmd():
    """Show the most recent stored analysis."""
    if not ping_database():
        raise typer.Exit(code=1)
    init_db()
    with get_session() as sess:
        row = latest_sentiment_analysis(sess)
    if row is None:
        typer.echo("No analyses stored yet.")
        return
    _print_verdict(row)


@app.command("stats")
def stats_cmd():
    """Database statistics (news, sources, analyses)."""
    if not ping_database():
        typer.echo(json.dumps({"error": "Database not connected"}))
        raise typer.Exit(code=1)
    init_db()
    with get_session() as sess:
        out = {**news_stats(sess), "analyses": analysis_stats(sess)}
    typer.echo(json.dumps(out, indent=2, default=str))


@app.command("cleanup")
def cleanup_cmd(
    days: int = typer.Option(DEFAULT_CLEANUP_DAYS, "--days", min=1, help="Keep this many days of news."),
):
    """Delete news items older than --days."""
    if not ping_database():
        raise typer.Exit(code=1)
    init_db()
    with get_session() as sess:
        n = cleanup_old_data(sess, days)
        sess.commit()
    typer.echo(f"Cleaned up {n} old news items (kept {days} days).")


if __name__ == "__main__":
    app()
