"""
Command-line interface for DOZE.

Runs sleep detection over interaction event logs (CSV) and manages the
stored user preferences.
"""

import logging

from datetime import datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Any

import click

from doze import config as user_config
from doze.analysis.service import SleepTrackingService
from doze.config import (
    load_preferences,
    preferences_to_toml,
    reset_preferences,
    set_preference,
)
from doze.export import (
    export_binary,
    export_csv,
    export_json,
    export_performance_metrics,
)
from doze.logging_config import setup_logging
from doze.models.events import InteractionEvent
from doze.models.result import SleepDetectionResult
from doze.parsers.events_csv import EventParseError, load_events_csv

logger = logging.getLogger(__name__)

try:
    __version__ = get_version("doze")
except PackageNotFoundError:
    __version__ = "dev"

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
CLOCK_PREFERENCES = (
    "target_bedtime",
    "target_wake_time",
    "weekday_bedtime",
    "weekend_bedtime",
)


def _load_events(path: str) -> list[InteractionEvent]:
    try:
        events = load_events_csv(Path(path))
    except EventParseError as e:
        raise click.ClickException(str(e)) from e
    return sorted(events, key=lambda event: event.timestamp)


def _build_service(events: list[InteractionEvent]) -> SleepTrackingService:
    """Create an engine with the stored preferences and feed it the events."""
    service = SleepTrackingService(load_preferences())
    for event in events:
        service.add_event(event)
    return service


def _resolve_now(now: datetime | None, events: list[InteractionEvent]) -> datetime:
    tzinfo = events[-1].timestamp.tzinfo if events else None
    if now is None:
        return datetime.now(tz=tzinfo)
    if now.tzinfo is None and tzinfo is not None:
        # --now is parsed as wall-clock time in the log's timezone
        return now.replace(tzinfo=tzinfo)
    return now


def _format_clock(minutes: float) -> str:
    total = int(round(minutes)) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def _describe(result: SleepDetectionResult) -> list[str]:
    if result.bedtime is None:
        return ["No sleep detected."]

    lines = [f"Bedtime:      {result.bedtime:%Y-%m-%d %H:%M}"]
    if result.wake_time is None:
        lines.append("Wake time:    (still asleep)")
    else:
        lines.append(f"Wake time:    {result.wake_time:%Y-%m-%d %H:%M}")
        lines.append(f"Duration:     {result.duration_hours:.2f} h")
        lines.append(f"Quality:      {result.quality_score:.2f}")
        lines.append(f"Efficiency:   {result.sleep_efficiency():.1%}")
        lines.append(f"Interruptions: {len(result.interruptions)}")
        lines.append(f"Pattern match: {result.pattern_match_score:.2f}")
    lines.append(f"Confidence:   {result.confidence_label}")
    if result.is_manually_confirmed:
        lines.append("Manually confirmed: yes")
    return lines


def _coerce_value(raw: str) -> Any:
    """Turn a command-line value into a bool, int or float where it looks like one."""
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


@click.group()
@click.version_option(__version__, prog_name="doze")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """DOZE: sleep detection from phone interaction patterns"""
    setup_logging(verbose=verbose, console_format="%(levelname)s: %(message)s")


@cli.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--now", type=click.DateTime(), help="Analysis time (default: now)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json", "csv"]),
    default="text",
    show_default=True,
)
@click.option("--debug", is_flag=True, help="Include interruptions in JSON output")
def detect(
    events_file: str, now: datetime | None, output_format: str, debug: bool
) -> None:
    """Detect the most recent sleep period in an event log."""
    events = _load_events(events_file)
    service = _build_service(events)
    result = service.detect_sleep(_resolve_now(now, events))

    if output_format == "json":
        click.echo(export_json([result], include_debug=debug))
    elif output_format == "csv":
        click.echo(export_csv([result]), nl=False)
    else:
        for line in _describe(result):
            click.echo(line)


@cli.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--now", type=click.DateTime(), help="Analysis time (default: now)")
def status(events_file: str, now: datetime | None) -> None:
    """Tell whether the user is asleep right now."""
    events = _load_events(events_file)
    service = _build_service(events)
    moment = _resolve_now(now, events)

    if service.is_currently_asleep(moment):
        start = service.get_estimated_sleep_start(moment)
        click.echo("Asleep")
        if start is not None:
            click.echo(f"  since {start:%Y-%m-%d %H:%M}")
    else:
        click.echo("Awake")


@cli.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--now", type=click.DateTime(), help="Analysis time (default: now)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "csv", "binary"]),
    default="json",
    show_default=True,
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file")
@click.option("--learn", is_flag=True, help="Learn the weekly pattern from results")
@click.option("--metrics", is_flag=True, help="Print performance metrics to stderr")
def history(
    events_file: str,
    now: datetime | None,
    output_format: str,
    output: str | None,
    learn: bool,
    metrics: bool,
) -> None:
    """Detect every sleep period in an event log and export them."""
    events = _load_events(events_file)
    service = _build_service(events)
    results = service.detect_sleep_history(_resolve_now(now, events))

    if learn:
        learned = sum(service.record_completed_sleep(r) for r in results)
        # Rescore with the learned pattern in place
        results = service.detect_sleep_history(_resolve_now(now, events))
        pattern = service.get_weekly_pattern()
        click.echo(f"Learned from {learned} sessions", err=True)
        for day, name in enumerate(WEEKDAY_NAMES):
            click.echo(
                f"  {name}: bedtime {_format_clock(pattern.typical_bedtimes[day])}, "
                f"wake {_format_clock(pattern.typical_wake_times[day])}, "
                f"confidence {pattern.pattern_confidence[day]:.2f}",
                err=True,
            )

    if output_format == "binary":
        if output is None:
            raise click.ClickException("Binary export requires --output")
        Path(output).write_bytes(export_binary(results))
        click.echo(f"✓ Wrote {len(results)} sessions to {output}", err=True)
    else:
        text = export_json(results) if output_format == "json" else export_csv(results)
        if output is None:
            click.echo(text, nl=output_format == "json")
        else:
            Path(output).write_text(text)
            click.echo(f"✓ Wrote {len(results)} sessions to {output}", err=True)

    if metrics:
        click.echo(export_performance_metrics(service.get_performance_metrics()), err=True)


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("show")
def show_config_cmd() -> None:
    """Show the active preferences."""
    config_path = user_config.get_config_path()
    if config_path.exists():
        click.echo(f"Preferences (from {config_path}):")
    else:
        click.echo("Preferences (defaults, no config file):")

    for key, value in preferences_to_toml(load_preferences()).items():
        if key in CLOCK_PREFERENCES:
            click.echo(f"  {key} = {value} ({_format_clock(value)})")
        else:
            click.echo(f"  {key} = {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def set_config_cmd(key: str, value: str) -> None:
    """Set a preference (durations in seconds, clock times in minutes)."""
    try:
        set_preference(key, _coerce_value(value))
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"✓ {key} = {value}")


@config.command("reset")
def reset_config_cmd() -> None:
    """Restore default preferences."""
    reset_preferences()
    click.echo("✓ Preferences reset to defaults")


if __name__ == "__main__":
    cli()
