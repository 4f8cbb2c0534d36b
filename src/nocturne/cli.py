"""
Command-line interface for nocturne.

Provides commands for importing oximetry and health-API data into existing
daily reports, inspecting the stored days, and managing configuration.
"""

import logging
import sys

from datetime import datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from nocturne.config import (
    get_config_path,
    get_default_profile,
    get_import_settings,
    load_config,
    set_default_profile,
    unset_default_profile,
)
from nocturne.constants import DEFAULT_LIST_DAYS_LIMIT
from nocturne.database import models
from nocturne.database.repository import SqlDayRepository
from nocturne.database.session import init_database, session_scope
from nocturne.exceptions import NocturneError, StoreFailure
from nocturne.importers import decode_inputs, decoder_registry, register_all_decoders
from nocturne.importers.device_days import load_all_device_days
from nocturne.importers.oximetry_csv import OximetryImportOptions
from nocturne.logging_config import setup_logging
from nocturne.reconcile import DayReconciler, FillerPolicy, ImportCoordinator

logger = logging.getLogger(__name__)

try:
    __version__ = get_version("nocturne")
except PackageNotFoundError:
    __version__ = "dev"


def _init_db(db: str | None) -> None:
    try:
        init_database(Path(db) if db else None)
    except StoreFailure as e:
        raise click.ClickException(str(e)) from e


def _fmt(value: float | None) -> str:
    return f"{value:.1f}" if value is not None else "N/A"


def ensure_profile(username: str) -> int:
    """Get or create profile by username, return profile_id."""
    with session_scope() as session:
        profile = session.query(models.Profile).filter_by(username=username).first()
        if not profile:
            profile = models.Profile(username=username, settings={})
            session.add(profile)
            session.flush()
            logger.info(f"Created profile '{username}'")
        return profile.id


def resolve_profile(explicit_profile: str | None, db_session: Session) -> str:
    """
    Resolve profile using precedence: CLI > config > auto-detect.

    Args:
        explicit_profile: Value from --profile flag (None if not provided)
        db_session: Active database session

    Returns:
        Username to use

    Raises:
        click.ClickException: If profile cannot be resolved
    """
    if explicit_profile:
        return explicit_profile

    config_profile = get_default_profile()
    if config_profile:
        prof = (
            db_session.query(models.Profile).filter_by(username=config_profile).first()
        )
        if prof:
            return config_profile
        click.echo(
            f"Warning: Default profile '{config_profile}' not found in database.",
            err=True,
        )
        click.echo(
            "Update with: nocturne config set-default-profile <name>",
            err=True,
        )

    profiles = db_session.query(models.Profile).all()
    if len(profiles) == 1:
        username: str = profiles[0].username
        return username

    if len(profiles) == 0:
        raise click.ClickException(
            "No profiles found. Create one with: nocturne <command> --profile <name>"
        )
    profile_list = ", ".join([p.username for p in profiles])
    raise click.ClickException(
        f"Multiple profiles found ({profile_list}). "
        "Specify --profile <name> or set default: "
        "nocturne config set-default-profile <name>"
    )


def _resolve_profile_id(profile: str | None) -> int:
    with session_scope() as session:
        username = resolve_profile(profile, session)
    return ensure_profile(username)


def _run_import(
    decoder_id: str,
    files: tuple[str, ...],
    profile: str | None,
    options: OximetryImportOptions | None = None,
) -> None:
    """Decode the given files and reconcile them into the stored days."""
    register_all_decoders()
    decoder = decoder_registry.get(decoder_id)
    profile_id = _resolve_profile_id(profile)

    paths = [Path(f) for f in files]
    click.echo(f"Decoding {len(paths)} file(s) with {decoder.friendly_name}...")
    batches, failures = decode_inputs(decoder, paths, options)

    for failure in failures:
        click.echo(f"⚠ {failure}", err=True)

    if not batches:
        click.echo("Nothing new to import")
        return

    settings = get_import_settings()
    coordinator = ImportCoordinator(
        SqlDayRepository(),
        profile_id,
        reconciler=DayReconciler(FillerPolicy(settings.filler)),
        merge_gap=settings.merge_gap,
        progress=logger.debug,
    )

    try:
        result = coordinator.import_batches(batches, failures)
    except NocturneError as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        raise click.ClickException(f"Import failed, no changes made ({e})") from e

    click.echo(f"✓ {result.summary()}")
    for merge in result.merges:
        click.echo(
            f"  {merge.report_date}: +{len(merge.added_sessions)} sessions, "
            f"+{len(merge.added_events)} events"
        )


@click.group()
@click.version_option(__version__, prog_name="nocturne")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """nocturne: merge oximetry and sleep-stage data into therapy days"""
    setup_logging(verbose=verbose, console_format="%(levelname)s: %(message)s")


@cli.command("import-oximetry")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--profile", required=False, help="Profile username (optional if default set)"
)
@click.option(
    "--calibration-adjust",
    type=float,
    default=0.0,
    help="Value added to every SpO2 reading (%)",
)
@click.option(
    "--time-adjust",
    type=float,
    default=0.0,
    help="Seconds added to every timestamp",
)
@click.option("--db", type=click.Path(), help="Database path")
def import_oximetry(
    files: tuple[str, ...],
    profile: str | None,
    calibration_adjust: float,
    time_adjust: float,
    db: str | None,
) -> None:
    """Import pulse-oximeter CSV exports into existing days."""
    _init_db(db)
    options = OximetryImportOptions(
        calibration_adjust=calibration_adjust, time_adjust_seconds=time_adjust
    )
    _run_import("oximetry_csv", files, profile, options)


@cli.command("import-health")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--profile", required=False, help="Profile username (optional if default set)"
)
@click.option("--db", type=click.Path(), help="Database path")
def import_health(files: tuple[str, ...], profile: str | None, db: str | None) -> None:
    """Import health-API sleep sessions into existing days."""
    _init_db(db)
    _run_import("health_api_json", files, profile)


@cli.command("import-days")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--profile", required=False, help="Profile username (optional if default set)"
)
@click.option("--db", type=click.Path(), help="Database path")
def import_days(files: tuple[str, ...], profile: str | None, db: str | None) -> None:
    """Store device-recorded daily reports (JSON), replacing existing days."""
    _init_db(db)
    profile_id = _resolve_profile_id(profile)

    days, failures = load_all_device_days([Path(f) for f in files])
    for failure in failures:
        click.echo(f"⚠ {failure}", err=True)

    if not days:
        click.echo("No daily reports to store")
        return

    coordinator = ImportCoordinator(
        SqlDayRepository(), profile_id, progress=logger.debug
    )
    try:
        most_recent = coordinator.store_device_days(days)
    except NocturneError as e:
        logger.error(f"Device import failed: {e}", exc_info=True)
        raise click.ClickException(f"Import failed, no changes made ({e})") from e

    click.echo(f"✓ Stored {len(days)} day(s), most recent {most_recent}")


@cli.command("list-profiles")
@click.option("--db", type=click.Path(), help="Database path")
def list_profiles(db: str | None) -> None:
    """List all available profiles in the database."""
    _init_db(db)

    with session_scope() as session:
        profiles = session.query(models.Profile).all()

        if not profiles:
            click.echo("No profiles found in database")
            return

        for profile in profiles:
            day_count = session.execute(
                select(func.count(models.Day.id)).where(
                    models.Day.profile_id == profile.id
                )
            ).scalar_one()
            click.echo(f"{profile.username}: {day_count} days")


@cli.command("list-days")
@click.option(
    "--profile", required=False, help="Profile username (optional if default set)"
)
@click.option(
    "--limit",
    type=int,
    default=DEFAULT_LIST_DAYS_LIMIT,
    help="Max days to show (use 0 for all)",
)
@click.option("--db", type=click.Path(), help="Database path")
def list_days(profile: str | None, limit: int, db: str | None) -> None:
    """List stored days, most recent first."""
    _init_db(db)

    with session_scope() as session:
        username = resolve_profile(profile, session)
        query = (
            select(models.Day)
            .join(models.Profile)
            .where(models.Profile.username == username)
            .order_by(models.Day.date.desc())
        )
        if limit > 0:
            query = query.limit(limit)
        days = session.execute(query).scalars().all()

        if not days:
            click.echo("No days found")
            return

        click.echo(
            f"\n{'Date':<12} {'Start':<8} {'End':<8} {'Sessions':>8} {'Hours':>7}"
        )
        click.echo("=" * 47)
        for day in days:
            start = f"{day.recording_start:%H:%M}" if day.recording_start else "-"
            end = f"{day.recording_end:%H:%M}" if day.recording_end else "-"
            click.echo(
                f"{day.date:%Y-%m-%d}   {start:<8} {end:<8} "
                f"{day.session_count:>8} {day.total_hours:>7.1f}"
            )


@cli.command("show-day")
@click.argument("day_date", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option(
    "--profile", required=False, help="Profile username (optional if default set)"
)
@click.option("--db", type=click.Path(), help="Database path")
def show_day(day_date: datetime, profile: str | None, db: str | None) -> None:
    """Show the sessions, events and statistics stored for one day."""
    _init_db(db)

    with session_scope() as session:
        username = resolve_profile(profile, session)
        profile_id = session.execute(
            select(models.Profile.id).filter_by(username=username)
        ).scalar_one_or_none()

    if profile_id is None:
        raise click.ClickException(f"Profile '{username}' not found")

    repository = SqlDayRepository()
    repository.begin()
    try:
        day = repository.load_day(profile_id, day_date.date())
    finally:
        repository.rollback()

    if day is None:
        click.echo(f"No data for {day_date:%Y-%m-%d}")
        return

    click.echo(f"\n{day.report_date:%A, %B %d, %Y}")
    click.echo(f"  Recording: {day.recording_start_time} - {day.recording_end_time}")
    click.echo(f"\nSessions ({len(day.sessions)}):")
    for s in day.sessions:
        signals = ", ".join(sorted(s.signals)) or "no signals"
        click.echo(
            f"  {s.start_time:%H:%M:%S} - {s.end_time:%H:%M:%S}  "
            f"{s.source_type.value:<14} {signals}"
        )

    if day.events:
        counts: dict[str, int] = {}
        for e in day.events:
            counts[e.event_type] = counts.get(e.event_type, 0) + 1
        click.echo(f"\nEvents ({len(day.events)}):")
        for event_type, count in sorted(counts.items()):
            click.echo(f"  {event_type}: {count}")

    if day.statistics:
        click.echo("\nStatistics:")
        for st in day.statistics:
            click.echo(
                f"  {st.signal_name:<14} min {_fmt(st.minimum)}  "
                f"avg {_fmt(st.average)}  max {_fmt(st.maximum)} {st.unit}"
            )


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("set-default-profile")
@click.argument("username")
@click.option("--db", type=click.Path(), help="Database path")
def set_default_profile_cmd(username: str, db: str | None) -> None:
    """Set default profile for CLI commands (must exist in database)."""
    _init_db(db)

    with session_scope() as session:
        profile = session.query(models.Profile).filter_by(username=username).first()
        if not profile:
            all_profiles = session.query(models.Profile).all()
            if all_profiles:
                available = ", ".join([p.username for p in all_profiles])
                click.echo(f"Error: Profile '{username}' not found.", err=True)
                click.echo(f"Available profiles: {available}", err=True)
            else:
                click.echo("Error: No profiles in database.", err=True)
            sys.exit(1)

    set_default_profile(username)
    click.echo(f"✓ Default profile: {username}")
    click.echo(f"  Config: {get_config_path()}")


@config.command("unset-default-profile")
def unset_default_profile_cmd() -> None:
    """Remove default profile setting."""
    default = get_default_profile()
    if default:
        unset_default_profile()
        click.echo(f"✓ Removed default profile: {default}")
    else:
        click.echo("No default profile was configured.")


@config.command("show")
def show_config_cmd() -> None:
    """Show all configuration settings."""
    config_path = get_config_path()
    if not config_path.exists():
        click.echo(f"No config file: {config_path}")
        return

    click.echo(f"Config file: {config_path}\n")
    config_data = load_config()
    if not config_data:
        click.echo("Configuration is empty.")
        return

    settings = get_import_settings()
    click.echo("Settings:")
    if "profile" in config_data:
        click.echo("  [profile]")
        for key, value in config_data["profile"].items():
            click.echo(f'    {key} = "{value}"')
    click.echo("  [import]")
    click.echo(f"    merge_gap_minutes = {settings.merge_gap_minutes:g}")
    for name, value in sorted(settings.filler.items()):
        click.echo(f'    filler."{name}" = {value:g}')


def main() -> None:
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
