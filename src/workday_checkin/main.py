"""Main entry point for the workday check-in reminder daemon."""

import asyncio
import logging
import signal
import sys
from datetime import date
from pathlib import Path

# Load environment variables from .env file before importing other modules
from dotenv import load_dotenv
load_dotenv(".env", override=False)

from workday_checkin.checkin.export import export_range_csv
from workday_checkin.checkin.review import review_reasons
from workday_checkin.config import settings
from workday_checkin.config.loader import get_config_path, get_yaml_defaults
from workday_checkin.logging import configure_logging, format_log_context
from workday_checkin.reminders.clock import ClockChangeDetector
from workday_checkin.reminders.scheduler import (
    APSchedulerTimer,
    LoggingNotificationSink,
    ReminderScheduler,
    start_scheduler,
    stop_scheduler,
)
from workday_checkin.storage.reminder_flags import ReminderFlagStore
from workday_checkin.storage.settings_store import ReminderSettingsStore
from workday_checkin.storage.work_entries import SqliteWorkEntryStore

logger = logging.getLogger(__name__)


def config_verify() -> int:
    """Verify configuration loading and print status.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    print("Workday Check-in Configuration Verification")
    print("=" * 40)

    errors = []

    # 1. Check config.yaml
    try:
        defaults = get_yaml_defaults()
        print(f"✓ {get_config_path()} loaded ({len(defaults)} keys)")
    except Exception as e:
        errors.append(f"config.yaml: {e}")
        print(f"✗ config.yaml: {e}")

    # 2. Check database path
    try:
        db_path = settings.db_path
        print(f"✓ DB_PATH: {db_path}")
    except OSError as e:
        errors.append(f"DB_PATH: {e}")
        print(f"✗ DB_PATH: {e}")

    # 3. Check reminder defaults
    try:
        reminder_settings = settings.default_reminder_settings()
        for name in ("morning", "evening"):
            window = getattr(reminder_settings, name)
            state = "enabled" if window.enabled else "disabled"
            print(f"✓ {name} window: {window.start:%H:%M}-{window.end:%H:%M} ({state})")
        fallback = "enabled" if reminder_settings.fallback_enabled else "disabled"
        print(f"✓ fallback reminder: {reminder_settings.fallback_time:%H:%M} ({fallback})")
        area = reminder_settings.reference_area
        print(
            f"✓ reference area: ({area.center_lat}, {area.center_lon}) "
            f"r={area.radius_meters:.0f} m"
        )
    except ValueError as e:
        errors.append(f"reminders: {e}")
        print(f"✗ reminders: {e}")

    print()
    if errors:
        print(f"✗ {len(errors)} error(s)")
        return 1
    print("✓ Configuration OK")
    return 0


def export_command(args: list[str]) -> int:
    """Print entries between two ISO dates (inclusive) as CSV."""
    if len(args) != 2:
        print("Usage: workday-checkin export START END  (dates as YYYY-MM-DD)")
        return 1
    try:
        start, end = date.fromisoformat(args[0]), date.fromisoformat(args[1])
    except ValueError as e:
        print(f"✗ {e}")
        return 1

    store = SqliteWorkEntryStore(settings.db_path)
    sys.stdout.write(export_range_csv(store, start, end))
    return 0


def review_command() -> int:
    """List entries flagged for review, newest first, with their reasons."""
    store = SqliteWorkEntryStore(settings.db_path)
    entries = store.get_needing_review()
    if not entries:
        print("✓ No entries need review")
        return 0

    for entry in entries:
        reasons = ", ".join(reason.value for reason in review_reasons(entry))
        print(f"{entry.date.isoformat()}  {reasons}")
    print(f"\n{len(entries)} flagged")
    return 0


def build_reminder_scheduler(scheduler, db_path: Path | None = None) -> ReminderScheduler:
    """Wire the stores, reminder ledger, sink and timer into a ReminderScheduler."""
    db_path = db_path or settings.db_path
    settings_store = ReminderSettingsStore(db_path, settings.default_reminder_settings())
    settings_store.load(persist_default=True)

    return ReminderScheduler(
        settings_store,
        SqliteWorkEntryStore(db_path),
        ReminderFlagStore(db_path),
        LoggingNotificationSink(),
        APSchedulerTimer(scheduler),
        max_attempts=settings.SCHEDULER_MAX_ATTEMPTS,
        backoff_seconds=settings.SCHEDULER_BACKOFF_SECONDS,
    )


async def main() -> None:
    """
    Start the reminder daemon.

    This function:
    1. Configures logging
    2. Starts the APScheduler event loop scheduler
    3. Arms the reminder scheduler (boot signal)
    4. Starts the clock/timezone change detector
    5. Waits for SIGINT/SIGTERM
    """
    configure_logging(log_level=settings.LOG_LEVEL, log_file=settings.LOG_FILE)

    logger.info(f'{format_log_context("system", component="startup")} scheduler_starting')
    scheduler = await start_scheduler()
    reminders = build_reminder_scheduler(scheduler)

    state = await reminders.on_boot()
    logger.info(f'{format_log_context("system", component="startup", state=state.value)} armed')

    detector = ClockChangeDetector(
        reminders.on_clock_changed,
        threshold_seconds=settings.CLOCK_JUMP_THRESHOLD_SECONDS,
    )
    detector.start(scheduler, interval_seconds=settings.CLOCK_CHECK_SECONDS)

    # Setup graceful shutdown
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler(sig, frame):
        print("\nShutting down...")
        loop.call_soon_threadsafe(shutdown_event.set)

    def clock_signal_handler(sig, frame):
        loop.call_soon_threadsafe(
            lambda: loop.create_task(reminders.on_clock_changed())
        )

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, clock_signal_handler)

    try:
        print(" Reminder daemon is running. Press Ctrl+C to stop.", flush=True)
        await shutdown_event.wait()
    finally:
        logger.info(f'{format_log_context("system", component="shutdown")} stopping_scheduler')
        await reminders.disarm()
        await stop_scheduler()
        logger.info(f'{format_log_context("system", component="shutdown")} complete')
        print(" Daemon stopped")


def run_main() -> None:
    """Synchronous entry point for console script.

    Handles CLI commands:
    - workday-checkin config verify - Verify configuration
    - workday-checkin export START END - Print entries as CSV
    - workday-checkin review - List entries that need review
    - workday-checkin (no args) - Start the reminder daemon
    """
    # Check for CLI commands
    if len(sys.argv) > 1:
        command = sys.argv[1].lower()
        if command == "config":
            if len(sys.argv) > 2 and sys.argv[2].lower() == "verify":
                sys.exit(config_verify())
            else:
                print("Available commands:")
                print("  workday-checkin config verify  - Verify configuration")
                sys.exit(1)
        if command == "export":
            sys.exit(export_command(sys.argv[2:]))
        if command == "review":
            sys.exit(review_command())
        print(f"Unknown command: {command}")
        sys.exit(1)

    # Default: start the daemon
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    run_main()
