"""Main entry point for the notification agent."""

import argparse
import logging
import os
import sys
import time
from typing import Iterable

from .app import App
from .config import SETTINGS, load_config
from .date_utils import format_timestamp
from .dedup import dedupe
from .models import NotificationRecord

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def _print_records(records: Iterable[NotificationRecord]) -> None:
    count = 0
    for record in records:
        flags = ("*" if record.is_important else " ") + (" " if record.is_read else "u")
        text = record.title or record.body
        print(f"{record.id:>6} {flags} {format_timestamp(record.timestamp):>9}  {record.source_name}: {text}")
        count += 1
    print(f"{count} notification(s)")


def run_service(app: App) -> None:
    """Run until interrupted."""
    app.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    finally:
        app.stop()


def run_command(app: App, args) -> int:
    """Execute one CLI command. Returns the process exit code."""
    if args.command == "run":
        run_service(app)
        return 0

    if args.command == "cleanup":
        result = app.retention.run_cleanup()
        print(f"Deleted {result.deleted_count} notification(s)")
        return 0 if result.succeeded else 1

    if args.command == "list":
        records = app.store.important_notifications() if args.important else app.store.all_notifications()
        _print_records(records if args.all else dedupe(records))
        return 0

    if args.command == "search":
        _print_records(dedupe(app.store.search(args.query)))
        return 0

    if args.command == "read":
        if not app.aggregator.mark_as_read(args.id):
            print(f"No unread notification with id {args.id}")
        return 0

    if args.command == "read-all":
        count = app.aggregator.mark_all_important_as_read()
        app.realert.on_all_marked_read()
        print(f"Marked {count} important notification(s) as read")
        return 0

    if args.command in ("important", "unimportant"):
        existing = app.store.get_preference(args.source)
        name = args.name or (existing.display_name if existing else args.source)
        app.store.set_preference(args.source, name, args.command == "important")
        return 0

    if args.command == "settings":
        if args.key:
            if args.key not in SETTINGS:
                print(f"Unknown setting '{args.key}'. Known: {', '.join(SETTINGS)}")
                return 2
            if args.value is None:
                print(app.settings.get(args.key))
                return 0
            app.settings.set(args.key, args.value)
        for key, value in app.settings.as_dict().items():
            print(f"{key} = {value}")
        return 0

    if args.command == "status":
        estimate = app.retention.estimate_storage()
        print(f"Stored notifications: {estimate.count} (~{estimate.estimated_kb}KB)")
        print(f"Unread important: {app.aggregator.unread_important_count()}")
        important_sources = [p for p in app.store.preferences() if p.is_important]
        print(f"Important sources: {len(important_sources)}")
        for event in app.errors.recent():
            print(f"Error [{event.component}] {event.error}")
        return 0

    if args.command == "clear":
        print(f"Deleted {app.store.clear_all()} notification(s)")
        return 0

    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Notification agent that tracks important sources and re-alerts until read"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run the agent: feed polling, daily cleanup and re-alerts")
    sub.add_parser("cleanup", help="Delete expired and excess notifications now")

    list_parser = sub.add_parser("list", help="List stored notifications, newest first")
    list_parser.add_argument("--important", action="store_true", help="Only important notifications")
    list_parser.add_argument("--all", action="store_true", help="Show repeats that are normally collapsed")

    search_parser = sub.add_parser("search", help="Search source, title and body text")
    search_parser.add_argument("query")

    read_parser = sub.add_parser("read", help="Mark one notification as read")
    read_parser.add_argument("id", type=int)

    sub.add_parser("read-all", help="Mark all important notifications as read")

    important_parser = sub.add_parser("important", help="Mark a source as important")
    important_parser.add_argument("source")
    important_parser.add_argument("--name", default=None, help="Display name for the source")

    unimportant_parser = sub.add_parser("unimportant", help="Mark a source as not important")
    unimportant_parser.add_argument("source")
    unimportant_parser.add_argument("--name", default=None, help="Display name for the source")

    settings_parser = sub.add_parser("settings", help="Show or change a setting")
    settings_parser.add_argument("key", nargs="?")
    settings_parser.add_argument("value", nargs="?")

    sub.add_parser("status", help="Show storage and unread counts")
    sub.add_parser("clear", help="Delete all stored notifications")
    return parser


def main(argv=None) -> None:
    """Main entry point with command-line argument parsing."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    app = App(config)
    try:
        code = run_command(app, args)
    except Exception as e:
        logger.error(f"Fatal error running '{args.command}': {e}", exc_info=True)
        code = 1
    finally:
        if args.command != "run":
            app.store.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
