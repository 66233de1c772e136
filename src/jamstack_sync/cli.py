"""Command-line interface for jamstack-sync."""

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path

from jamstack_sync.app import Application
from jamstack_sync.config import (
    DEFAULT_CONFIG_PATH,
    SECRET_KEY_ENV,
    encrypt_token,
    generate_key,
    load_settings,
)
from jamstack_sync.content import JsonContentSource
from jamstack_sync.exceptions import ConfigurationError
from jamstack_sync.pipeline import DEFAULT_PRIORITY, HIGH_PRIORITY
from schemas.sync_state import SyncStatus

DEFAULT_CONTENT_DIR = Path("./content")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def build_application(args: argparse.Namespace) -> Application:
    """Load settings and build the application for a command.

    The default settings file is optional; an explicit --config must exist.
    """
    config_path = args.config
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH

    settings = load_settings(config_path)
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    return Application(settings, JsonContentSource(args.content_dir))


def _run(args: argparse.Namespace, command) -> int:
    """Build the application, run a command against it and map errors to exit codes."""
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        with build_application(args) as app:
            return command(app, args, logger)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


def enqueue(args: argparse.Namespace) -> int:
    """Execute the enqueue command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors)
    """

    def command(app, args, logger):
        if app.queue.enqueue(args.item_id, args.priority):
            logger.info(f"Item {args.item_id} is pending; run 'work' to sync it")
        else:
            logger.info(f"Item {args.item_id} was not enqueued")
        return 0

    return _run(args, command)


def sync(args: argparse.Namespace) -> int:
    """Execute the sync command: sync one item now, at high priority."""

    def command(app, args, logger):
        enqueued = app.queue.enqueue(args.item_id, HIGH_PRIORITY)
        if not enqueued and app.queue.get_status(args.item_id) is SyncStatus.PENDING:
            # Left pending by an earlier enqueue; run it now
            app.task_runner.schedule(args.item_id, HIGH_PRIORITY)

        app.task_runner.run_pending()

        state = app.state_store.get(args.item_id)
        logger.info(f"Item {args.item_id}: {state.status.value}")
        if state.status is not SyncStatus.SUCCESS:
            return 1
        if state.last_commit_reference:
            logger.info(f"  Commit: {state.last_commit_reference}")
        return 0

    return _run(args, command)


def cancel(args: argparse.Namespace) -> int:
    """Execute the cancel command."""

    def command(app, args, logger):
        app.queue.cancel(args.item_id)
        return 0

    return _run(args, command)


def status(args: argparse.Namespace) -> int:
    """Execute the status command."""

    def command(app, args, logger):
        if args.item_id is not None:
            state = app.state_store.get(args.item_id)
            logger.info(f"Item {state.item_id}: {state.status.value}")
            if state.retry_count:
                logger.info(f"  Retries: {state.retry_count}")
            if state.last_synced_at:
                logger.info(f"  Last synced: {state.last_synced_at.isoformat()}")
            if state.cached_file_path:
                logger.info(f"  Path: {state.cached_file_path}")
            if state.last_commit_reference:
                logger.info(f"  Commit: {state.last_commit_reference}")
            return 0

        statuses = app.queue.get_status()
        if not statuses:
            logger.info("No items have been synced")
        for item_id, item_status in statuses.items():
            logger.info(f"Item {item_id}: {item_status.value}")
        return 0

    return _run(args, command)


def stats(args: argparse.Namespace) -> int:
    """Execute the stats command."""

    def command(app, args, logger):
        for name, count in app.queue.get_queue_stats().items():
            logger.info(f"{name}: {count}")
        return 0

    return _run(args, command)


def retry_failed(args: argparse.Namespace) -> int:
    """Execute the retry-failed command."""

    def command(app, args, logger):
        summary = app.queue.retry_failed()
        logger.info(f"Retried: {summary.retried}")
        logger.info(f"Skipped: {summary.skipped}")
        return 0

    return _run(args, command)


def bulk_sync(args: argparse.Namespace) -> int:
    """Execute the bulk-sync command."""

    def command(app, args, logger):
        summary = app.queue.bulk_enqueue()
        logger.info(f"Published items: {summary.total}")
        logger.info(f"Enqueued: {summary.enqueued}")
        logger.info(f"Skipped: {summary.skipped}")
        return 0

    return _run(args, command)


def delete(args: argparse.Namespace) -> int:
    """Execute the delete command."""

    def command(app, args, logger):
        outcome = app.sync_runner.delete(args.item_id)
        logger.info(f"Deleted {len(outcome.deleted)} files for item {args.item_id}")
        for path in outcome.deleted:
            logger.info(f"  - {path}")
        if outcome.failed:
            logger.warning(f"  Failed: {len(outcome.failed)}")
            for path in outcome.failed:
                logger.warning(f"    - {path}")
        return 0

    return _run(args, command)


def work(args: argparse.Namespace) -> int:
    """Execute the work command: run pending jobs, optionally forever."""

    def command(app, args, logger):
        app.queue.recover_pending()
        if args.forever:
            app.task_runner.run_forever(on_idle=app.queue.recover_pending)
            return 0

        count = app.task_runner.run_pending()
        logger.info(f"Processed {count} jobs")
        return 0

    return _run(args, command)


def check_connection(args: argparse.Namespace) -> int:
    """Execute the test-connection command."""

    def command(app, args, logger):
        diagnosis = app.client.test_connection()
        if diagnosis.ok:
            logger.info(diagnosis.message)
            return 0
        logger.error(f"{diagnosis.code}: {diagnosis.message}")
        return 1

    return _run(args, command)


def rate_limit(args: argparse.Namespace) -> int:
    """Execute the rate-limit command."""

    def command(app, args, logger):
        data = app.client.get_rate_limit()
        core = data.get("resources", {}).get("core") or data.get("rate") or {}
        logger.info(f"Limit: {core.get('limit')}")
        logger.info(f"Remaining: {core.get('remaining')}")
        logger.info(f"Resets at: {core.get('reset')}")
        return 0

    return _run(args, command)


def encrypt_token_command(args: argparse.Namespace) -> int:
    """Execute the encrypt-token command.

    Prints the encrypted token for the settings file's "encrypted_token".
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    secret_key = os.environ.get(SECRET_KEY_ENV)
    if args.generate_key:
        secret_key = generate_key()
        print(f"{SECRET_KEY_ENV}={secret_key}")

    token = args.token or getpass.getpass("API token: ")
    if not token:
        logger.error("No token given")
        return 1

    try:
        print(encrypt_token(token, secret_key))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        prog="jamstack-sync",
        description="Publish content items to a static site Git repository",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"JSON settings file (default: {DEFAULT_CONFIG_PATH} if present)",
    )
    parser.add_argument(
        "--content-dir",
        type=Path,
        default=DEFAULT_CONTENT_DIR,
        help=f"Content export directory (default: {DEFAULT_CONTENT_DIR})",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    enqueue_parser = subparsers.add_parser(
        "enqueue",
        help="Schedule an item for sync",
    )
    enqueue_parser.add_argument("item_id", type=int, help="Content item id")
    enqueue_parser.add_argument(
        "--priority",
        type=int,
        default=DEFAULT_PRIORITY,
        help=f"Job priority, lower runs first (default: {DEFAULT_PRIORITY})",
    )
    enqueue_parser.set_defaults(func=enqueue)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Sync one item now",
        description="Enqueue an item at high priority and run it immediately.",
    )
    sync_parser.add_argument("item_id", type=int, help="Content item id")
    sync_parser.set_defaults(func=sync)

    cancel_parser = subparsers.add_parser(
        "cancel",
        help="Cancel an item's pending sync",
    )
    cancel_parser.add_argument("item_id", type=int, help="Content item id")
    cancel_parser.set_defaults(func=cancel)

    status_parser = subparsers.add_parser(
        "status",
        help="Show sync status of one item or all items",
    )
    status_parser.add_argument(
        "item_id", type=int, nargs="?", default=None, help="Content item id"
    )
    status_parser.set_defaults(func=status)

    stats_parser = subparsers.add_parser(
        "stats",
        help="Count items per sync status",
    )
    stats_parser.set_defaults(func=stats)

    retry_parser = subparsers.add_parser(
        "retry-failed",
        help="Re-enqueue failed items that have retries left",
    )
    retry_parser.set_defaults(func=retry_failed)

    bulk_parser = subparsers.add_parser(
        "bulk-sync",
        help="Enqueue every published item",
        description="Enqueue every published item of the enabled content types.",
    )
    bulk_parser.set_defaults(func=bulk_sync)

    delete_parser = subparsers.add_parser(
        "delete",
        help="Remove an item's document and images from the repository",
    )
    delete_parser.add_argument("item_id", type=int, help="Content item id")
    delete_parser.set_defaults(func=delete)

    work_parser = subparsers.add_parser(
        "work",
        help="Run pending sync jobs",
    )
    work_parser.add_argument(
        "--forever",
        action="store_true",
        help="Keep polling for jobs until interrupted",
    )
    work_parser.set_defaults(func=work)

    connection_parser = subparsers.add_parser(
        "test-connection",
        help="Check the repository settings and credentials",
    )
    connection_parser.set_defaults(func=check_connection)

    rate_parser = subparsers.add_parser(
        "rate-limit",
        help="Show the API rate limit status",
    )
    rate_parser.set_defaults(func=rate_limit)

    encrypt_parser = subparsers.add_parser(
        "encrypt-token",
        help="Encrypt an API token for the settings file",
        description=f"Encrypt an API token with the key in {SECRET_KEY_ENV}.",
    )
    encrypt_parser.add_argument(
        "token",
        nargs="?",
        default=None,
        help="Token to encrypt (prompted for if omitted)",
    )
    encrypt_parser.add_argument(
        "--generate-key",
        action="store_true",
        help=f"Generate a new {SECRET_KEY_ENV} and print it first",
    )
    encrypt_parser.set_defaults(func=encrypt_token_command)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
