"""JobNest sync — CLI entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from jobnest.errors import JobNestError
from jobnest.graph import SyncOrchestrator
from jobnest.models.user import UserPreferences
from jobnest.pipeline.importer import ImportRequest, JobImporter
from jobnest.settings import Settings, load_settings
from jobnest.sources.registry import build_clients
from jobnest.storage.accounts import SourceStore, UserStore
from jobnest.storage.database import Database
from jobnest.storage.sync_log import SyncLogStore

logger = logging.getLogger("jobnest")


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging to both console and log file."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    run_date = datetime.now().strftime("%Y-%m-%d")
    log_file = log_dir / f"run_{run_date}.log"

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="JobNest — sync job postings from public boards into a local catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db                          # Create tables and seed sources
  python main.py add-user me@example.com --keywords react,python --location Berlin
  python main.py sync --user-id 1                 # Sync one user's feed
  python main.py sync --all                       # Sync every user
  python main.py import --keyword django --source all
  python main.py sources disable remotive
  python main.py logs --page 2 --per-page 50
        """,
    )
    parser.add_argument(
        "--config",
        default="sources.yaml",
        help="Path to settings file. Default: sources.yaml",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override (DEBUG, INFO, WARNING, ERROR)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the schema and seed job sources")
    sub.add_parser("seed-sources", help="Insert or refresh job sources from settings")

    add_user = sub.add_parser("add-user", help="Create a user with search preferences")
    add_user.add_argument("email")
    add_user.add_argument("--name", default="")
    add_user.add_argument("--keywords", default="", help="Comma-separated keywords")
    add_user.add_argument("--location", default="")
    add_user.add_argument(
        "--job-type",
        default="any",
        choices=["full-time", "contract", "part-time", "internship", "any"],
    )
    add_user.add_argument("--country", default=None, help="Two-letter country code")
    remote = add_user.add_mutually_exclusive_group()
    remote.add_argument("--remote", dest="include_remote", action="store_true", default=None)
    remote.add_argument("--no-remote", dest="include_remote", action="store_false")

    sync = sub.add_parser("sync", help="Run a sync for one user or all users")
    target = sync.add_mutually_exclusive_group(required=True)
    target.add_argument("--user-id", type=int)
    target.add_argument("--all", action="store_true")

    sync_now = sub.add_parser("sync-now", help="Sync one user and print a summary")
    sync_now.add_argument("--user-id", type=int, required=True)

    imp = sub.add_parser("import", help="Import jobs for a keyword on demand")
    imp.add_argument("--keyword", default="")
    imp.add_argument("--source", default="all", choices=["arbeitnow", "remotive", "jsearch", "all"])
    imp.add_argument("--user-id", type=int, default=None)
    imp.add_argument("--country", default="pk")
    imp.add_argument("--country-name", default=None)
    imp.add_argument("--update-existing", action="store_true", help="Also refresh existing jobs")
    imp_remote = imp.add_mutually_exclusive_group()
    imp_remote.add_argument("--remote", dest="remote", action="store_true", default=None)
    imp_remote.add_argument("--onsite", dest="remote", action="store_false")
    imp.add_argument("--page", type=int, default=1)
    imp.add_argument("--num-pages", type=int, default=1)
    imp.add_argument("--date-posted", choices=["today", "3days", "week", "month"], default=None)
    imp.add_argument("--employment-types", default=None)

    sources = sub.add_parser("sources", help="List, enable or disable job sources")
    sources.add_argument("action", nargs="?", default="list", choices=["list", "enable", "disable"])
    sources.add_argument("key", nargs="?")

    logs = sub.add_parser("logs", help="Show sync logs, newest first")
    logs.add_argument("--page", type=int, default=1)
    logs.add_argument("--per-page", type=int, default=20)

    return parser


def run_command(args: argparse.Namespace, settings: Settings, db: Database) -> int:
    """Dispatch one subcommand; returns the process exit code."""
    if args.command in ("init-db", "seed-sources"):
        seeded = SourceStore(db).seed(settings.sources)
        logger.info("Job sources ready: %s", ", ".join(s.key for s in seeded))
        return 0

    if args.command == "add-user":
        prefs = UserPreferences(
            preferred_keywords=args.keywords,
            preferred_location=args.location,
            preferred_job_type=args.job_type,
            preferred_country_iso2=args.country,
            include_remote=args.include_remote,
        )
        user = UserStore(db).create(args.email, prefs, name=args.name)
        print(f"Created user {user.id} ({user.email})")
        return 0

    if args.command == "sources":
        return _sources_command(args, SourceStore(db))

    if args.command == "logs":
        page = SyncLogStore(db).list_page(args.page, args.per_page)
        print(f"Page {page.page}/{page.last_page} ({page.total} entries)")
        for entry in page.data:
            print(
                f"#{entry.id} source={entry.source_id} user={entry.user_id} {entry.status.value} "
                f"fetched={entry.jobs_fetched} created={entry.jobs_created} "
                f"updated={entry.jobs_updated} runtime={entry.runtime_ms}ms"
                + (f" error={entry.error_message}" if entry.error_message else "")
            )
        return 0

    clients = build_clients(settings)
    try:
        orchestrator = SyncOrchestrator(db, clients, settings.sync)

        if args.command == "sync":
            user_ids = orchestrator.users.list_ids() if args.all else [args.user_id]
            for user_id in user_ids:
                entries = orchestrator.run_sync(user_id)
                logger.info("User %d: %d source runs logged", user_id, len(entries))
            return 0

        if args.command == "sync-now":
            summary = orchestrator.sync_now(args.user_id)
            print(summary.model_dump_json(indent=2))
            return 0 if summary.synced else 1

        if args.command == "import":
            request = ImportRequest(
                keyword=args.keyword,
                source=args.source,
                only_new=not args.update_existing,
                country=args.country,
                country_name=args.country_name,
                remote=args.remote,
                page=args.page,
                num_pages=args.num_pages,
                date_posted=args.date_posted,
                employment_types=args.employment_types,
            )
            result = JobImporter(orchestrator.syncer).import_jobs(request, args.user_id)
            print(result.model_dump_json(indent=2))
            return 0
    finally:
        for client in clients.values():
            client.close()

    logger.error("Unknown command: %s", args.command)
    return 2


def _sources_command(args: argparse.Namespace, store: SourceStore) -> int:
    if args.action == "list":
        for source in store.list_all():
            synced = source.last_synced_at.isoformat() if source.last_synced_at else "never"
            state = "enabled" if source.enabled else "disabled"
            print(f"{source.key:<10} {state:<9} every {source.sync_interval_minutes}m  last sync: {synced}")
        return 0

    if not args.key:
        logger.error("A source key is required to %s a source", args.action)
        return 2
    if not store.set_enabled(args.key, args.action == "enable"):
        logger.error("Unknown source: %s", args.key)
        return 1
    logger.info("Source %s %sd", args.key, args.action)
    return 0


def main() -> None:
    """Main CLI entrypoint for JobNest."""
    args = build_parser().parse_args()

    # Load environment variables
    load_dotenv()

    try:
        settings = load_settings(args.config)
    except JobNestError as e:
        setup_logging(args.log_level or "INFO")
        logger.error("Could not load settings: %s", e)
        sys.exit(1)

    setup_logging(args.log_level or settings.log_level)
    logger.info("JobNest — %s", args.command)

    start_time = time.time()
    db = Database(settings.db_path)
    try:
        code = run_command(args, settings, db)
    except Exception as e:
        duration = time.time() - start_time
        logger.error("Command failed after %.1f seconds: %s", duration, e, exc_info=True)
        sys.exit(1)
    finally:
        db.close()

    logger.info("Done in %.1f seconds", time.time() - start_time)
    sys.exit(code)


if __name__ == "__main__":
    main()
