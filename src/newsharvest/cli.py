from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
import threading

from .config import ConfigError, load_config, load_media_file
from .crawler import CrawlController
from .fetcher import BatchFetcher
from .models import Media
from .parsers import UnknownParserError, get_parser
from .storage import (
    ArticleRepository,
    MediaNotFoundError,
    count_articles,
    get_media_by_slug,
    init_db,
    list_crawl_runs,
    list_media,
    record_crawl_run,
    upsert_media,
)
from .utils import configure_logging, log_event

EPILOG = """examples:
  newsharvest crawl --media postimees --start 8415550
  newsharvest crawl --media err --start 1609940954 --reverse
  newsharvest crawl --media err --max-failures 50
"""


def _setup_logging() -> logging.Logger:
    return configure_logging("newsharvest")


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"{value!r} must be >= 1")
    return parsed


def _install_cancel_handlers(cancel_event: threading.Event, logger: logging.Logger) -> None:
    def _handler(signum, _frame) -> None:
        log_event(logger, logging.WARNING, "crawl_cancel_requested", signal=signum)
        cancel_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(signum, _handler)
        except ValueError:  # pragma: no cover - not in main thread
            return


def _cmd_crawl(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1

    crawl_cfg = config.crawl
    if args.max_failures is not None:
        crawl_cfg = dataclasses.replace(crawl_cfg, max_consecutive_failures=args.max_failures)
    if args.batch_size is not None:
        crawl_cfg = dataclasses.replace(crawl_cfg, batch_size=args.batch_size)

    conn = init_db(config.paths.state_db)
    try:
        try:
            media = get_media_by_slug(conn, args.media)
            parser = get_parser(media)
        except (MediaNotFoundError, UnknownParserError) as exc:
            log_event(logger, logging.ERROR, "media_lookup_failed", media=args.media, error=str(exc))
            return 1

        cancel_event = threading.Event()
        _install_cancel_handlers(cancel_event, logger)
        controller = CrawlController(
            media=media,
            parser=parser,
            repository=ArticleRepository(conn, logger=logger),
            fetcher=BatchFetcher(config.http, logger=logger),
            crawl=crawl_cfg,
            logger=logger,
            cancel_event=cancel_event,
        )
        summary = controller.run(start_id=args.start, reverse=args.reverse)
        record_crawl_run(conn, media.id, summary)
    finally:
        conn.close()

    print(f"Crawler finished for {media.title}")
    print(f"Total articles saved: {summary.saved}")
    print(f"Total articles skipped: {summary.skipped}")
    print(f"Total failures: {summary.failed}")
    if summary.last_batch_start is not None:
        print(f"Last processed batch started at ID: {summary.last_batch_start}")
    print(f"Reason for stopping: {summary.stop_reason.value}")
    return 0


def _cmd_media_list(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    conn = init_db(config.paths.state_db)
    try:
        for media in list_media(conn):
            parser = "yes" if _has_parser(media) else "no"
            print(
                f"{media.id}\t{media.slug}\t{media.title}\t{media.base_url}\t"
                f"articles={count_articles(conn, media.id)}\tparser={parser}"
            )
    finally:
        conn.close()
    return 0


def _cmd_media_import(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        config = load_config(args.config)
        items = load_media_file(args.path)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "media_import_error", error=str(exc))
        return 1
    if not items:
        log_event(logger, logging.ERROR, "media_import_error", error="no media found")
        return 1
    conn = init_db(config.paths.state_db)
    try:
        for item in items:
            media = Media(
                id=int(item["id"]),
                slug=str(item["slug"]),
                title=str(item["title"]),
                base_url=str(item["base_url"]),
                description=item.get("description"),
                language_code=item.get("language_code"),
            )
            upsert_media(conn, media)
            log_event(logger, logging.INFO, "media_imported", id=media.id, slug=media.slug)
    finally:
        conn.close()
    return 0


def _cmd_runs_list(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    conn = init_db(config.paths.state_db)
    try:
        media_id = None
        if args.media:
            try:
                media_id = get_media_by_slug(conn, args.media).id
            except MediaNotFoundError as exc:
                log_event(logger, logging.ERROR, "media_lookup_failed", error=str(exc))
                return 1
        runs = list_crawl_runs(conn, media_id=media_id, limit=args.limit)
    finally:
        conn.close()
    if not runs:
        print("No crawl runs recorded.")
        return 0
    for run in runs:
        direction = "reverse" if run["reverse"] else "forward"
        print(
            f"{run['id']}\t{run['media']}\t{run['started_at']}\t{direction}\t"
            f"start={run['start_id']}\tcursor={run['final_cursor']}\t"
            f"saved={run['saved']}\tskipped={run['skipped']}\tfailed={run['failed']}\t"
            f"{run['stop_reason']}"
        )
    return 0


def _cmd_db_migrate(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    conn = init_db(config.paths.state_db)
    conn.close()
    log_event(logger, logging.INFO, "db_migrated", backend=conn.backend)
    return 0


def _has_parser(media: Media) -> bool:
    try:
        get_parser(media)
    except UnknownParserError:
        return False
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="newsharvest", description="Estonian news article harvester")
    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help="Path to config.yml (defaults to NH_CONFIG_PATH, then built-in defaults)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser(
        "crawl",
        help="Harvest articles for one media by walking article ids",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    crawl_parser.add_argument("--media", required=True, help="Media slug to crawl (postimees, err)")
    crawl_parser.add_argument(
        "--start",
        type=_positive_int,
        default=None,
        help="Starting article id (defaults to the highest stored id + 1)",
    )
    crawl_parser.add_argument(
        "--reverse",
        action="store_true",
        help="Crawl backwards from the start id (newest to oldest)",
    )
    crawl_parser.add_argument(
        "--max-failures",
        type=_positive_int,
        default=None,
        help="Consecutive failures before stopping (default from config: 20)",
    )
    crawl_parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=None,
        help="Article ids per batch (default from config: 20)",
    )
    crawl_parser.set_defaults(func=_cmd_crawl)

    media_parser = subparsers.add_parser("media", help="Manage news media")
    media_subparsers = media_parser.add_subparsers(dest="media_command", required=True)

    media_list = media_subparsers.add_parser("list", help="List configured media")
    media_list.set_defaults(func=_cmd_media_list)

    media_import = media_subparsers.add_parser("import", help="Import media from YAML")
    media_import.add_argument("path", help="Path to media YAML file")
    media_import.set_defaults(func=_cmd_media_import)

    runs_parser = subparsers.add_parser("runs", help="Crawl run history")
    runs_subparsers = runs_parser.add_subparsers(dest="runs_command", required=True)

    runs_list = runs_subparsers.add_parser("list", help="List recent crawl runs")
    runs_list.add_argument("--media", default=None, help="Only runs of this media slug")
    runs_list.add_argument("--limit", type=_positive_int, default=20, help="Number of runs to show")
    runs_list.set_defaults(func=_cmd_runs_list)

    db_parser = subparsers.add_parser("db", help="Database maintenance")
    db_subparsers = db_parser.add_subparsers(dest="db_command", required=True)

    db_migrate = db_subparsers.add_parser("migrate", help="Apply database migrations")
    db_migrate.set_defaults(func=_cmd_db_migrate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = _setup_logging()
    return args.func(args, logger)


if __name__ == "__main__":
    sys.exit(main())
