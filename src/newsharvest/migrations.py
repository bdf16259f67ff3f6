from __future__ import annotations

import logging
import sqlite3
from typing import Callable

from .utils import utc_now_iso

Migration = Callable[[sqlite3.Connection], None]


def apply_migrations(conn: sqlite3.Connection) -> None:
    logger = logging.getLogger("newsharvest.migrations")
    conn.execute("BEGIN IMMEDIATE")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
        """
    )
    applied = {
        row[0]
        for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
    }
    try:
        for version, migration in _get_migrations():
            if version in applied:
                logger.debug("migration_skipped version=%s", version)
                continue
            migration(conn)
            conn.execute(
                "INSERT OR IGNORE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                (version, utc_now_iso()),
            )
            logger.info("migration_applied version=%s", version)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _get_migrations() -> list[tuple[str, Migration]]:
    return [
        ("001_initial_schema", _migration_initial_schema),
        ("002_article_unique_media_article", _migration_article_unique_media_article),
        ("003_seed_err_media", _migration_seed_err_media),
        ("004_crawl_runs", _migration_crawl_runs),
    ]


def _migration_initial_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS news_media (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL,
            base_url TEXT NOT NULL,
            description TEXT NULL,
            slug TEXT NOT NULL UNIQUE,
            language_code TEXT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS articles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            article_id INTEGER NOT NULL,
            media_id INTEGER NOT NULL REFERENCES news_media(id),
            sub_media TEXT NULL,
            url TEXT NOT NULL,
            title TEXT NOT NULL,
            date_time TEXT NOT NULL,
            authors_json TEXT NULL,
            paywall INTEGER NOT NULL,
            category TEXT NULL,
            preview_url TEXT NULL,
            body TEXT NOT NULL,
            created_at TEXT NOT NULL,
            UNIQUE(article_id, media_id, sub_media)
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS ix_articles_title ON articles(title)")
    conn.execute("CREATE INDEX IF NOT EXISTS ix_articles_date_time ON articles(date_time DESC)")
    conn.execute(
        """
        INSERT OR IGNORE INTO news_media (id, title, base_url, slug, language_code, description)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            1,
            "Postimees",
            "https://postimees.ee",
            "postimees",
            "et",
            "Estonian news media with multiple language editions (main site, rus, arvamus)",
        ),
    )


def _migration_article_unique_media_article(conn: sqlite3.Connection) -> None:
    # sqlite cannot alter constraints; rebuild the table keyed on (media_id, article_id).
    conn.execute(
        """
        CREATE TABLE articles_new (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            article_id INTEGER NOT NULL,
            media_id INTEGER NOT NULL REFERENCES news_media(id),
            sub_media TEXT NULL,
            url TEXT NOT NULL,
            title TEXT NOT NULL,
            date_time TEXT NOT NULL,
            authors_json TEXT NULL,
            paywall INTEGER NOT NULL,
            category TEXT NULL,
            preview_url TEXT NULL,
            body TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NULL,
            CONSTRAINT uq_media_article UNIQUE (media_id, article_id)
        )
        """
    )
    conn.execute(
        """
        INSERT OR IGNORE INTO articles_new
            (id, article_id, media_id, sub_media, url, title, date_time, authors_json,
             paywall, category, preview_url, body, created_at, updated_at)
        SELECT id, article_id, media_id, sub_media, url, title, date_time, authors_json,
               paywall, category, preview_url, body, created_at, created_at
        FROM articles
        ORDER BY id DESC
        """
    )
    conn.execute("DROP TABLE articles")
    conn.execute("ALTER TABLE articles_new RENAME TO articles")
    conn.execute("CREATE INDEX IF NOT EXISTS ix_articles_title ON articles(title)")
    conn.execute("CREATE INDEX IF NOT EXISTS ix_articles_date_time ON articles(date_time DESC)")


def _migration_seed_err_media(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        INSERT OR IGNORE INTO news_media (id, title, base_url, slug, language_code, description)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            2,
            "ERR",
            "https://www.err.ee",
            "err",
            "et",
            "Estonian public broadcaster with Estonian, English (news) and Russian (rus) editions",
        ),
    )


def _migration_crawl_runs(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS crawl_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            media_id INTEGER NOT NULL REFERENCES news_media(id),
            started_at TEXT NOT NULL,
            finished_at TEXT NOT NULL,
            reverse INTEGER NOT NULL,
            start_id INTEGER NOT NULL,
            final_cursor INTEGER NOT NULL,
            batches INTEGER NOT NULL,
            saved INTEGER NOT NULL,
            skipped INTEGER NOT NULL,
            failed INTEGER NOT NULL,
            stop_reason TEXT NOT NULL
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS ix_crawl_runs_media ON crawl_runs(media_id, started_at DESC)"
    )
