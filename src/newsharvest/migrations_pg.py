from __future__ import annotations

import logging

from .utils import utc_now_iso


def apply_migrations_pg(conn) -> None:
    logger = logging.getLogger("newsharvest.migrations")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
        """
    )
    conn.commit()
    applied = {
        row[0]
        for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
    }
    for version, migration in _get_migrations():
        if version in applied:
            continue
        try:
            migration(conn)
            conn.execute(
                "INSERT INTO schema_migrations (version, applied_at) VALUES (%s, %s)",
                (version, utc_now_iso()),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        logger.info("migration_applied version=%s", version)


def _get_migrations():
    return [
        ("pg_bootstrap_001", _bootstrap_schema),
        ("pg_unique_media_article_002", _migrate_unique_media_article),
        ("pg_crawl_runs_003", _migrate_crawl_runs),
    ]


def _bootstrap_schema(conn) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS news_media (
            id SERIAL PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            base_url VARCHAR(255) NOT NULL,
            description TEXT,
            slug VARCHAR(255) UNIQUE NOT NULL,
            language_code VARCHAR(8)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS articles (
            id SERIAL PRIMARY KEY,
            article_id INTEGER NOT NULL,
            media_id INTEGER NOT NULL REFERENCES news_media(id),
            sub_media VARCHAR(50),
            url TEXT NOT NULL,
            title TEXT NOT NULL,
            date_time TEXT NOT NULL,
            authors_json TEXT,
            paywall INTEGER NOT NULL,
            category VARCHAR(100),
            preview_url TEXT,
            body TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT,
            CONSTRAINT uq_article_media_sub UNIQUE (article_id, media_id, sub_media)
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS ix_articles_title ON articles(title)")
    conn.execute("CREATE INDEX IF NOT EXISTS ix_articles_date_time ON articles(date_time DESC)")
    conn.execute(
        """
        INSERT INTO news_media (id, title, base_url, slug, language_code, description)
        VALUES (%s, %s, %s, %s, %s, %s), (%s, %s, %s, %s, %s, %s)
        ON CONFLICT DO NOTHING
        """,
        (
            1,
            "Postimees",
            "https://postimees.ee",
            "postimees",
            "et",
            "Estonian news media with multiple language editions (main site, rus, arvamus)",
            2,
            "ERR",
            "https://www.err.ee",
            "err",
            "et",
            "Estonian public broadcaster with Estonian, English (news) and Russian (rus) editions",
        ),
    )
    conn.execute(
        "SELECT setval(pg_get_serial_sequence('news_media', 'id'), "
        "(SELECT MAX(id) FROM news_media))"
    )


def _migrate_unique_media_article(conn) -> None:
    conn.execute("ALTER TABLE articles DROP CONSTRAINT IF EXISTS uq_article_media_sub")
    conn.execute(
        """
        DELETE FROM articles a
        USING articles b
        WHERE a.media_id = b.media_id AND a.article_id = b.article_id AND a.id < b.id
        """
    )
    conn.execute(
        "ALTER TABLE articles ADD CONSTRAINT uq_media_article UNIQUE (media_id, article_id)"
    )


def _migrate_crawl_runs(conn) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS crawl_runs (
            id SERIAL PRIMARY KEY,
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
