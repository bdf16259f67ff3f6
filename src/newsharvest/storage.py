from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from .db import DBConn, connect_db
from .models import Article, CrawlSummary, Media
from .utils import json_dumps, log_event, utc_now_iso

_ARTICLE_COLUMNS = (
    "id, article_id, media_id, sub_media, url, title, date_time, authors_json, "
    "paywall, category, preview_url, body"
)


class MediaNotFoundError(LookupError):
    pass


def init_db(path: str) -> DBConn:
    return connect_db(path)


def get_media_by_slug(conn: Any, slug: str) -> Media:
    cursor = conn.execute(
        """
        SELECT id, slug, title, base_url, description, language_code
        FROM news_media
        WHERE slug = ?
        """,
        (slug,),
    )
    row = cursor.fetchone()
    if not row:
        raise MediaNotFoundError(f"Media not found for slug: {slug}")
    return _row_to_media(row)


def list_media(conn: Any) -> list[Media]:
    cursor = conn.execute(
        """
        SELECT id, slug, title, base_url, description, language_code
        FROM news_media
        ORDER BY id
        """
    )
    return [_row_to_media(row) for row in cursor.fetchall()]


def upsert_media(conn: Any, media: Media) -> None:
    conn.execute(
        """
        INSERT INTO news_media (id, title, base_url, description, slug, language_code)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            title=excluded.title,
            base_url=excluded.base_url,
            description=excluded.description,
            slug=excluded.slug,
            language_code=excluded.language_code
        """,
        (
            media.id,
            media.title,
            media.base_url,
            media.description,
            media.slug,
            media.language_code,
        ),
    )
    conn.commit()


def get_max_article_id(conn: Any, media_id: int) -> int:
    cursor = conn.execute(
        "SELECT MAX(article_id) FROM articles WHERE media_id = ?",
        (media_id,),
    )
    row = cursor.fetchone()
    if not row or row[0] is None:
        return 0
    return int(row[0])


def get_existing_article_ids(conn: Any, media_id: int, article_ids: Iterable[int]) -> set[int]:
    ids = list(article_ids)
    if not ids:
        return set()
    placeholders = ", ".join(["?"] * len(ids))
    cursor = conn.execute(
        f"SELECT article_id FROM articles WHERE media_id = ? AND article_id IN ({placeholders})",
        (media_id, *ids),
    )
    return {int(row[0]) for row in cursor.fetchall()}


def article_exists(conn: Any, media_id: int, article_id: int) -> bool:
    cursor = conn.execute(
        "SELECT 1 FROM articles WHERE media_id = ? AND article_id = ?",
        (media_id, article_id),
    )
    return cursor.fetchone() is not None


def get_article(conn: Any, media_id: int, article_id: int) -> Article | None:
    cursor = conn.execute(
        f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE media_id = ? AND article_id = ?",
        (media_id, article_id),
    )
    row = cursor.fetchone()
    if not row:
        return None
    return _row_to_article(row)


def count_articles(conn: Any, media_id: int) -> int:
    cursor = conn.execute("SELECT COUNT(*) FROM articles WHERE media_id = ?", (media_id,))
    return int(cursor.fetchone()[0])


def upsert_article(conn: Any, article: Article) -> Article:
    now = utc_now_iso()
    try:
        conn.execute(
            """
            INSERT INTO articles
                (article_id, media_id, sub_media, url, title, date_time, authors_json,
                 paywall, category, preview_url, body, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(media_id, article_id) DO UPDATE SET
                sub_media=excluded.sub_media,
                url=excluded.url,
                title=excluded.title,
                date_time=excluded.date_time,
                authors_json=excluded.authors_json,
                paywall=excluded.paywall,
                category=excluded.category,
                preview_url=excluded.preview_url,
                body=excluded.body,
                updated_at=excluded.updated_at
            """,
            (
                article.article_id,
                article.media_id,
                article.sub_media,
                article.url,
                article.title,
                article.date_time,
                json_dumps(article.authors) if article.authors is not None else None,
                1 if article.paywall else 0,
                article.category,
                article.preview_url,
                article.body,
                now,
                now,
            ),
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    stored = get_article(conn, article.media_id, article.article_id)
    if stored is None:
        raise RuntimeError(
            f"article {article.media_id}/{article.article_id} missing after upsert"
        )
    return stored


def record_crawl_run(conn: Any, media_id: int, summary: CrawlSummary) -> None:
    conn.execute(
        """
        INSERT INTO crawl_runs
            (media_id, started_at, finished_at, reverse, start_id, final_cursor,
             batches, saved, skipped, failed, stop_reason)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            media_id,
            summary.started_at,
            summary.finished_at,
            1 if summary.reverse else 0,
            summary.start_id,
            summary.final_cursor,
            summary.batches,
            summary.saved,
            summary.skipped,
            summary.failed,
            summary.stop_reason.value,
        ),
    )
    conn.commit()


def list_crawl_runs(conn: Any, media_id: int | None = None, limit: int = 20) -> list[dict[str, object]]:
    sql = """
        SELECT r.id, m.slug, r.started_at, r.finished_at, r.reverse, r.start_id,
               r.final_cursor, r.batches, r.saved, r.skipped, r.failed, r.stop_reason
        FROM crawl_runs r
        JOIN news_media m ON m.id = r.media_id
    """
    params: tuple = ()
    if media_id is not None:
        sql += " WHERE r.media_id = ?"
        params = (media_id,)
    sql += " ORDER BY r.id DESC LIMIT ?"
    cursor = conn.execute(sql, (*params, limit))
    keys = [
        "id",
        "media",
        "started_at",
        "finished_at",
        "reverse",
        "start_id",
        "final_cursor",
        "batches",
        "saved",
        "skipped",
        "failed",
        "stop_reason",
    ]
    runs = []
    for row in cursor.fetchall():
        data = dict(zip(keys, row))
        data["reverse"] = bool(data["reverse"])
        runs.append(data)
    return runs


class ArticleRepository:
    """Article store for one connection, used by the crawl controller."""

    def __init__(self, conn: Any, logger: logging.Logger | None = None) -> None:
        self.conn = conn
        self.logger = logger or logging.getLogger("newsharvest.storage")

    def max_article_id(self, media_id: int) -> int:
        return get_max_article_id(self.conn, media_id)

    def existing_ids(self, media_id: int, article_ids: Iterable[int]) -> set[int]:
        return get_existing_article_ids(self.conn, media_id, article_ids)

    def exists(self, media_id: int, article_id: int) -> bool:
        return article_exists(self.conn, media_id, article_id)

    def upsert(self, article: Article) -> Article:
        previous = get_article(self.conn, article.media_id, article.article_id)
        if previous is not None and previous.sub_media != article.sub_media:
            log_event(
                self.logger,
                logging.WARNING,
                "article_sub_media_collision",
                media_id=article.media_id,
                article_id=article.article_id,
                stored=previous.sub_media or "main",
                incoming=article.sub_media or "main",
            )
        return upsert_article(self.conn, article)


def _row_to_media(row: tuple) -> Media:
    return Media(
        id=int(row[0]),
        slug=row[1],
        title=row[2],
        base_url=row[3],
        description=row[4],
        language_code=row[5],
    )


def _row_to_article(row: tuple) -> Article:
    authors = None
    if row[7]:
        try:
            authors = json.loads(row[7])
        except json.JSONDecodeError:
            authors = None
    return Article(
        id=int(row[0]),
        article_id=int(row[1]),
        media_id=int(row[2]),
        sub_media=row[3],
        url=row[4],
        title=row[5],
        date_time=row[6],
        authors=authors,
        paywall=bool(row[8]),
        category=row[9],
        preview_url=row[10],
        body=row[11],
    )
