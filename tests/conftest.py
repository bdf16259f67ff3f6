from __future__ import annotations

import pytest

from newsharvest.config import CrawlConfig, HttpConfig
from newsharvest.models import Article, FetchOutcome, Media
from newsharvest.parsers.base import ExtractionError, ParserConfig, sub_media_from_hosts
from newsharvest.storage import init_db, upsert_media

EXAMPLE_MEDIA = Media(id=7, slug="example", title="Example", base_url="https://example.ee")


class ExampleParser:
    config = ParserConfig(base_domain="example.ee", url_template="https://example.ee/{id}")
    allowed_sub_media = (None, "rus")

    def __init__(self, media: Media = EXAMPLE_MEDIA) -> None:
        self.media = media

    def extract_sub_media(self, url: str):
        return sub_media_from_hosts(
            url, {"example.ee": None, "www.example.ee": None, "rus.example.ee": "rus"}
        )

    def extract_article(self, html, url, article_id, sub_media):
        if not html.startswith("ok"):
            raise ExtractionError("body", url)
        return Article(
            media_id=self.media.id,
            article_id=article_id,
            sub_media=sub_media,
            url=url,
            title=f"Article {article_id}",
            date_time="2024-01-01T00:00:00+00:00",
            authors=None,
            paywall=False,
            category=None,
            preview_url=None,
            body=html,
        )


class FakeFetcher:
    """Answers each article id through ``responder(article_id) -> FetchOutcome``."""

    def __init__(self, responder=None) -> None:
        self.responder = responder or not_found
        self.calls: list[list[int]] = []

    def fetch(self, batch):
        self.calls.append([request.article_id for request in batch])
        return [self.responder(request.article_id) for request in batch]


class FakeRepository:
    def __init__(self, stored: dict[int, Article] | None = None) -> None:
        self.articles: dict[int, Article] = dict(stored or {})
        self.fail_upsert = False

    def max_article_id(self, media_id):
        return max(self.articles, default=0)

    def existing_ids(self, media_id, article_ids):
        return {article_id for article_id in article_ids if article_id in self.articles}

    def upsert(self, article):
        if self.fail_upsert:
            raise RuntimeError("database is locked")
        self.articles[article.article_id] = article
        return article


def ok_page(article_id: int, host: str = "example.ee") -> FetchOutcome:
    return FetchOutcome(
        article_id=article_id,
        requested_url=f"https://example.ee/{article_id}",
        final_url=f"https://{host}/{article_id}",
        status=200,
        content=f"ok {article_id}",
        error=None,
    )


def not_found(article_id: int) -> FetchOutcome:
    return FetchOutcome(
        article_id=article_id,
        requested_url=f"https://example.ee/{article_id}",
        final_url=f"https://example.ee/{article_id}",
        status=404,
        content=None,
        error=None,
    )


def off_domain(article_id: int) -> FetchOutcome:
    return ok_page(article_id, host="other.example.com")


def crawl_config(batch_size: int = 20, ceiling: int = 20) -> CrawlConfig:
    return CrawlConfig(
        batch_size=batch_size,
        max_consecutive_failures=ceiling,
        delay_min_seconds=0.0,
        delay_max_seconds=0.0,
    )


def http_config(**overrides) -> HttpConfig:
    values = {
        "timeout_seconds": 5.0,
        "max_retries": 2,
        "backoff_seconds": 0.0,
        "max_concurrency": 5,
        "retry_statuses": [500, 502, 503, 504],
        "headers": {"User-Agent": "Mozilla/5.0 test"},
    }
    values.update(overrides)
    return HttpConfig(**values)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in ("NH_DB_URL", "NH_DB_PATH", "NH_CONFIG_PATH", "NH_LOG_FILE", "NH_LOG_LEVELS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def conn(tmp_path):
    connection = init_db(str(tmp_path / "state.sqlite3"))
    upsert_media(connection, EXAMPLE_MEDIA)
    yield connection
    connection.close()
