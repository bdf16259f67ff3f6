from __future__ import annotations

import logging
import random
import threading
from typing import Protocol

from .classify import classify_outcome
from .config import CrawlConfig
from .models import (
    Article,
    BatchResult,
    Classification,
    CrawlSummary,
    FetchOutcome,
    FetchRequest,
    Media,
    OutcomeKind,
    StopReason,
)
from .parsers import ArticleParser
from .utils import log_event, utc_now_iso


class Repository(Protocol):
    def max_article_id(self, media_id: int) -> int:
        ...

    def existing_ids(self, media_id: int, article_ids: list[int]) -> set[int]:
        ...

    def upsert(self, article: Article) -> Article:
        ...


class Fetcher(Protocol):
    def fetch(self, batch: list[FetchRequest]) -> list[FetchOutcome]:
        ...


class CrawlController:
    """Walks article ids batch by batch for one media until told to stop.

    The cursor and the consecutive-failure counter are only touched here,
    after a batch's fetch pool has drained and its articles were written.
    """

    def __init__(
        self,
        media: Media,
        parser: ArticleParser,
        repository: Repository,
        fetcher: Fetcher,
        crawl: CrawlConfig,
        logger: logging.Logger | None = None,
        cancel_event: threading.Event | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.media = media
        self.parser = parser
        self.repository = repository
        self.fetcher = fetcher
        self.crawl = crawl
        self.logger = logger or logging.getLogger("newsharvest.crawler")
        self.cancel_event = cancel_event or threading.Event()
        self.rng = rng or random.Random()
        self.consecutive_failures = 0

    def resolve_start(self, start_id: int | None) -> int:
        if start_id is not None:
            log_event(self.logger, logging.INFO, "crawl_start_explicit", start_id=start_id)
            return start_id
        max_id = self.repository.max_article_id(self.media.id)
        cursor = max_id + 1 if max_id > 0 else 1
        log_event(self.logger, logging.INFO, "crawl_resume", max_article_id=max_id, start_id=cursor)
        return cursor

    def run(self, start_id: int | None = None, reverse: bool = False) -> CrawlSummary:
        started_at = utc_now_iso()
        ceiling = self.crawl.max_consecutive_failures
        batch_size = self.crawl.batch_size
        log_event(
            self.logger,
            logging.INFO,
            "crawl_started",
            media=self.media.slug,
            direction="reverse" if reverse else "forward",
            batch_size=batch_size,
            max_consecutive_failures=ceiling,
        )

        first_cursor = self.resolve_start(start_id)
        cursor = first_cursor
        saved = skipped = failed = batches = 0
        last_batch_start: int | None = None

        while True:
            stop_reason = self._stop_reason(cursor)
            if stop_reason is not None:
                break

            result = self.process_batch(cursor)
            batches += 1
            last_batch_start = cursor
            saved += result.success_count
            skipped += result.skip_count
            failed += result.failure_count
            self._update_failure_counter(result)

            log_event(
                self.logger,
                logging.INFO,
                "batch_complete",
                start_id=cursor,
                saved=result.success_count,
                skipped=result.skip_count,
                failed=result.failure_count,
                consecutive_failures=f"{self.consecutive_failures}/{ceiling}",
            )

            cursor = cursor - batch_size if reverse else cursor + batch_size

            if self._stop_reason(cursor) is None:
                self._throttle()

        summary = CrawlSummary(
            media_slug=self.media.slug,
            reverse=reverse,
            start_id=first_cursor,
            final_cursor=cursor,
            batches=batches,
            saved=saved,
            skipped=skipped,
            failed=failed,
            consecutive_failures=self.consecutive_failures,
            stop_reason=stop_reason,
            last_batch_start=last_batch_start,
            started_at=started_at,
            finished_at=utc_now_iso(),
        )
        log_event(
            self.logger,
            logging.INFO,
            "crawl_finished",
            media=self.media.slug,
            saved=saved,
            skipped=skipped,
            failed=failed,
            batches=batches,
            last_batch_start=last_batch_start,
            stop_reason=stop_reason.value,
        )
        return summary

    def process_batch(self, start_id: int) -> BatchResult:
        article_ids = list(range(start_id, start_id + self.crawl.batch_size))
        existing = self.repository.existing_ids(self.media.id, article_ids)

        classifications: list[Classification] = [
            Classification(article_id=article_id, kind=OutcomeKind.SKIP_EXISTS, reason="exists")
            for article_id in article_ids
            if article_id in existing
        ]
        if classifications:
            log_event(
                self.logger,
                logging.INFO,
                "articles_skipped_existing",
                count=len(classifications),
                ids=",".join(str(item.article_id) for item in classifications),
            )

        requests = [
            FetchRequest(article_id=article_id, url=self.parser.config.article_url(article_id))
            for article_id in article_ids
            if article_id not in existing
        ]
        outcomes = self.fetcher.fetch(requests) if requests else []
        for outcome in outcomes:
            classification = classify_outcome(outcome, self.parser, self.logger)
            if classification.kind is OutcomeKind.SUCCESS:
                classification = self._persist(classification)
            classifications.append(classification)

        success_count = sum(1 for item in classifications if item.kind is OutcomeKind.SUCCESS)
        skip_count = sum(1 for item in classifications if item.kind.is_skip)
        failure_count = sum(1 for item in classifications if item.kind is OutcomeKind.FAILURE)
        return BatchResult(
            start_id=start_id,
            article_ids=article_ids,
            success_count=success_count,
            skip_count=skip_count,
            failure_count=failure_count,
            dispatched_count=len(requests),
            classifications=classifications,
        )

    def cancel(self) -> None:
        self.cancel_event.set()

    def _persist(self, classification: Classification) -> Classification:
        article = classification.article
        try:
            stored = self.repository.upsert(article)
        except Exception as exc:  # noqa: BLE001
            log_event(
                self.logger,
                logging.ERROR,
                "article_save_failed",
                article_id=classification.article_id,
                error=str(exc),
            )
            return Classification(
                article_id=classification.article_id,
                kind=OutcomeKind.FAILURE,
                reason="persistence_error",
            )
        log_event(
            self.logger,
            logging.INFO,
            "article_saved",
            article_id=stored.article_id,
            sub_media=stored.sub_media or "main",
            title=stored.title,
        )
        return Classification(
            article_id=classification.article_id, kind=OutcomeKind.SUCCESS, article=stored
        )

    def _update_failure_counter(self, result: BatchResult) -> None:
        if result.success_count > 0:
            self.consecutive_failures = 0
            return
        # Skipped ids (stored, off-domain, other editions) are left out of the all-failed check.
        not_skipped = result.width - result.skip_count
        if result.failure_count > 0 and result.failure_count == not_skipped:
            self.consecutive_failures += result.failure_count

    def _stop_reason(self, cursor: int) -> StopReason | None:
        if self.consecutive_failures >= self.crawl.max_consecutive_failures:
            return StopReason.CEILING_REACHED
        if cursor <= 0:
            return StopReason.CURSOR_EXHAUSTED
        if self.cancel_event.is_set():
            return StopReason.CANCELLED
        return None

    def _throttle(self) -> None:
        delay = self.rng.uniform(self.crawl.delay_min_seconds, self.crawl.delay_max_seconds)
        if delay > 0:
            self.cancel_event.wait(delay)
