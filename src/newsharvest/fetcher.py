from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

import requests

from .config import HttpConfig
from .models import FetchOutcome, FetchRequest
from .utils import log_event


class BatchFetcher:
    """Fetches article pages for one batch on a bounded thread pool.

    Each request gets its own session so cookies set by the site (bot checks,
    edition routing) survive that request's retries but are not shared
    between articles.
    """

    def __init__(
        self,
        http: HttpConfig,
        logger: logging.Logger | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.http = http
        self.logger = logger or logging.getLogger("newsharvest.fetcher")
        self._session_factory = session_factory
        self._sleep = sleep

    def fetch(self, batch: Sequence[FetchRequest]) -> list[FetchOutcome]:
        if not batch:
            return []
        workers = max(1, min(self.http.max_concurrency, len(batch)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._fetch_guarded, batch))

    def _fetch_guarded(self, request: FetchRequest) -> FetchOutcome:
        try:
            return self.fetch_one(request)
        except Exception as exc:  # noqa: BLE001
            log_event(
                self.logger,
                logging.ERROR,
                "fetch_unexpected_error",
                article_id=request.article_id,
                url=request.url,
                error=str(exc),
            )
            return FetchOutcome(
                article_id=request.article_id,
                requested_url=request.url,
                final_url=None,
                status=None,
                content=None,
                error=str(exc),
            )

    def fetch_one(self, request: FetchRequest) -> FetchOutcome:
        retry_statuses = set(self.http.retry_statuses)
        attempt = 0
        with self._session_factory() as session:
            session.headers.update(self.http.headers)
            while True:
                attempt += 1
                try:
                    response = session.get(
                        request.url,
                        timeout=self.http.timeout_seconds,
                        allow_redirects=True,
                    )
                except requests.RequestException as exc:
                    if attempt > self.http.max_retries:
                        log_event(
                            self.logger,
                            logging.WARNING,
                            "fetch_transport_error",
                            article_id=request.article_id,
                            url=request.url,
                            attempts=attempt,
                            error=str(exc),
                        )
                        return FetchOutcome(
                            article_id=request.article_id,
                            requested_url=request.url,
                            final_url=None,
                            status=None,
                            content=None,
                            error=str(exc),
                            attempts=attempt,
                        )
                    self._backoff(request, attempt, str(exc))
                    continue

                status = response.status_code
                if status in retry_statuses and attempt <= self.http.max_retries:
                    self._backoff(request, attempt, f"http_{status}")
                    continue

                return FetchOutcome(
                    article_id=request.article_id,
                    requested_url=request.url,
                    final_url=response.url or request.url,
                    status=status,
                    content=response.text if status < 400 else None,
                    error=None,
                    attempts=attempt,
                )

    def _backoff(self, request: FetchRequest, attempt: int, reason: str) -> None:
        delay = self.http.backoff_seconds * attempt
        log_event(
            self.logger,
            logging.DEBUG,
            "fetch_retry",
            article_id=request.article_id,
            attempt=attempt,
            reason=reason,
            delay=delay,
        )
        if delay > 0:
            self._sleep(delay)
