from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Media:
    id: int
    slug: str
    title: str
    base_url: str
    description: str | None = None
    language_code: str | None = None


@dataclass(frozen=True)
class Article:
    media_id: int
    article_id: int
    sub_media: str | None
    url: str
    title: str
    date_time: str
    authors: list[str] | None
    paywall: bool
    category: str | None
    preview_url: str | None
    body: str
    id: int | None = None


@dataclass(frozen=True)
class FetchRequest:
    article_id: int
    url: str


@dataclass(frozen=True)
class FetchOutcome:
    article_id: int
    requested_url: str
    final_url: str | None
    status: int | None
    content: str | None
    error: str | None
    attempts: int = 1

    @property
    def is_transport_error(self) -> bool:
        return self.error is not None and self.status is None


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    SKIP_EXISTS = "skip:exists"
    SKIP_DOMAIN = "skip:domain"
    SKIP_SUBMEDIA = "skip:subsource"
    FAILURE = "failure"

    @property
    def is_skip(self) -> bool:
        return self.value.startswith("skip:")


@dataclass(frozen=True)
class Classification:
    article_id: int
    kind: OutcomeKind
    reason: str | None = None
    article: Article | None = None


@dataclass(frozen=True)
class BatchResult:
    start_id: int
    article_ids: list[int]
    success_count: int
    skip_count: int
    failure_count: int
    dispatched_count: int
    classifications: list[Classification] = field(default_factory=list)

    @property
    def width(self) -> int:
        return len(self.article_ids)


class StopReason(str, Enum):
    CEILING_REACHED = "ceiling reached"
    CURSOR_EXHAUSTED = "cursor <= 0"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CrawlSummary:
    media_slug: str
    reverse: bool
    start_id: int
    final_cursor: int
    batches: int
    saved: int
    skipped: int
    failed: int
    consecutive_failures: int
    stop_reason: StopReason
    last_batch_start: int | None
    started_at: str
    finished_at: str
