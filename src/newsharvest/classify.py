from __future__ import annotations

import logging

from .models import Classification, FetchOutcome, OutcomeKind
from .parsers import UNRECOGNIZED, ArticleParser, ExtractionError, is_on_domain
from .parsers.base import url_host
from .utils import log_event


def classify_outcome(
    outcome: FetchOutcome, parser: ArticleParser, logger: logging.Logger
) -> Classification:
    """Decide what a fetched page is worth.

    Order matters: HTTP failures first, then domain and edition checks on the
    final URL after redirects, and only then the extractor.
    """
    article_id = outcome.article_id

    if outcome.status is None or outcome.status >= 400:
        reason = f"http_{outcome.status}" if outcome.status is not None else "transport_error"
        log_event(
            logger,
            logging.INFO,
            "article_fetch_failed",
            article_id=article_id,
            status=outcome.status,
            error=outcome.error,
        )
        return Classification(article_id=article_id, kind=OutcomeKind.FAILURE, reason=reason)

    final_url = outcome.final_url or outcome.requested_url

    if not is_on_domain(final_url, parser.config.base_domain):
        log_event(
            logger,
            logging.INFO,
            "article_skipped_domain",
            article_id=article_id,
            domain=url_host(final_url) or "unknown",
        )
        return Classification(
            article_id=article_id, kind=OutcomeKind.SKIP_DOMAIN, reason="wrong_domain"
        )

    sub_media = parser.extract_sub_media(final_url)
    if sub_media is UNRECOGNIZED:
        log_event(
            logger,
            logging.INFO,
            "article_skipped_sub_media",
            article_id=article_id,
            host=url_host(final_url) or "unknown",
        )
        return Classification(
            article_id=article_id, kind=OutcomeKind.SKIP_SUBMEDIA, reason="irrelevant"
        )

    if sub_media not in parser.allowed_sub_media:
        log_event(
            logger,
            logging.WARNING,
            "article_sub_media_not_allowed",
            article_id=article_id,
            sub_media=sub_media,
        )
        return Classification(
            article_id=article_id, kind=OutcomeKind.SKIP_SUBMEDIA, reason="not_allowed"
        )

    try:
        article = parser.extract_article(outcome.content or "", final_url, article_id, sub_media)
    except ExtractionError as exc:
        log_event(
            logger,
            logging.WARNING,
            "article_parse_failed",
            article_id=article_id,
            field=exc.field,
            url=exc.url,
        )
        return Classification(
            article_id=article_id, kind=OutcomeKind.FAILURE, reason=f"missing_{exc.field}"
        )
    except Exception as exc:  # noqa: BLE001
        log_event(
            logger,
            logging.ERROR,
            "article_parse_failed",
            article_id=article_id,
            url=final_url,
            error=str(exc),
        )
        return Classification(article_id=article_id, kind=OutcomeKind.FAILURE, reason="parse_error")

    return Classification(article_id=article_id, kind=OutcomeKind.SUCCESS, article=article)
