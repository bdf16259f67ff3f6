import logging

from conftest import ExampleParser, not_found, off_domain, ok_page
from newsharvest.classify import classify_outcome
from newsharvest.models import FetchOutcome, OutcomeKind

logger = logging.getLogger("test.classify")


def _classify(outcome):
    return classify_outcome(outcome, ExampleParser(), logger)


def test_http_error_is_failure():
    result = _classify(not_found(101))
    assert result.kind is OutcomeKind.FAILURE
    assert result.reason == "http_404"
    assert result.article is None


def test_transport_error_is_failure():
    outcome = FetchOutcome(
        article_id=5,
        requested_url="https://example.ee/5",
        final_url=None,
        status=None,
        content=None,
        error="timed out",
    )
    result = _classify(outcome)
    assert result.kind is OutcomeKind.FAILURE
    assert result.reason == "transport_error"


def test_redirect_off_domain_is_skip():
    result = _classify(off_domain(7))
    assert result.kind is OutcomeKind.SKIP_DOMAIN
    assert result.kind.is_skip


def test_unknown_subdomain_is_skip():
    result = _classify(ok_page(8, host="sport.example.ee"))
    assert result.kind is OutcomeKind.SKIP_SUBMEDIA
    assert result.reason == "irrelevant"


def test_sub_media_outside_allowed_is_skip():
    parser = ExampleParser()
    parser.allowed_sub_media = (None,)
    result = classify_outcome(ok_page(9, host="rus.example.ee"), parser, logger)
    assert result.kind is OutcomeKind.SKIP_SUBMEDIA
    assert result.reason == "not_allowed"


def test_missing_field_is_failure(caplog):
    outcome = FetchOutcome(
        article_id=10,
        requested_url="https://example.ee/10",
        final_url="https://example.ee/10",
        status=200,
        content="<html>paywall teaser</html>",
        error=None,
    )
    with caplog.at_level(logging.WARNING, logger="test.classify"):
        result = _classify(outcome)
    assert result.kind is OutcomeKind.FAILURE
    assert result.reason == "missing_body"
    assert "event=article_parse_failed article_id=10 field=body" in caplog.text


def test_success_carries_article_and_sub_media():
    result = _classify(ok_page(11, host="rus.example.ee"))
    assert result.kind is OutcomeKind.SUCCESS
    assert result.article.article_id == 11
    assert result.article.sub_media == "rus"
    assert result.article.url == "https://rus.example.ee/11"


def test_unexpected_parser_error_is_failure(caplog):
    class BrokenParser(ExampleParser):
        def extract_article(self, html, url, article_id, sub_media):
            raise AssertionError("expected name token at '<![ foo ['")

    with caplog.at_level(logging.ERROR, logger="test.classify"):
        result = classify_outcome(ok_page(12), BrokenParser(), logger)
    assert result.kind is OutcomeKind.FAILURE
    assert result.reason == "parse_error"
    assert "event=article_parse_failed article_id=12 url=https://example.ee/12" in caplog.text
