import pytest

from newsharvest.models import Media
from newsharvest.parsers import (
    UNRECOGNIZED,
    ErrParser,
    ExtractionError,
    PostimeesParser,
    UnknownParserError,
    get_parser,
    is_on_domain,
)

POSTIMEES = Media(id=1, slug="postimees", title="Postimees", base_url="https://postimees.ee")
ERR = Media(id=2, slug="err", title="ERR", base_url="https://www.err.ee")

POSTIMEES_HTML = """
<html><body>
<section class="root breadcrumb">
  <ul class="breadcrumb__items">
    <li class="breadcrumb-item"><a href="/">Esileht</a></li>
    <li class="breadcrumb-item">
      <a href="/eesti">Eesti</a><span class="button-m--premium">Tellijale</span>
    </li>
  </ul>
</section>
<span class="article__publish-date" content="2024-03-01T10:15:00+02:00">1. märts</span>
<h1 class="article__headline">  Riigikogu   arutas eelarvet </h1>
<div class="author"><span class="author__name">Mari Maasikas</span></div>
<div class="author"><span class="author__name">Jaan Tamm</span></div>
<div class="figure__image-wrapper"><img src="https://f.pmo.ee/image.jpg"></div>
<div class="article-body-content">
  <p>Esimene lõik.</p>
  <p>   </p>
  <p>Teine lõik.</p>
</div>
</body></html>
"""

ERR_HTML = """
<html><head>
<meta property="og:image" content="https://s.err.ee/photo/og.jpg">
<script type="application/ld+json">
{"@context": "https://schema.org", "@graph": [
  {"@type": "NewsArticle", "datePublished": "2024-02-20T08:30:00+02:00"}
]}
</script>
</head><body>
<a href="/k/majandus">Majandus</a>
<a href="/k/eesti">Eesti</a>
<h1>Valitsus kinnitas uue lisaeelarve</h1>
<div class="editor">Toimetaja: Mari Maasikas, Jaan Tamm</div>
<p>Valitsus kinnitas neljapäeval uue lisaeelarve eelnõu.</p>
<p>Lühike.</p>
<p>Toimetaja: Mari Maasikas, Jaan Tamm</p>
<p>Eelnõu saadetakse järgmisel nädalal riigikokku arutamiseks.</p>
<p>ERR-i uudiste kasutamine on lubatud viitega allikale.</p>
</body></html>
"""


def test_get_parser_by_slug():
    assert isinstance(get_parser(POSTIMEES), PostimeesParser)
    assert isinstance(get_parser(ERR), ErrParser)


def test_get_parser_unknown_slug():
    with pytest.raises(UnknownParserError, match="Supported: err, postimees"):
        get_parser(Media(id=3, slug="delfi", title="Delfi", base_url="https://delfi.ee"))


def test_article_urls():
    assert PostimeesParser(POSTIMEES).config.article_url(8415550) == "https://postimees.ee/8415550"
    assert ErrParser(ERR).config.article_url(1609940954) == "https://www.err.ee/1609940954"


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://postimees.ee/1", True),
        ("https://rus.postimees.ee/1", True),
        ("http://a.b.postimees.ee/1", True),
        ("https://POSTIMEES.EE/1", True),
        ("https://notpostimees.ee/1", False),
        ("https://postimees.ee.evil.com/1", False),
        ("ftp://postimees.ee/1", False),
        ("postimees.ee/1", False),
    ],
)
def test_is_on_domain(url, expected):
    assert is_on_domain(url, "postimees.ee") is expected


def test_postimees_sub_media():
    parser = PostimeesParser(POSTIMEES)
    assert parser.extract_sub_media("https://postimees.ee/1") is None
    assert parser.extract_sub_media("https://www.postimees.ee/1") is None
    assert parser.extract_sub_media("https://rus.postimees.ee/1") == "rus"
    assert parser.extract_sub_media("https://arvamus.postimees.ee/1") == "arvamus"
    assert parser.extract_sub_media("https://sport.postimees.ee/1") is UNRECOGNIZED


def test_err_sub_media():
    parser = ErrParser(ERR)
    assert parser.extract_sub_media("https://www.err.ee/1") is None
    assert parser.extract_sub_media("https://news.err.ee/1") == "news"
    assert parser.extract_sub_media("https://rus.err.ee/1") == "rus"
    assert parser.extract_sub_media("https://menu.err.ee/1") is UNRECOGNIZED


def test_postimees_extract_article():
    parser = PostimeesParser(POSTIMEES)
    article = parser.extract_article(POSTIMEES_HTML, "https://postimees.ee/8415550", 8415550, None)
    assert article.media_id == 1
    assert article.article_id == 8415550
    assert article.sub_media is None
    assert article.title == "Riigikogu arutas eelarvet"
    assert article.date_time == "2024-03-01T10:15:00+02:00"
    assert article.authors == ["Mari Maasikas", "Jaan Tamm"]
    assert article.paywall is True
    assert article.category == "Eesti"
    assert article.preview_url == "https://f.pmo.ee/image.jpg"
    assert article.body == "Esimene lõik.\n\nTeine lõik."


def test_postimees_title_fallback():
    html = POSTIMEES_HTML.replace(
        '<h1 class="article__headline">  Riigikogu   arutas eelarvet </h1>',
        '<h1 class="article-superheader__headline">Erileht</h1>',
    )
    article = PostimeesParser(POSTIMEES).extract_article(html, "https://rus.postimees.ee/1", 1, "rus")
    assert article.title == "Erileht"
    assert article.sub_media == "rus"


def test_postimees_missing_date_raises():
    html = POSTIMEES_HTML.replace('content="2024-03-01T10:15:00+02:00"', "")
    try:
        PostimeesParser(POSTIMEES).extract_article(html, "https://postimees.ee/1", 1, None)
    except ExtractionError as exc:
        assert exc.field == "date_time"
        assert exc.url == "https://postimees.ee/1"
    else:
        raise AssertionError("expected ExtractionError")


def test_postimees_missing_body_raises():
    html = POSTIMEES_HTML.replace("article-body-content", "comments")
    with pytest.raises(ExtractionError) as excinfo:
        PostimeesParser(POSTIMEES).extract_article(html, "https://postimees.ee/1", 1, None)
    assert excinfo.value.field == "body"


def test_err_extract_article():
    parser = ErrParser(ERR)
    article = parser.extract_article(ERR_HTML, "https://www.err.ee/1609940954", 1609940954, None)
    assert article.media_id == 2
    assert article.title == "Valitsus kinnitas uue lisaeelarve"
    assert article.date_time == "2024-02-20T08:30:00+02:00"
    assert article.category == "Eesti"
    assert article.authors == ["Mari Maasikas", "Jaan Tamm"]
    assert article.preview_url == "https://s.err.ee/photo/og.jpg"
    assert article.paywall is False
    assert article.body == (
        "Valitsus kinnitas neljapäeval uue lisaeelarve eelnõu.\n\n"
        "Eelnõu saadetakse järgmisel nädalal riigikokku arutamiseks."
    )


def test_err_prefers_inline_image():
    html = ERR_HTML.replace(
        "<h1>", '<img src="https://s.err.ee/photo/crop/inline.jpg"><h1>'
    )
    article = ErrParser(ERR).extract_article(html, "https://news.err.ee/1", 1, "news")
    assert article.preview_url == "https://s.err.ee/photo/crop/inline.jpg"


def test_err_not_found_page():
    html = "<html><body><h1>Artiklit ei leitud</h1></body></html>"
    with pytest.raises(ExtractionError) as excinfo:
        ErrParser(ERR).extract_article(html, "https://www.err.ee/5", 5, None)
    assert excinfo.value.field == "article"


def test_err_missing_date_raises():
    html = ERR_HTML.replace('"datePublished": "2024-02-20T08:30:00+02:00"', '"name": "x"')
    with pytest.raises(ExtractionError) as excinfo:
        ErrParser(ERR).extract_article(html, "https://www.err.ee/5", 5, None)
    assert excinfo.value.field == "date_time"


def test_postimees_keeps_unparsed_date_text():
    html = POSTIMEES_HTML.replace('content="2024-03-01T10:15:00+02:00"', 'content="1. märts 2024 10:15"')
    article = PostimeesParser(POSTIMEES).extract_article(html, "https://postimees.ee/1", 1, None)
    assert article.date_time == "1. märts 2024 10:15"


def test_err_compact_offset_date():
    html = ERR_HTML.replace("2024-02-20T08:30:00+02:00", "2024-02-20T08:30:00+0200")
    article = ErrParser(ERR).extract_article(html, "https://www.err.ee/1", 1, None)
    assert article.date_time == "2024-02-20T08:30:00+02:00"
