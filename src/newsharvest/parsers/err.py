from __future__ import annotations

import json
import re
from typing import Any

from bs4 import BeautifulSoup

from ..models import Article, Media
from ..utils import clean_text, serialize_text
from .base import (
    ExtractionError,
    ParserConfig,
    SubMedia,
    Unrecognized,
    make_soup,
    published_at,
    require,
    sub_media_from_hosts,
)

_HOSTS: dict[str, SubMedia] = {
    "err.ee": None,
    "www.err.ee": None,
    "news.err.ee": "news",
    "rus.err.ee": "rus",
}

# ERR answers unknown ids with HTTP 200 and this notice.
_NOT_FOUND_MARKER = "Artiklit ei leitud"

_EDITOR_PREFIX = re.compile(r"^(?:Editor|Редактор|Toimetaja):\s*", re.IGNORECASE)

_BOILERPLATE = [
    re.compile(r"^Follow ERR News", re.IGNORECASE),
    re.compile(r"^ERR News is the English-language service", re.IGNORECASE),
    re.compile(r"^Staff, contacts & comments", re.IGNORECASE),
    re.compile(r"^To read up on ERR News", re.IGNORECASE),
    re.compile(r"Следите за ERR", re.IGNORECASE),
    re.compile(r"^ERR-i uudiste", re.IGNORECASE),
]

_MIN_PARAGRAPH_LENGTH = 20


class ErrParser:
    """ERR (Eesti Rahvusringhääling): Estonian, English and Russian editions.

    www.err.ee/<id> redirects to the edition the article belongs to.
    """

    config = ParserConfig(base_domain="err.ee", url_template="https://www.err.ee/{id}")
    allowed_sub_media: tuple[SubMedia, ...] = (None, "news", "rus")

    def __init__(self, media: Media) -> None:
        self.media = media

    def extract_sub_media(self, url: str) -> SubMedia | Unrecognized:
        return sub_media_from_hosts(url, _HOSTS)

    def extract_article(
        self, html: str, url: str, article_id: int, sub_media: SubMedia
    ) -> Article:
        soup = make_soup(html)

        body_node = soup.body or soup
        if _NOT_FOUND_MARKER in body_node.get_text():
            raise ExtractionError("article", url, f"not found page for {url}")

        date_time = require(published_at(_date_published(soup)), "date_time", url)

        heading = soup.find("h1")
        title = require(clean_text(heading.get_text()) if heading else None, "title", url)

        category = None
        for link in soup.select('a[href^="/k/"]'):
            text = clean_text(link.get_text())
            if text:
                category = text

        image = soup.select_one('img[src*="s.err.ee"]')
        preview_url = image.get("src") if image else None
        if not preview_url:
            og_image = soup.find("meta", attrs={"property": "og:image"})
            preview_url = og_image.get("content") if og_image else None

        body = require(serialize_text(_body_paragraphs(soup)), "body", url)

        return Article(
            media_id=self.media.id,
            article_id=article_id,
            sub_media=sub_media,
            url=url,
            title=title,
            date_time=date_time,
            authors=_authors(soup),
            paywall=False,
            category=category,
            preview_url=preview_url or None,
            body=body,
        )


def _date_published(soup: BeautifulSoup) -> str | None:
    found = None
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except (json.JSONDecodeError, TypeError):
            continue
        for item in _ld_items(data):
            value = item.get("datePublished")
            if value:
                found = str(value)
    return found


def _ld_items(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        graph = data.get("@graph")
        if isinstance(graph, list):
            return [data] + [item for item in graph if isinstance(item, dict)]
        return [data]
    return []


def _authors(soup: BeautifulSoup) -> list[str] | None:
    node = soup.select_one(".editor")
    text = clean_text(node.get_text()) if node else None
    if not text:
        node = soup.select_one(".editor-design")
        text = clean_text(node.get_text()) if node else None
    if not text:
        return None
    names = [name.strip() for name in _EDITOR_PREFIX.sub("", text).split(",")]
    names = [name for name in names if name]
    return names or None


def _body_paragraphs(soup: BeautifulSoup) -> list[str]:
    parts = []
    for paragraph in soup.find_all("p"):
        text = clean_text(paragraph.get_text())
        if not text or len(text) < _MIN_PARAGRAPH_LENGTH:
            continue
        if _EDITOR_PREFIX.match(text):
            continue
        if any(pattern.search(text) for pattern in _BOILERPLATE):
            continue
        parts.append(text)
    return parts
