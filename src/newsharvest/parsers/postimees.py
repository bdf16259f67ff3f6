from __future__ import annotations

from ..models import Article, Media
from ..utils import clean_text, serialize_text
from .base import (
    ParserConfig,
    SubMedia,
    Unrecognized,
    make_soup,
    published_at,
    require,
    sub_media_from_hosts,
)

_HOSTS: dict[str, SubMedia] = {
    "postimees.ee": None,
    "www.postimees.ee": None,
    "rus.postimees.ee": "rus",
    "arvamus.postimees.ee": "arvamus",
}


class PostimeesParser:
    """Postimees main site plus the rus and arvamus editions.

    Other subdomains (sport, kultuur, ...) are not harvested.
    """

    config = ParserConfig(base_domain="postimees.ee", url_template="https://postimees.ee/{id}")
    allowed_sub_media: tuple[SubMedia, ...] = (None, "rus", "arvamus")

    def __init__(self, media: Media) -> None:
        self.media = media

    def extract_sub_media(self, url: str) -> SubMedia | Unrecognized:
        return sub_media_from_hosts(url, _HOSTS)

    def extract_article(
        self, html: str, url: str, article_id: int, sub_media: SubMedia
    ) -> Article:
        soup = make_soup(html)

        publish = soup.select_one(".article__publish-date")
        raw_date = publish.get("content") if publish else None
        date_time = require(published_at(raw_date), "date_time", url)

        title = None
        for selector in (".article__headline", ".article-superheader__headline"):
            node = soup.select_one(selector)
            title = clean_text(node.get_text()) if node else None
            if title:
                break
        title = require(title, "title", url)

        authors = [
            name
            for name in (clean_text(node.get_text()) for node in soup.select(".author .author__name"))
            if name
        ]

        paywall = bool(
            soup.select("section.root.breadcrumb ul.breadcrumb__items .button-m--premium")
        )

        category_node = soup.select_one("ul.breadcrumb__items li.breadcrumb-item:last-child a")
        category = clean_text(category_node.get_text()) if category_node else None

        image = soup.select_one(".figure__image-wrapper img")
        preview_url = image.get("src") if image else None

        body = serialize_text(
            node.get_text() for node in soup.select(".article-body-content p")
        )
        body = require(body, "body", url)

        return Article(
            media_id=self.media.id,
            article_id=article_id,
            sub_media=sub_media,
            url=url,
            title=title,
            date_time=date_time,
            authors=authors or None,
            paywall=paywall,
            category=category,
            preview_url=preview_url or None,
            body=body,
        )
