from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from ..models import Article, Media
from ..utils import clean_text, normalize_timestamp


class Unrecognized(Enum):
    TOKEN = "unrecognized"


# Returned by extract_sub_media for hosts outside the parser's known editions.
UNRECOGNIZED = Unrecognized.TOKEN

SubMedia = Union[str, None]


class ExtractionError(ValueError):
    def __init__(self, field: str, url: str, message: str | None = None) -> None:
        self.field = field
        self.url = url
        super().__init__(message or f"missing {field} for {url}")


@dataclass(frozen=True)
class ParserConfig:
    base_domain: str
    url_template: str

    def article_url(self, article_id: int) -> str:
        return self.url_template.replace("{id}", str(article_id))


class ArticleParser(Protocol):
    media: Media
    config: ParserConfig
    allowed_sub_media: tuple[SubMedia, ...]

    def extract_sub_media(self, url: str) -> SubMedia | Unrecognized:
        ...

    def extract_article(
        self, html: str, url: str, article_id: int, sub_media: SubMedia
    ) -> Article:
        ...


def url_host(url: str) -> str:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return ""
    return (host or "").lower()


def is_on_domain(url: str, base_domain: str) -> bool:
    """True when ``url`` is on ``base_domain`` or any of its subdomains."""
    if not url.lower().startswith(("http://", "https://")):
        return False
    host = url_host(url)
    domain = base_domain.lower().strip(".")
    return host == domain or host.endswith("." + domain)


def sub_media_from_hosts(url: str, hosts: dict[str, SubMedia]) -> SubMedia | Unrecognized:
    host = url_host(url)
    if host in hosts:
        return hosts[host]
    return UNRECOGNIZED


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def require(value: str | None, field: str, url: str) -> str:
    if not value:
        raise ExtractionError(field, url)
    return value


def published_at(value: str | None) -> str | None:
    """ISO-8601 form of a page's publish date, or the raw text when it is in another format."""
    return normalize_timestamp(value) or clean_text(value)
