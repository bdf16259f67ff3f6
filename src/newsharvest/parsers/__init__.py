from __future__ import annotations

from ..models import Media
from .base import UNRECOGNIZED, ArticleParser, ExtractionError, ParserConfig, is_on_domain
from .err import ErrParser
from .postimees import PostimeesParser

PARSERS = {
    "postimees": PostimeesParser,
    "err": ErrParser,
}


class UnknownParserError(LookupError):
    pass


def get_parser(media: Media) -> ArticleParser:
    parser_cls = PARSERS.get(media.slug)
    if parser_cls is None:
        supported = ", ".join(sorted(PARSERS))
        raise UnknownParserError(f"Unknown media slug: {media.slug}. Supported: {supported}")
    return parser_cls(media)


__all__ = [
    "PARSERS",
    "UNRECOGNIZED",
    "ArticleParser",
    "ErrParser",
    "ExtractionError",
    "ParserConfig",
    "PostimeesParser",
    "UnknownParserError",
    "get_parser",
    "is_on_domain",
]
