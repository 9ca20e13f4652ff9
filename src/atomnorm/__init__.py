from .main import (
    REFRESH_INTERVAL,
    ZERO_TIME,
    Author,
    CharsetReader,
    DiagnosticSink,
    Enclosure,
    Feed,
    FeedParseError,
    Image,
    Item,
    Link,
    LoggingDiagnostics,
    NullDiagnostics,
    parse,
    parse_date,
)

__all__ = [
    "REFRESH_INTERVAL",
    "ZERO_TIME",
    "Author",
    "CharsetReader",
    "DiagnosticSink",
    "Enclosure",
    "Feed",
    "FeedParseError",
    "Image",
    "Item",
    "Link",
    "LoggingDiagnostics",
    "NullDiagnostics",
    "parse",
    "parse_date",
]
