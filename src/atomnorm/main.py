from __future__ import annotations

import codecs
import datetime
import io
import re
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from functools import lru_cache
from typing import Any, BinaryIO, Callable, NamedTuple, Optional, Protocol, TYPE_CHECKING

import structlog
from dateutil import parser as dateutil_parser
from lxml import etree

if TYPE_CHECKING:
    from lxml.etree import _Element

CharsetReader = Callable[[str, BinaryIO], BinaryIO]

_UTC = datetime.timezone.utc

#: Suggested delay before the caller polls the same feed again.
REFRESH_INTERVAL = datetime.timedelta(minutes=10)

#: Value of ``Item.date`` when the entry carried no parseable date.
ZERO_TIME = datetime.datetime(1, 1, 1, tzinfo=_UTC)

_logger = structlog.get_logger(__name__)

# Only a declaration at the very start of the document counts.
_RE_XML_DECL_ENCODING = re.compile(
    r'\A(\s*<\?xml[^>]*encoding=["\'])([^"\']+)(["\'][^>]*\?>)', re.IGNORECASE
)
_RE_XML_DECL_ENCODING_BYTES = re.compile(
    rb'\A(\s*<\?xml[^>]*encoding=["\'])([^"\']+)(["\'][^>]*\?>)', re.IGNORECASE
)
_RE_INTEGER = re.compile(r"[+-]?\d+")
_RE_FEB29 = re.compile(r"(\d{4})-02-29")
_RE_WHITESPACE = re.compile(r"\s+")
_RE_ISO_TZ_NO_COLON = re.compile(r"([+-]\d{2})(\d{2})$")
_RE_ISO_TZ_HOUR_ONLY = re.compile(r"([+-]\d{2})$")
_RE_ISO_FRACTION = re.compile(r"\.(\d{7,})(?=(?:[+-]\d{2}:?\d{2}|Z|$))", re.IGNORECASE)
_RE_RFC822 = re.compile(
    r"(?:\w{3},\s+)?(\d{1,2})\s+(\w{3})\s+(\d{4})\s+(\d{2}):(\d{2}):(\d{2})\s+([+-]\d{4}|[A-Z]{2,5})"
)
_RE_HOUR24 = re.compile(r"(\d{4}-\d{2}-\d{2})[T ]24:(\d{2}):(\d{2})")
_MONTHS_RFC822: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_UTF8_ENCODINGS = frozenset({"utf-8", "utf8"})
_PRIMARY_LINK_RELS = frozenset({"alternate", ""})


class FeedParseError(ValueError):
    """The document could not be decoded as an Atom feed.

    Raised for non-well-formed XML, a root element other than ``<feed>``
    and undecodable character sets. Problems with individual entries never
    raise; they are reported to the diagnostic sink instead.
    """


# Normalized model handed to the caller.


@dataclass
class Link:
    href: str = ""
    rel: str = ""
    type: str = ""


@dataclass
class Author:
    name: str = ""
    uri: str = ""
    email: str = ""
    extensions: list[Link] = field(default_factory=list)


@dataclass
class Image:
    title: str = ""
    url: str = ""
    height: int = 0
    width: int = 0


@dataclass
class Enclosure:
    url: str = ""
    type: str = ""
    length: int = 0


@dataclass
class Item:
    title: str = ""
    summary: str = ""
    content: str = ""
    id: str = ""
    link: str = ""
    enclosures: list[Enclosure] = field(default_factory=list)
    date: datetime.datetime = ZERO_TIME
    date_valid: bool = False
    read: bool = False


@dataclass
class Feed:
    title: str = ""
    description: str = ""
    author: Author = field(default_factory=Author)
    link: str = ""
    image: Image = field(default_factory=Image)
    refresh: datetime.datetime = ZERO_TIME
    items: list[Item] = field(default_factory=list)
    item_ids: set[str] = field(default_factory=set)
    unread: int = 0


# Raw document shape, alive only for the duration of one parse() call.


class _AtomLink(NamedTuple):
    href: str
    rel: str
    type: str
    length: int


class _AtomAuthor(NamedTuple):
    name: str
    uri: str
    email: str
    extensions: list[_AtomLink]


class _AtomImage(NamedTuple):
    title: str
    url: str
    height: int
    width: int


class _AtomEntry(NamedTuple):
    title: str
    summary: str
    content: str
    links: list[_AtomLink]
    updated: str
    id: str


class _AtomDocument(NamedTuple):
    title: str
    description: str
    author: _AtomAuthor
    links: list[_AtomLink]
    image: _AtomImage
    entries: list[_AtomEntry]
    updated: str


class DiagnosticSink(Protocol):
    """Receives non-fatal warnings raised while normalizing entries."""

    def skipped_entry(self, title: str, entry: dict[str, Any], reason: str) -> None: ...

    def warnings_raised(self, data: bytes) -> None: ...


class NullDiagnostics:
    """Sink that discards everything. Used when no sink is given."""

    def skipped_entry(self, title: str, entry: dict[str, Any], reason: str) -> None:
        pass

    def warnings_raised(self, data: bytes) -> None:
        pass


class LoggingDiagnostics:
    """Sink that reports skipped entries and offending documents via structlog."""

    def __init__(self, logger: Any = None) -> None:
        self.logger = logger if logger is not None else structlog.get_logger("atomnorm")

    def skipped_entry(self, title: str, entry: dict[str, Any], reason: str) -> None:
        self.logger.warning("atom_entry_skipped", title=title, reason=reason, entry=entry)

    def warnings_raised(self, data: bytes) -> None:
        self.logger.info(
            "atom_feed_warnings", document=data.decode("utf-8", errors="replace")
        )


_NULL_DIAGNOSTICS = NullDiagnostics()


def _detect_xml_encoding(content: bytes) -> str:
    """Detect encoding from XML declaration or BOM.

    Returns the detected encoding or 'utf-8' as default.
    """
    # Check for BOM (Byte Order Mark)
    if content.startswith(b"\xff\xfe"):
        return "utf-16"
    elif content.startswith(b"\xfe\xff"):
        return "utf-16"
    elif content.startswith(b"\xef\xbb\xbf"):
        return "utf-8"

    encoding_match = _RE_XML_DECL_ENCODING_BYTES.match(content)
    if encoding_match:
        return encoding_match.group(2).decode("ascii", errors="replace").lower()

    return "utf-8"


def _ensure_utf8_xml_declaration(content: str) -> str:
    """Ensure the XML declaration's encoding matches the UTF-8 bytes we emit."""
    return _RE_XML_DECL_ENCODING.sub(r"\1utf-8\3", content, count=1)


def _ensure_utf8_xml_declaration_bytes(content: bytes) -> bytes:
    return _RE_XML_DECL_ENCODING_BYTES.sub(rb"\1utf-8\3", content, count=1)


def _clean_feed_bytes(content: bytes) -> bytes:
    """Clean feed bytes by extracting the XML document (if it's embedded in junk)."""
    stripped_content = content.lstrip()
    preview = stripped_content[:2000]
    preview_lower = preview.lower()

    # Skip UTF-8 BOM when doing ASCII prefix checks
    if preview_lower.startswith(b"\xef\xbb\xbf"):
        preview_lower = preview_lower[3:]
        stripped_content = stripped_content[3:]

    if preview_lower.startswith((b"<?xml", b"<feed", b"<!--")):
        return stripped_content

    if preview_lower.startswith(b"<!doctype html") or preview_lower.startswith(
        b"<html"
    ):
        raise FeedParseError("Content appears to be HTML, not an Atom feed")

    # Already markup, e.g. a prefixed <atom:feed>; a declaration further in
    # belongs to entry content, not to the document.
    if preview_lower.startswith(b"<"):
        return stripped_content

    xml_start_patterns = (b"<?xml", b"<feed", b"<?xml-stylesheet")

    # find() scans in-place; splitting multi-MB feeds into lines would not.
    search_limit = min(len(content), 8192)
    search_chunk = content[:search_limit].lower()
    earliest = -1
    for pattern in xml_start_patterns:
        idx = search_chunk.find(pattern)
        if idx != -1 and (earliest == -1 or idx < earliest):
            earliest = idx
    if earliest != -1:
        return content[earliest:]

    if b"<script>" in preview_lower or b"<body>" in preview_lower:
        raise FeedParseError("Content appears to be HTML, not an Atom feed")

    return content


def _default_charset_reader(charset: str, stream: BinaryIO) -> BinaryIO:
    """Transcode *stream* from *charset* to UTF-8 using Python's codecs."""
    try:
        codec = codecs.lookup(charset)
    except LookupError:
        raise FeedParseError(f"Unsupported charset: {charset}") from None
    try:
        text = stream.read().decode(codec.name)
    except UnicodeDecodeError as e:
        raise FeedParseError(f"Content is not valid {charset}: {e}") from e
    return io.BytesIO(text.encode("utf-8"))


def _transcode(content: bytes, charset_reader: CharsetReader) -> bytes:
    declared = _detect_xml_encoding(content)
    # Declared as UTF-16 but plainly single-byte: the declaration is lying.
    if declared.startswith("utf-16") and b"\x00" not in content[:200]:
        declared = "utf-8"

    if declared in _UTF8_ENCODINGS:
        return _ensure_utf8_xml_declaration_bytes(content)

    try:
        converted = charset_reader(declared, io.BytesIO(content)).read()
    except FeedParseError:
        raise
    except Exception as e:
        raise FeedParseError(f"Failed to convert charset {declared}: {e}") from e
    return _ensure_utf8_xml_declaration_bytes(converted)


def _prepare_xml_bytes(
    xml_content: str | bytes, charset_reader: CharsetReader
) -> bytes:
    if isinstance(xml_content, str):
        # Str input: drop the BOM, fix encoding declaration, then use bytes path.
        xml_content = xml_content.lstrip("\ufeff")
        xml_content = _ensure_utf8_xml_declaration(xml_content).encode(
            "utf-8", errors="replace"
        )

    cleaned = _clean_feed_bytes(xml_content)
    if not cleaned.strip():
        raise FeedParseError("Empty content")

    cleaned = _transcode(cleaned, charset_reader)

    # Replace Unicode LINE SEPARATOR (U+2028) and PARAGRAPH SEPARATOR (U+2029)
    # with regular newlines — these are invalid in XML 1.0 and cause lxml to fail.
    if b"\xe2\x80\xa8" in cleaned or b"\xe2\x80\xa9" in cleaned:
        cleaned = cleaned.replace(b"\xe2\x80\xa8", b"\n").replace(
            b"\xe2\x80\xa9", b"\n"
        )
    return cleaned


def _xml_parser() -> etree.XMLParser:
    # One parser per call: lxml parsers must not be shared between threads.
    return etree.XMLParser(
        ns_clean=True,
        recover=False,
        collect_ids=False,
        resolve_entities=False,
        strip_cdata=False,
        no_network=True,
    )


_NON_FEED_MESSAGES: dict[str, str] = {
    "html": "Received HTML page instead of feed",
    "rss": "Received RSS document instead of Atom feed",
    "rdf": "Received RDF document instead of Atom feed",
    "opml": "Received OPML document instead of feed (OPML is an outline format, not a feed)",
    "error": "Feed server returned error",
}


def _local_name(element: _Element) -> str:
    tag = element.tag
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _parse_xml_root(xml_content: bytes) -> _Element:
    try:
        root = etree.fromstring(xml_content, parser=_xml_parser())
    except etree.XMLSyntaxError as e:
        raise FeedParseError(f"Failed to parse XML content: {e}") from e

    root_tag_local = _local_name(root)
    if root_tag_local != "feed":
        raise FeedParseError(
            _NON_FEED_MESSAGES.get(
                root_tag_local.lower(),
                f"Expected <feed> root element, got <{root_tag_local}>",
            )
        )
    return root


def _element_text(element: _Element) -> str:
    """Character data directly inside *element*; nested markup is skipped."""
    parts = [element.text or ""]
    for child in element:
        if child.tail:
            parts.append(child.tail)
    return "".join(parts)


def _inner_xml(element: _Element) -> str:
    """Serialized markup between the start and end tag of *element*."""
    if element.text is None and len(element) == 0:
        return ""
    markup = etree.tostring(element, encoding="unicode", with_tail=False)
    # lxml escapes '>' inside attribute values, so the first one closes the tag.
    return markup[markup.index(">") + 1 : markup.rindex("</")]


def _int_value(value: Optional[str]) -> int:
    if value is None:
        return 0
    value = value.strip()
    if not _RE_INTEGER.fullmatch(value):
        return 0
    return int(value)


def _children(element: _Element):
    for child in element:
        if isinstance(child.tag, str):
            yield _local_name(child), child


def _texts(elements: list[_Element], names: tuple[str, ...]) -> dict[str, str]:
    """Text of each named child; a repeated child overwrites the earlier one.

    Several *elements* are merged in order, so a second <author> only
    replaces the fields it actually carries.
    """
    texts = dict.fromkeys(names, "")
    for element in elements:
        for name, child in _children(element):
            if name in texts:
                texts[name] = _element_text(child)
    return texts


def _decode_link(element: _Element) -> _AtomLink:
    return _AtomLink(
        href=element.get("href", ""),
        rel=element.get("rel", ""),
        type=element.get("type", ""),
        length=max(_int_value(element.get("length")), 0),
    )


def _decode_author(elements: list[_Element]) -> _AtomAuthor:
    texts = _texts(elements, ("name", "uri", "email"))
    return _AtomAuthor(
        name=texts["name"],
        uri=texts["uri"],
        email=texts["email"],
        extensions=[
            _decode_link(child)
            for element in elements
            for name, child in _children(element)
            if name == "link"
        ],
    )


def _decode_image(elements: list[_Element]) -> _AtomImage:
    texts = _texts(elements, ("title", "url", "height", "width"))
    return _AtomImage(
        title=texts["title"],
        url=texts["url"],
        height=_int_value(texts["height"]),
        width=_int_value(texts["width"]),
    )


def _decode_entry(element: _Element) -> _AtomEntry:
    texts = _texts([element], ("title", "summary", "updated", "id"))
    content = ""
    links: list[_AtomLink] = []
    for name, child in _children(element):
        if name == "link":
            links.append(_decode_link(child))
        elif name == "content":
            content = _inner_xml(child)
    return _AtomEntry(
        title=texts["title"],
        summary=texts["summary"],
        content=content,
        links=links,
        updated=texts["updated"],
        id=texts["id"],
    )


def _decode_document(root: _Element) -> _AtomDocument:
    texts = _texts([root], ("title", "subtitle", "updated"))
    authors: list[_Element] = []
    images: list[_Element] = []
    links: list[_AtomLink] = []
    entries: list[_AtomEntry] = []
    for name, child in _children(root):
        if name == "entry":
            entries.append(_decode_entry(child))
        elif name == "link":
            links.append(_decode_link(child))
        elif name == "author":
            authors.append(child)
        elif name == "image":
            images.append(child)
    return _AtomDocument(
        title=texts["title"],
        description=texts["subtitle"],
        author=_decode_author(authors),
        links=links,
        image=_decode_image(images),
        entries=entries,
        updated=texts["updated"],
    )


def _uint32(value: int) -> int:
    return value & 0xFFFFFFFF


def _feed_metadata(
    document: _AtomDocument, refresh_interval: datetime.timedelta
) -> Feed:
    link = ""
    # First qualifying link wins at feed level (entries use the last one).
    for candidate in document.links:
        if candidate.rel in _PRIMARY_LINK_RELS:
            link = candidate.href
            break

    author = document.author
    image = document.image
    return Feed(
        title=document.title,
        description=document.description,
        author=Author(
            name=author.name,
            uri=author.uri,
            email=author.email,
            extensions=[
                Link(href=ext.href, rel=ext.rel, type=ext.type)
                for ext in author.extensions
            ],
        ),
        link=link,
        image=Image(
            title=image.title,
            url=image.url,
            height=_uint32(image.height),
            width=_uint32(image.width),
        ),
        refresh=datetime.datetime.now(_UTC) + refresh_interval,
    )


def _entry_snapshot(entry: _AtomEntry) -> dict[str, Any]:
    snapshot = entry._asdict()
    snapshot["links"] = [link._asdict() for link in entry.links]
    return snapshot


def _normalize_entry(entry: _AtomEntry) -> Item:
    item = Item(
        title=entry.title,
        summary=entry.summary,
        content=entry.content,
        id=entry.id.strip(),
    )

    if entry.updated:
        date = parse_date(entry.updated)
        if date is not None:
            item.date = date
            item.date_valid = True

    for link in entry.links:
        # Last qualifying link wins at entry level.
        if link.rel in _PRIMARY_LINK_RELS:
            item.link = link.href
        else:
            item.enclosures.append(
                Enclosure(url=link.href, type=link.type, length=link.length)
            )
    return item


def _report_skip(
    diagnostics: DiagnosticSink, entry: _AtomEntry, reason: str
) -> None:
    try:
        diagnostics.skipped_entry(entry.title, _entry_snapshot(entry), reason)
    except Exception:
        _logger.exception("diagnostic_sink_failed", hook="skipped_entry")


def _normalize_entries(
    feed: Feed, entries: list[_AtomEntry], diagnostics: DiagnosticSink
) -> bool:
    """Append acceptable entries to *feed*. Returns True if any were skipped."""
    warnings = False
    for entry in entries:
        if entry.id in feed.item_ids:
            _report_skip(diagnostics, entry, "duplicate id")
            warnings = True
            continue

        item = _normalize_entry(entry)

        if not item.id:
            _report_skip(diagnostics, entry, "missing id")
            warnings = True
            continue

        if item.id in feed.item_ids:
            _report_skip(diagnostics, entry, "duplicate id")
            warnings = True
            continue

        feed.items.append(item)
        feed.item_ids.add(item.id)
        feed.unread += 1
    return warnings


def parse(
    source: str | bytes,
    *,
    charset_reader: Optional[CharsetReader] = None,
    diagnostics: Optional[DiagnosticSink] = None,
    refresh_interval: datetime.timedelta = REFRESH_INTERVAL,
) -> Feed:
    """Parse an Atom document into a normalized, deduplicated Feed.

    Args:
        source: Atom XML content as bytes or str
        charset_reader: Callable ``(charset, stream) -> stream`` used to
            convert documents declaring a non-UTF-8 encoding into UTF-8
        diagnostics: Sink notified about skipped entries; silent by default
        refresh_interval: Added to the current time to produce ``Feed.refresh``

    Returns:
        Feed holding the feed metadata and its entries in document order

    Raises:
        FeedParseError: If the content is not a well-formed Atom document
    """
    sink = diagnostics if diagnostics is not None else _NULL_DIAGNOSTICS
    xml_content = _prepare_xml_bytes(
        source, charset_reader or _default_charset_reader
    )
    document = _decode_document(_parse_xml_root(xml_content))

    feed = _feed_metadata(document, refresh_interval)
    if _normalize_entries(feed, document.entries, sink):
        raw = source.encode("utf-8") if isinstance(source, str) else source
        try:
            sink.warnings_raised(raw)
        except Exception:
            _logger.exception("diagnostic_sink_failed", hook="warnings_raised")
    return feed


def _normalize_iso_datetime_string(value: str) -> str:
    """Coerce flexible ISO-8601 inputs into a form datetime.fromisoformat can parse."""
    cleaned = value.strip()
    if not cleaned:
        return cleaned

    # Fast path: 'Z' suffix (most common in Atom feeds)
    if cleaned[-1] in ("Z", "z"):
        return cleaned[:-1] + "+00:00"

    # Fast path: already has proper +HH:MM or -HH:MM timezone
    if len(cleaned) > 6 and cleaned[-6] in ("+", "-") and cleaned[-3] == ":":
        return cleaned

    upper_cleaned = cleaned.upper()
    for suffix in (" UTC", " GMT", " Z"):
        if upper_cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)].rstrip() + "+00:00"
            break

    if (
        " " in cleaned
        and "T" not in cleaned[:11]
        and len(cleaned) >= 10
        and cleaned[4] == "-"
        and cleaned[0:4].isdigit()
    ):
        date_part, rest = cleaned.split(" ", 1)
        if rest and rest[0].isdigit():
            cleaned = f"{date_part}T{rest}"

    match = _RE_ISO_TZ_NO_COLON.search(cleaned)
    if match:
        cleaned = cleaned[:-5] + f"{match.group(1)}:{match.group(2)}"
    else:
        match = _RE_ISO_TZ_HOUR_ONLY.search(cleaned)
        if match:
            cleaned = cleaned[:-3] + f"{match.group(1)}:00"

    cleaned = _RE_ISO_FRACTION.sub(lambda m: "." + m.group(1)[:6], cleaned, count=1)
    return cleaned


def _ensure_utc(dt: datetime.datetime) -> Optional[datetime.datetime]:
    """Return a timezone-aware datetime normalized to UTC."""
    try:
        return dt.replace(tzinfo=_UTC) if dt.tzinfo is None else dt.astimezone(_UTC)
    except (ValueError, OverflowError):
        return None


def _fast_rfc822(value: str) -> Optional[datetime.datetime]:
    """Fast RFC-822 parsing for the shapes real feeds actually emit."""
    m = _RE_RFC822.match(value)
    if not m:
        return None
    day, mon_str, year, hour, minute, second, tz = m.groups()
    month = _MONTHS_RFC822.get(mon_str.lower())
    if month is None:
        return None
    if tz[0] in "+-":
        tz_offset_seconds = (int(tz[1:3]) * 3600 + int(tz[3:5]) * 60) * (
            1 if tz[0] == "+" else -1
        )
    else:
        tz_offset_seconds = _custom_tzinfos.get(tz)
        if tz_offset_seconds is None:
            return None  # Unknown tz name, fall through to full parser
    # Python requires offset strictly between -24h and +24h
    if not (-86400 < tz_offset_seconds < 86400):
        return None
    tzinfo = datetime.timezone(datetime.timedelta(seconds=tz_offset_seconds))
    try:
        base = datetime.date(int(year), month, int(day))
    except ValueError:
        return None
    h = int(hour)
    # Hour 24 is invalid (even ISO only allows 24:00:00); roll to next day at 00:mm:ss
    if h == 24:
        base += datetime.timedelta(days=1)
        h = 0
    try:
        dt = datetime.datetime(
            base.year, base.month, base.day, h, int(minute), int(second), tzinfo=tzinfo
        )
    except ValueError:
        return None
    return _ensure_utc(dt)


def _parsedate_to_utc(value: str) -> Optional[datetime.datetime]:
    """RFC-822 / RFC-2822 parsing via email.utils (fallback)."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    return _ensure_utc(parsed)


_custom_tzinfos: dict[str, int] = {
    "UTC": 0,
    "UT": 0,
    "GMT": 0,
    "WET": 0,
    "WEST": 3600,
    "BST": 3600,
    "CET": 3600,
    "CEST": 7200,
    "EET": 7200,
    "EEST": 10800,
    "MSK": 10800,
    "IST": 19800,
    "PST": -28800,
    "PDT": -25200,
    "MST": -25200,
    "MDT": -21600,
    "CST": -21600,
    "CDT": -18000,
    "EST": -18000,
    "EDT": -14400,
    "AKST": -32400,
    "AKDT": -28800,
    "HST": -36000,
    "AEST": 36000,
    "AEDT": 39600,
    "ACST": 34200,
    "ACDT": 37800,
    "AWST": 28800,
    "NZST": 43200,
    "NZDT": 46800,
    "JST": 32400,
    "KST": 32400,
    "SGT": 28800,
}

@lru_cache(maxsize=512)
def _slow_dateutil_parse(value: str) -> Optional[datetime.datetime]:
    try:
        return dateutil_parser.parse(value, tzinfos=_custom_tzinfos, ignoretz=False)
    except (ValueError, TypeError, OverflowError):
        return None


@lru_cache(maxsize=8192)
def parse_date(date_str: str) -> Optional[datetime.datetime]:
    """Parse a feed timestamp into an aware UTC datetime.

    Args:
        date_str: Date string in any common format

    Returns:
        UTC datetime, or None when parsing fails
    """
    if not date_str:
        return None

    candidate = date_str.strip()
    if not candidate:
        return None

    # Fast path: clean RFC 3339 (covers >90% of Atom dates)
    clen = len(candidate)
    if clen >= 20 and candidate[4] == "-" and candidate[0:4].isdigit():
        last = candidate[-1]
        # Most common: ends with 'Z' (e.g., 2024-01-15T10:30:00Z)
        if last in ("Z", "z"):
            try:
                return datetime.datetime.fromisoformat(candidate[:-1] + "+00:00")
            except ValueError:
                pass  # Fall through to full parsing
        # Second most common: ends with +HH:MM (e.g., 2024-01-15T10:30:00+00:00)
        elif clen > 6 and candidate[-6] in ("+", "-") and candidate[-3] == ":":
            try:
                dt = datetime.datetime.fromisoformat(candidate)
                return dt.astimezone(_UTC)
            except (ValueError, OverflowError):
                pass  # Fall through to full parsing

    if "\n" in candidate or "\r" in candidate or "\t" in candidate or "  " in candidate:
        candidate = _RE_WHITESPACE.sub(" ", candidate)

    # Fix invalid leap year dates (Feb 29 in non-leap years)
    if "-02-29" in candidate:
        year_match = _RE_FEB29.match(candidate)
        if year_match:
            year = int(year_match.group(1))
            if not ((year % 4 == 0 and year % 100 != 0) or (year % 400 == 0)):
                candidate = candidate.replace(f"{year}-02-29", f"{year}-02-28")

    if "T24:" in candidate or " 24:" in candidate:
        m24 = _RE_HOUR24.search(candidate)
        if m24:
            try:
                base = datetime.date.fromisoformat(m24.group(1))
            except ValueError:
                return None
            mins, secs = int(m24.group(2)), int(m24.group(3))
            next_day = base + datetime.timedelta(days=1)
            candidate = (
                candidate[: m24.start()]
                + f"{next_day}T00:{mins:02d}:{secs:02d}"
                + candidate[m24.end() :]
            )

    is_iso_like = (
        len(candidate) >= 10 and candidate[4] == "-" and candidate[0:4].isdigit()
    )
    if is_iso_like:
        try:
            dt = datetime.datetime.fromisoformat(
                _normalize_iso_datetime_string(candidate)
            )
        except ValueError:
            dt = None
        if dt is not None:
            utc_dt = _ensure_utc(dt)
            if utc_dt is not None:
                return utc_dt

    rfc822_dt = _fast_rfc822(candidate)
    if rfc822_dt is not None:
        return rfc822_dt

    parsed_dt = _parsedate_to_utc(candidate)
    if parsed_dt is not None:
        return parsed_dt

    slow_dt = _slow_dateutil_parse(candidate)
    if slow_dt is not None:
        utc_dt = _ensure_utc(slow_dt)
        if utc_dt is not None:
            return utc_dt

    # If all parsing attempts fail, return None
    return None
