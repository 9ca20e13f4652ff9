import datetime

import pytest

from atomnorm import (
    REFRESH_INTERVAL,
    ZERO_TIME,
    Enclosure,
    FeedParseError,
    Link,
    parse,
)


def _feed(body: str, head: str = "") -> bytes:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom">'
        f"{head}{body}"
        "</feed>"
    ).encode("utf-8")


def test_feed_metadata():
    xml = _feed(
        "",
        head="""
        <title>Example Feed</title>
        <subtitle>All the news</subtitle>
        <updated>2024-01-01T00:00:00Z</updated>
        <author>
          <name>Jane Doe</name>
          <uri>https://example.com/jane</uri>
          <email>jane@example.com</email>
          <link rel="me" href="https://social.example/@jane" type="text/html"/>
          <link href="https://example.com/jane.atom"/>
        </author>
        <image>
          <title>Logo</title>
          <url>https://example.com/logo.png</url>
          <height> 32 </height>
          <width>88</width>
        </image>
        """,
    )
    feed = parse(xml)
    assert feed.title == "Example Feed"
    assert feed.description == "All the news"
    assert feed.author.name == "Jane Doe"
    assert feed.author.uri == "https://example.com/jane"
    assert feed.author.email == "jane@example.com"
    assert feed.author.extensions == [
        Link(href="https://social.example/@jane", rel="me", type="text/html"),
        Link(href="https://example.com/jane.atom", rel="", type=""),
    ]
    assert feed.image.title == "Logo"
    assert feed.image.url == "https://example.com/logo.png"
    assert feed.image.height == 32
    assert feed.image.width == 88
    assert feed.items == []
    assert feed.item_ids == set()
    assert feed.unread == 0


def test_missing_metadata_defaults_to_empty():
    feed = parse(_feed(""))
    assert feed.title == ""
    assert feed.link == ""
    assert feed.author.name == ""
    assert feed.author.extensions == []
    assert feed.image.url == ""
    assert feed.image.height == 0


def test_image_dimensions_are_narrowed_to_uint32():
    xml = _feed("", head="<image><height>-1</height><width>abc</width></image>")
    feed = parse(xml)
    assert feed.image.height == 0xFFFFFFFF
    assert feed.image.width == 0


def test_refresh_is_now_plus_interval():
    before = datetime.datetime.now(datetime.timezone.utc)
    feed = parse(_feed(""))
    after = datetime.datetime.now(datetime.timezone.utc)
    assert before + REFRESH_INTERVAL <= feed.refresh <= after + REFRESH_INTERVAL


def test_refresh_interval_is_configurable():
    interval = datetime.timedelta(hours=1)
    before = datetime.datetime.now(datetime.timezone.utc)
    feed = parse(_feed(""), refresh_interval=interval)
    assert feed.refresh >= before + interval


def test_feed_link_first_alternate_wins():
    xml = _feed(
        "",
        head="""
        <link rel="self" href="https://example.com/feed.atom"/>
        <link rel="alternate" href="https://example.com/A"/>
        <link rel="related" href="https://example.com/B"/>
        <link href="https://example.com/C"/>
        """,
    )
    assert parse(xml).link == "https://example.com/A"


def test_feed_link_empty_rel_qualifies():
    xml = _feed(
        "",
        head="""
        <link rel="hub" href="https://hub.example.com/"/>
        <link href="https://example.com/"/>
        """,
    )
    assert parse(xml).link == "https://example.com/"


def test_feed_link_absent_when_nothing_qualifies():
    xml = _feed("", head='<link rel="self" href="https://example.com/feed.atom"/>')
    assert parse(xml).link == ""


def test_entry_fields():
    xml = _feed(
        """
        <entry>
          <id>urn:uuid:1</id>
          <title>First post</title>
          <summary>Short</summary>
          <updated>2024-03-05T10:30:00Z</updated>
          <content type="html">&lt;p&gt;Body&lt;/p&gt;</content>
          <link href="https://example.com/1"/>
        </entry>
        """
    )
    feed = parse(xml)
    assert len(feed.items) == 1
    item = feed.items[0]
    assert item.id == "urn:uuid:1"
    assert item.title == "First post"
    assert item.summary == "Short"
    assert item.content == "&lt;p&gt;Body&lt;/p&gt;"
    assert item.link == "https://example.com/1"
    assert item.enclosures == []
    assert item.date_valid is True
    assert item.date == datetime.datetime(
        2024, 3, 5, 10, 30, tzinfo=datetime.timezone.utc
    )
    assert item.read is False
    assert feed.item_ids == {"urn:uuid:1"}
    assert feed.unread == 1


def test_entry_content_keeps_markup_and_cdata():
    xml = _feed(
        """
        <entry>
          <id>x</id>
          <content type="xhtml"><div xmlns="http://www.w3.org/1999/xhtml"><p>Hi <b>there</b></p></div></content>
        </entry>
        <entry>
          <id>c</id>
          <content type="html"><![CDATA[<p>Body</p>]]></content>
        </entry>
        <entry>
          <id>empty</id>
          <content/>
        </entry>
        """
    )
    xhtml, cdata, empty = parse(xml).items
    assert xhtml.content.startswith("<div")
    assert "<p>Hi <b>there</b></p>" in xhtml.content
    assert xhtml.content.endswith("</div>")
    assert cdata.content == "<![CDATA[<p>Body</p>]]>"
    assert empty.content == ""


def test_entry_title_skips_nested_markup():
    xml = _feed("<entry><id>1</id><title>a<b>b</b>c</title></entry>")
    assert parse(xml).items[0].title == "ac"


def test_duplicate_ids_keep_first_entry():
    xml = _feed(
        """
        <entry><id>dup</id><title>first</title></entry>
        <entry><id>other</id><title>other</title></entry>
        <entry><id>dup</id><title>second</title></entry>
        """
    )
    feed = parse(xml)
    assert [item.id for item in feed.items] == ["dup", "other"]
    assert feed.items[0].title == "first"
    assert feed.unread == 2
    assert feed.item_ids == {"dup", "other"}


def test_ids_differing_only_in_whitespace_are_duplicates():
    xml = _feed(
        """
        <entry><id>abc</id><title>first</title></entry>
        <entry><id>  abc
        </id><title>second</title></entry>
        """
    )
    feed = parse(xml)
    assert [item.title for item in feed.items] == ["first"]
    assert feed.unread == 1


def test_missing_id_is_skipped_without_affecting_others():
    xml = _feed(
        """
        <entry><title>no id</title><link href="https://example.com/x"/></entry>
        <entry><id></id><title>empty id</title></entry>
        <entry><id>   </id><title>blank id</title></entry>
        <entry><id>ok</id><title>kept</title></entry>
        """
    )
    feed = parse(xml)
    assert [item.title for item in feed.items] == ["kept"]
    assert feed.item_ids == {"ok"}
    assert feed.unread == 1


def test_item_link_last_alternate_wins():
    xml = _feed(
        """
        <entry>
          <id>1</id>
          <link rel="alternate" href="https://example.com/A"/>
          <link rel="alternate" href="https://example.com/B"/>
        </entry>
        """
    )
    item = parse(xml).items[0]
    assert item.link == "https://example.com/B"
    assert item.enclosures == []


def test_enclosures_preserve_order_and_attributes():
    xml = _feed(
        """
        <entry>
          <id>1</id>
          <link rel="enclosure" href="https://example.com/a.mp3" type="audio/mpeg" length="1234"/>
          <link rel="alternate" href="https://example.com/post"/>
          <link rel="enclosure" href="https://example.com/b.ogg" type="audio/ogg" length="99"/>
        </entry>
        """
    )
    item = parse(xml).items[0]
    assert item.link == "https://example.com/post"
    assert item.enclosures == [
        Enclosure(url="https://example.com/a.mp3", type="audio/mpeg", length=1234),
        Enclosure(url="https://example.com/b.ogg", type="audio/ogg", length=99),
    ]


def test_non_alternate_links_become_enclosures():
    xml = _feed(
        """
        <entry>
          <id>1</id>
          <link rel="replies" href="https://example.com/comments"/>
          <link rel="enclosure" href="https://example.com/x.bin" length="nope"/>
        </entry>
        """
    )
    item = parse(xml).items[0]
    assert item.link == ""
    assert item.enclosures == [
        Enclosure(url="https://example.com/comments", type="", length=0),
        Enclosure(url="https://example.com/x.bin", type="", length=0),
    ]


def test_unparseable_date_keeps_entry():
    xml = _feed(
        """
        <entry><id>1</id><updated>not-a-date ???</updated></entry>
        <entry><id>2</id></entry>
        """
    )
    first, second = parse(xml).items
    assert first.date_valid is False
    assert first.date == ZERO_TIME
    assert second.date_valid is False
    assert second.date == ZERO_TIME


def test_date_with_colonless_offset():
    xml = _feed("<entry><id>1</id><updated>2006-01-02T15:04:05-0700</updated></entry>")
    item = parse(xml).items[0]
    assert item.date_valid is True
    assert item.date == datetime.datetime(
        2006, 1, 2, 22, 4, 5, tzinfo=datetime.timezone.utc
    )


def test_items_keep_document_order_across_reparses():
    xml = _feed(
        "".join(f"<entry><id>id-{n}</id><title>{n}</title></entry>" for n in (3, 1, 2))
    )
    first = parse(xml)
    second = parse(xml)
    assert [item.id for item in first.items] == ["id-3", "id-1", "id-2"]
    assert [item.id for item in first.items] == [item.id for item in second.items]


def test_identifier_set_matches_items():
    xml = _feed(
        """
        <entry><id>a</id></entry>
        <entry><id>b</id></entry>
        <entry><id>a</id></entry>
        <entry><title>none</title></entry>
        """
    )
    feed = parse(xml)
    assert feed.item_ids == {item.id for item in feed.items}
    assert feed.unread == len(feed.items) == 2
    assert all(not item.read for item in feed.items)


def test_namespace_prefixed_and_unnamespaced_documents():
    prefixed = (
        b'<atom:feed xmlns:atom="http://www.w3.org/2005/Atom">'
        b"<atom:title>prefixed</atom:title>"
        b"<atom:entry><atom:id>1</atom:id></atom:entry>"
        b"</atom:feed>"
    )
    bare = b"<feed><title>bare</title><entry><id>1</id></entry></feed>"
    assert parse(prefixed).title == "prefixed"
    assert len(parse(prefixed).items) == 1
    assert parse(bare).title == "bare"
    assert len(parse(bare).items) == 1


def test_truncated_xml_is_fatal():
    xml = _feed("<entry><id>1</id></entry>")[:-20]
    with pytest.raises(FeedParseError):
        parse(xml)


def test_wrong_root_is_fatal():
    xml = b'<?xml version="1.0"?><rss version="2.0"><channel></channel></rss>'
    with pytest.raises(FeedParseError, match="RSS"):
        parse(xml)


def test_html_is_fatal():
    with pytest.raises(FeedParseError, match="HTML"):
        parse(b"<!DOCTYPE html><html><body>Not found</body></html>")


def test_empty_content_is_fatal():
    with pytest.raises(FeedParseError, match="Empty"):
        parse(b"   ")


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse(b"<feed><entry></feed>")


def test_repeated_entry_elements_keep_last_value():
    xml = _feed(
        """
        <entry>
          <id>a</id><id>b</id>
          <title>old</title><title>new</title>
          <updated>2020-01-01T00:00:00Z</updated><updated>2021-01-01T00:00:00Z</updated>
          <content>first</content><content>second</content>
        </entry>
        <entry><id>b</id><title>later duplicate</title></entry>
        """
    )
    feed = parse(xml)
    assert [item.id for item in feed.items] == ["b"]
    item = feed.items[0]
    assert item.title == "new"
    assert item.content == "second"
    assert item.date == datetime.datetime(2021, 1, 1, tzinfo=datetime.timezone.utc)


def test_repeated_feed_elements_keep_last_value():
    xml = _feed(
        "",
        head="""
        <title>old</title><title>new</title>
        <author><name>Jane</name><email>jane@example.com</email>
          <link rel="me" href="https://example.com/jane"/></author>
        <author><name>John</name>
          <link rel="me" href="https://example.com/john"/></author>
        <image><url>https://example.com/a.png</url><width>10</width></image>
        <image><url>https://example.com/b.png</url></image>
        """,
    )
    feed = parse(xml)
    assert feed.title == "new"
    assert feed.author.name == "John"
    assert feed.author.email == "jane@example.com"
    assert [ext.href for ext in feed.author.extensions] == [
        "https://example.com/jane",
        "https://example.com/john",
    ]
    assert feed.image.url == "https://example.com/b.png"
    assert feed.image.width == 10


def test_root_element_name_is_case_sensitive():
    with pytest.raises(FeedParseError, match="FEED"):
        parse(b'<FEED xmlns="http://www.w3.org/2005/Atom"><title>x</title></FEED>')
