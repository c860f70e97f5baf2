import pytest

from mimescan.model import (
    BodyKind,
    ContentType,
    Encoding,
    Header,
    Message,
    MessagePart,
    parse_content_type,
)


def test_parse_multipart_boundary():
    ct = parse_content_type('multipart/mixed; boundary="festivus";')
    assert ct.ctype == "multipart"
    assert ct.subtype == "mixed"
    assert ct.attribute("boundary") == "festivus"


def test_type_and_names_are_lowercased():
    ct = parse_content_type('Text/HTML; CharSet="us-ascii"')
    assert (ct.ctype, ct.subtype) == ("text", "html")
    assert ct.attribute("charset") == "us-ascii"
    assert ct.has_attribute("CHARSET")
    assert not ct.has_attribute("name")


def test_rfc2231_continuations():
    ct = parse_content_type(
        "image/gif; name*1=\"about \"; name*0=\"Book \";\n"
        "              name*2*=utf-8''%e2%98%95 tables.gif"
    )
    assert ct.attribute("name") == "Book about ☕ tables.gif"


def test_rfc2231_single_extended():
    ct = parse_content_type("application/octet-stream; name*=utf-8''%e2%98%95.bin")
    assert ct.attribute("name") == "☕.bin"


def test_quoted_value_with_semicolon_and_escape():
    ct = parse_content_type('text/plain; name="a;b \\"c\\""')
    assert ct.attribute("name") == 'a;b "c"'


def test_disposition_is_attachment():
    ct = parse_content_type("attachment; filename=x.txt")
    assert ct.is_attachment()
    assert ct.subtype is None
    assert ct.attribute("filename") == "x.txt"
    assert not parse_content_type("inline").is_attachment()


def test_empty_content_type():
    assert parse_content_type("") is None
    assert parse_content_type("  ; charset=utf-8") is None


def test_header_lookup_case_insensitive_and_last_wins():
    part = MessagePart(
        headers=[
            Header("Subject", "first"),
            Header("subject", "second"),
            Header("Content-Type", parse_content_type("text/plain")),
        ]
    )
    assert part.header_value("SUBJECT") == "second"
    assert part.header_value("X-Missing") is None
    assert part.content_type().subtype == "plain"


def test_content_type_absent_when_not_parsed():
    part = MessagePart(headers=[Header("Content-Type", "garbage")])
    assert part.content_type() is None


@pytest.mark.parametrize(
    "kind, body, expected",
    [
        (BodyKind.TEXT, "héllo", len("héllo".encode("utf-8"))),
        (BodyKind.HTML, "<p>x</p>", len("<p>x</p>")),
        (BodyKind.BINARY, b"\x00\x01\x02", 3),
        (BodyKind.INLINE_BINARY, b"abcd", 4),
        (BodyKind.MULTIPART, [1, 2], 0),
    ],
)
def test_part_len(kind, body, expected):
    assert len(MessagePart(kind=kind, body=body)) == expected


def test_part_len_of_nested_message():
    nested = Message(raw_message=b"Subject: x\n\nbody")
    part = MessagePart(kind=BodyKind.MESSAGE, body=nested)
    assert len(part) == len(b"Subject: x\n\nbody")


def test_message_accessors():
    top = MessagePart(headers=[Header("Subject", "hello")])
    text = MessagePart(kind=BodyKind.TEXT, body="plain")
    html = MessagePart(kind=BodyKind.HTML, body="<b>x</b>")
    attach = MessagePart(kind=BodyKind.BINARY, body=b"data", encoding=Encoding.BASE64)
    msg = Message(
        text_body=[1], html_body=[2], attachments=[3], parts=[top, text, html, attach]
    )
    assert not msg.is_empty()
    assert msg.header_value("subject") == "hello"
    assert msg.headers() == top.headers
    assert msg.text_part(0) is text
    assert msg.html_part(0) is html
    assert msg.attachment(0) is attach
    assert msg.attachment(0).encoding is Encoding.BASE64
    assert msg.text_part(1) is None
    assert msg.part(4) is None
    assert msg.part(-1) is None


def test_empty_message():
    msg = Message()
    assert msg.is_empty()
    assert msg.headers() == []
    assert msg.header_value("Subject") is None
    assert msg.attachment(0) is None


def test_content_type_default_attributes_independent():
    a = ContentType("text")
    b = ContentType("text")
    a.attributes["x"] = "1"
    assert b.attribute("x") is None
    assert a.attribute("X") == "1"