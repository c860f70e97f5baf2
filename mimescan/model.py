"""Data model of a parsed message: parts, headers, content types and bodies."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Union
from urllib.parse import unquote_to_bytes

__all__ = [
    "Encoding",
    "BodyKind",
    "ContentType",
    "parse_content_type",
    "Header",
    "MessagePart",
    "Message",
]


class Encoding(Enum):
    """Content-Transfer-Encoding applied to a part body."""

    NONE = "none"
    QUOTED_PRINTABLE = "quoted-printable"
    BASE64 = "base64"


class BodyKind(Enum):
    """What a part body holds."""

    TEXT = "text"
    HTML = "html"
    BINARY = "binary"
    INLINE_BINARY = "inline_binary"
    MESSAGE = "message"
    MULTIPART = "multipart"


@dataclass
class ContentType:
    """A parsed Content-Type or Content-Disposition value."""

    ctype: str
    subtype: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)

    def attribute(self, name: str) -> str | None:
        """Value of the named parameter, or None."""
        return self.attributes.get(name.lower())

    def has_attribute(self, name: str) -> bool:
        return name.lower() in self.attributes

    def is_attachment(self) -> bool:
        """True for a disposition of ``attachment``."""
        return self.ctype.lower() == "attachment"


_CONTINUATION = re.compile(r"^(?P<name>[^*]+)\*(?P<index>\d+)(?P<ext>\*)?$")
_EXTENDED_PREFIX = re.compile(r"^(?P<charset>[^']*)'(?P<lang>[^']*)'(?P<rest>.*)$", re.S)


def _split_params(value: str) -> list[str]:
    """Split on semicolons that are not inside double quotes."""
    items: list[str] = []
    current: list[str] = []
    in_quotes = False
    escaped = False
    for ch in value:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\" and in_quotes:
            current.append(ch)
            escaped = True
        elif ch == '"':
            current.append(ch)
            in_quotes = not in_quotes
        elif ch == ";" and not in_quotes:
            items.append("".join(current))
            current = []
        else:
            current.append(ch)
    items.append("".join(current))
    return items


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        inner = value[1:-1]
        return re.sub(r"\\(.)", r"\1", inner, flags=re.S)
    return value


def _decode_extended(value: str, charset: str | None) -> tuple[str, str | None]:
    """Percent-decode an RFC 2231 extended value; return the text and charset in force."""
    match = _EXTENDED_PREFIX.match(value)
    if match:
        charset = match.group("charset") or charset
        value = match.group("rest")
    raw = unquote_to_bytes(value)
    try:
        text = raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        text = raw.decode("utf-8", errors="replace")
    return text, charset


def parse_content_type(value: str) -> ContentType | None:
    """Parse ``type/subtype; name=value; ...``; None if no type is present."""
    items = _split_params(value)
    head = items[0].strip()
    if not head:
        return None
    ctype, sep, subtype = head.partition("/")
    ctype = ctype.strip().lower()
    if not ctype:
        return None
    sub = subtype.strip().lower() if sep else None

    attributes: dict[str, str] = {}
    continuations: dict[str, list[tuple[int, bool, str]]] = {}
    for item in items[1:]:
        name, eq, raw_value = item.partition("=")
        name = name.strip().lower()
        if not name or not eq:
            continue
        cont = _CONTINUATION.match(name)
        if cont:
            extended = cont.group("ext") is not None
            text = raw_value.strip() if extended else _unquote(raw_value)
            continuations.setdefault(cont.group("name"), []).append(
                (int(cont.group("index")), extended, text)
            )
        elif name.endswith("*"):
            text, _ = _decode_extended(_unquote(raw_value), None)
            attributes[name[:-1]] = text
        else:
            attributes[name] = _unquote(raw_value)

    for name, segments in continuations.items():
        charset: str | None = None
        pieces = []
        for _, extended, text in sorted(segments, key=lambda s: s[0]):
            if extended:
                text, charset = _decode_extended(text, charset)
            pieces.append(text)
        attributes[name] = "".join(pieces)

    return ContentType(ctype, sub or None, attributes)


HeaderValue = Union[str, ContentType, None]


@dataclass
class Header:
    """One header field with its value and its byte offsets in the raw message."""

    name: str
    value: HeaderValue
    offset_field: int = 0
    offset_start: int = 0
    offset_end: int = 0

    def matches(self, name: str) -> bool:
        return self.name.lower() == name.lower()


def _find_header(headers: list[Header], name: str) -> HeaderValue:
    for header in reversed(headers):
        if header.matches(name):
            return header.value
    return None


PartBody = Union[str, bytes, "Message", list]


@dataclass
class MessagePart:
    """A single MIME part."""

    headers: list[Header] = field(default_factory=list)
    encoding: Encoding = Encoding.NONE
    is_encoding_problem: bool = False
    kind: BodyKind = BodyKind.MULTIPART
    body: PartBody = field(default_factory=list)
    offset_header: int = 0
    offset_body: int = 0
    offset_end: int = 0

    def header_value(self, name: str) -> HeaderValue:
        """Value of the named header (case-insensitive), or None."""
        return _find_header(self.headers, name)

    def content_type(self) -> ContentType | None:
        value = self.header_value("Content-Type")
        return value if isinstance(value, ContentType) else None

    def __len__(self) -> int:
        if self.kind in (BodyKind.TEXT, BodyKind.HTML):
            return len(self.body.encode("utf-8"))
        if self.kind in (BodyKind.BINARY, BodyKind.INLINE_BINARY):
            return len(self.body)
        if self.kind is BodyKind.MESSAGE:
            return len(self.body.raw_message)
        return 0


@dataclass
class Message:
    """A parsed message: its parts and the indexes of body and attachment parts."""

    html_body: list[int] = field(default_factory=list)
    text_body: list[int] = field(default_factory=list)
    attachments: list[int] = field(default_factory=list)
    parts: list[MessagePart] = field(default_factory=list)
    raw_message: bytes = b""

    def is_empty(self) -> bool:
        """True if no part, and so no header, was parsed."""
        return not self.parts

    def headers(self) -> list[Header]:
        """Top-level header fields."""
        return self.parts[0].headers if self.parts else []

    def header_value(self, name: str) -> HeaderValue:
        return _find_header(self.headers(), name)

    def part(self, index: int) -> MessagePart | None:
        return self.parts[index] if 0 <= index < len(self.parts) else None

    def _indexed(self, ids: list[int], index: int) -> MessagePart | None:
        if 0 <= index < len(ids):
            return self.part(ids[index])
        return None

    def text_part(self, index: int) -> MessagePart | None:
        return self._indexed(self.text_body, index)

    def html_part(self, index: int) -> MessagePart | None:
        return self._indexed(self.html_body, index)

    def attachment(self, index: int) -> MessagePart | None:
        return self._indexed(self.attachments, index)