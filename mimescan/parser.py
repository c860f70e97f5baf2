"""Parsing of raw RFC 5322 messages into a tree of MIME parts."""

from __future__ import annotations

import base64
import binascii
import codecs
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto

from .model import (
    BodyKind,
    ContentType,
    Encoding,
    Header,
    Message,
    MessagePart,
    parse_content_type,
)
from .stream import MessageStream

__all__ = [
    "MAX_NESTED_ENCODED",
    "MessageParser",
    "decode_base64_mime",
    "decode_charset",
    "decode_quoted_printable_mime",
    "parse_header_block",
]

MAX_NESTED_ENCODED = 3

_LF = ord("\n")
_CR = ord("\r")
_BLANKS = (0x20, 0x09)
_WHITESPACE = b" \t\r\n\x0b\x0c"

_FIELD_NAME = re.compile(rb"[!-9;-~]+")
_UNFOLD = re.compile(rb"\r?\n(?=[ \t])")
_BASE64_BODY = re.compile(rb"[A-Za-z0-9+/]*")
_ENCODED_WORD = re.compile(r"=\?([^?\s]+)\?([bBqQ])\?([^?\s]*)\?=")
_BETWEEN_WORDS = re.compile(r"(\?=)\s+(?==\?)")
_STRUCTURED = frozenset({"content-type", "content-disposition"})

DecodeFn = Callable[[MessageStream, bytes], "tuple[int | None, bytes]"]


def decode_charset(data: bytes, charset: str | None) -> str:
    """Decode ``data`` with the named charset, falling back to lenient UTF-8."""
    if charset:
        name = charset.strip().strip('"').lower()
        try:
            codec = codecs.lookup(name)
            return data.decode(codec.name, errors="replace")
        except LookupError:
            pass
    return data.decode("utf-8", errors="replace")


def _decode_word(match: re.Match[str]) -> str:
    charset = match.group(1).split("*", 1)[0]
    kind = match.group(2).lower()
    payload = match.group(3)
    if kind == "b":
        raw = payload.encode("ascii", errors="ignore").rstrip(b"=")
        raw += b"=" * (-len(raw) % 4)
        try:
            data = base64.b64decode(raw)
        except (binascii.Error, ValueError):
            return match.group(0)
    else:
        data = binascii.a2b_qp(payload.encode("ascii", errors="ignore"), header=True)
    return decode_charset(data, charset)


def _decode_encoded_words(text: str) -> str:
    """Decode RFC 2047 encoded words, joining adjacent ones."""
    if "=?" not in text:
        return text
    return _ENCODED_WORD.sub(_decode_word, _BETWEEN_WORDS.sub(r"\1", text))


def _field_end(data: bytes, start: int) -> int:
    """Index just past a header field, continuation lines included."""
    pos = start
    while True:
        nl = data.find(b"\n", pos)
        if nl == -1:
            return len(data)
        pos = nl + 1
        if pos >= len(data) or data[pos] not in _BLANKS:
            return pos


def _header_value(name: str, raw_value: bytes) -> str | ContentType:
    text = _UNFOLD.sub(b"", raw_value).decode("utf-8", errors="replace").strip()
    if name.lower() in _STRUCTURED:
        parsed = parse_content_type(text)
        if parsed is not None:
            return ContentType(
                parsed.ctype,
                parsed.subtype,
                {k: _decode_encoded_words(v) for k, v in parsed.attributes.items()},
            )
        return text
    return _decode_encoded_words(text)


def parse_header_block(stream: MessageStream) -> tuple[list[Header], bool]:
    """Read header fields up to the blank line that ends them.

    Returns the fields read and whether a body follows. A line that is not a
    header field ends the block; if no field was read at all the stream is
    left where it was and False is returned.
    """
    headers: list[Header] = []
    data = stream.data
    while True:
        start = stream.offset()
        ch = stream.peek()
        if ch is None:
            return headers, False
        if ch == _LF:
            stream.next()
            return headers, True
        if ch == _CR and stream.peek_bytes(2) == b"\r\n":
            stream.skip_bytes(2)
            return headers, True

        end = _field_end(data, start)
        line = data[start:end]
        colon = line.find(b":")
        name = line[:colon].rstrip(b" \t") if colon > 0 else b""
        if not name or not _FIELD_NAME.fullmatch(name):
            return headers, bool(headers)

        field_name = name.decode("ascii")
        headers.append(
            Header(
                field_name,
                _header_value(field_name, line[colon + 1 :]),
                offset_field=start,
                offset_start=start + colon + 1,
                offset_end=end,
            )
        )
        stream.skip_bytes(end - start)


def _decode_base64(raw: bytes) -> bytes:
    cleaned = bytes(c for c in raw if c not in _WHITESPACE)
    body = cleaned.partition(b"=")[0]
    if not _BASE64_BODY.fullmatch(body) or len(body) % 4 == 1:
        raise ValueError("invalid base64 data")
    return base64.b64decode(body + b"=" * (-len(body) % 4))


def decode_base64_mime(stream: MessageStream, boundary: bytes) -> tuple[int | None, bytes]:
    """Read and base64-decode a part body; end offset None if it cannot be read."""
    end, raw = stream.mime_part(boundary)
    if end is None:
        return None, b""
    try:
        return end, _decode_base64(raw)
    except (ValueError, binascii.Error):
        stream.restore()
        return None, b""


def decode_quoted_printable_mime(
    stream: MessageStream, boundary: bytes
) -> tuple[int | None, bytes]:
    """Read and quoted-printable-decode a part body; end offset None if not found."""
    end, raw = stream.mime_part(boundary)
    if end is None:
        return None, b""
    return end, binascii.a2b_qp(raw)


def _plain_part(stream: MessageStream, boundary: bytes) -> tuple[int | None, bytes]:
    return stream.mime_part(boundary)


class _Mime(Enum):
    MULTIPART_MIXED = auto()
    MULTIPART_ALTERNATIVE = auto()
    MULTIPART_RELATED = auto()
    MULTIPART_DIGEST = auto()
    TEXT_PLAIN = auto()
    TEXT_HTML = auto()
    TEXT_OTHER = auto()
    INLINE = auto()
    MESSAGE = auto()
    OTHER = auto()


_MULTIPART_SUBTYPES = {
    "mixed": _Mime.MULTIPART_MIXED,
    "alternative": _Mime.MULTIPART_ALTERNATIVE,
    "related": _Mime.MULTIPART_RELATED,
    "digest": _Mime.MULTIPART_DIGEST,
}


def _classify(
    content_type: ContentType | None, parent: _Mime
) -> tuple[bool, bool, bool, _Mime]:
    """Return (is_multipart, is_inline, is_text, mime type) for a part."""
    if content_type is None:
        if parent is _Mime.MULTIPART_DIGEST:
            return False, False, False, _Mime.MESSAGE
        return False, True, True, _Mime.TEXT_PLAIN
    ctype, subtype = content_type.ctype, content_type.subtype
    if ctype == "multipart":
        return True, False, False, _MULTIPART_SUBTYPES.get(subtype or "", _Mime.OTHER)
    if ctype == "text":
        if subtype == "plain":
            return False, True, True, _Mime.TEXT_PLAIN
        if subtype == "html":
            return False, True, True, _Mime.TEXT_HTML
        return False, False, True, _Mime.TEXT_OTHER
    if ctype in ("image", "audio", "video"):
        return False, True, False, _Mime.INLINE
    if ctype == "message" and subtype in ("rfc822", "global"):
        return False, False, False, _Mime.MESSAGE
    return False, False, False, _Mime.OTHER


def _find(headers: list[Header], name: str):
    for header in reversed(headers):
        if header.matches(name):
            return header.value
    return None


@dataclass
class _State:
    mime_type: _Mime = _Mime.MESSAGE
    mime_boundary: bytes | None = None
    in_alternative: bool = False
    parts: int = 0
    html_parts: int = 0
    text_parts: int = 0
    need_html_body: bool = False
    need_text_body: bool = False
    part_id: int = 0
    sub_part_ids: list[int] = field(default_factory=list)
    offset_header: int = 0
    offset_body: int = 0
    offset_end: int = 0


class MessageParser:
    """Best-effort parser of raw messages; it never raises on malformed input."""

    def parse(self, raw_message: bytes | bytearray | str) -> Message | None:
        """Parse a whole message; None if no header could be read."""
        return self._parse(raw_message, MAX_NESTED_ENCODED, False)

    def parse_headers(self, raw_message: bytes | bytearray | str) -> Message | None:
        """Parse only the top-level header fields."""
        return self._parse(raw_message, MAX_NESTED_ENCODED, True)

    def _parse(
        self, raw_message: bytes | bytearray | str, depth: int, skip_body: bool
    ) -> Message | None:
        stream = MessageStream(raw_message)
        raw = stream.data
        message = Message()
        state = _State(need_html_body=True, need_text_body=True)
        stack: list[tuple[_State, Message | None]] = []
        part_headers: list[Header] = []

        while True:
            state.offset_header = stream.offset()
            part_headers, ok = parse_header_block(stream)
            if not ok:
                break
            state.offset_body = stream.offset()
            if skip_body:
                break

            state.parts += 1
            state.sub_part_ids.append(len(message.parts))

            ct_value = _find(part_headers, "Content-Type")
            content_type = ct_value if isinstance(ct_value, ContentType) else None
            is_multipart, is_inline, is_text, mime = _classify(content_type, state.mime_type)

            if is_multipart and content_type is not None:
                boundary = content_type.attribute("boundary")
                if boundary is not None:
                    boundary_bytes = boundary.encode("utf-8")
                    if stream.seek_next_part(boundary_bytes):
                        new_state = _State(
                            mime_type=mime,
                            mime_boundary=boundary_bytes,
                            in_alternative=state.in_alternative
                            or mime is _Mime.MULTIPART_ALTERNATIVE,
                            html_parts=len(message.html_body),
                            text_parts=len(message.text_body),
                            need_html_body=state.need_html_body,
                            need_text_body=state.need_text_body,
                            part_id=len(message.parts),
                        )
                        message.parts.append(
                            MessagePart(
                                headers=part_headers,
                                offset_header=state.offset_header,
                                offset_body=state.offset_body,
                            )
                        )
                        stack.append((state, None))
                        state = new_state
                        stream.skip_crlf()
                        continue
                    mime = _Mime.TEXT_OTHER
                    is_text = True

            cte = _find(part_headers, "Content-Transfer-Encoding")
            cte = cte.lower() if isinstance(cte, str) else ""
            decode: DecodeFn
            if cte == "base64":
                encoding, decode = Encoding.BASE64, decode_base64_mime
            elif cte == "quoted-printable":
                encoding, decode = Encoding.QUOTED_PRINTABLE, decode_quoted_printable_mime
            else:
                encoding, decode = Encoding.NONE, _plain_part

            if mime is _Mime.MESSAGE and encoding is Encoding.NONE:
                new_state = _State(
                    mime_type=_Mime.MESSAGE,
                    mime_boundary=state.mime_boundary,
                    need_html_body=True,
                    need_text_body=True,
                    part_id=len(message.parts),
                )
                state.mime_boundary = None
                message.attachments.append(len(message.parts))
                message.parts.append(
                    MessagePart(
                        headers=part_headers,
                        encoding=encoding,
                        offset_header=state.offset_header,
                        offset_body=state.offset_body,
                    )
                )
                stack.append((state, message))
                message = Message()
                state = new_state
                continue

            offset_end, data = decode(stream, state.mime_boundary or b"")

            is_encoding_problem = offset_end is None
            if offset_end is None:
                encoding = Encoding.NONE
                mime = _Mime.TEXT_OTHER
                is_inline = False
                is_text = True
                end, boundary_found = stream.seek_part_end(state.mime_boundary)
                state.offset_end = end
                data = raw[state.offset_body : end]
                if not boundary_found:
                    state.mime_boundary = None
            else:
                state.offset_end = offset_end

            part_index = len(message.parts)
            if mime is not _Mime.MESSAGE:
                disposition = _find(part_headers, "Content-Disposition")
                not_attachment = not (
                    isinstance(disposition, ContentType) and disposition.is_attachment()
                )
                is_inline = (
                    is_inline
                    and not_attachment
                    and (
                        state.parts == 1
                        or (
                            state.mime_type is not _Mime.MULTIPART_RELATED
                            and (
                                mime is _Mime.INLINE
                                or content_type is None
                                or not content_type.has_attribute("name")
                            )
                        )
                    )
                )

                if state.mime_type is _Mime.MULTIPART_ALTERNATIVE:
                    add_to_html = mime is _Mime.TEXT_HTML
                    add_to_text = mime is _Mime.TEXT_PLAIN
                elif is_inline:
                    if state.in_alternative and (state.need_text_body or state.need_html_body):
                        if mime is _Mime.TEXT_HTML:
                            state.need_text_body = False
                        elif mime is _Mime.TEXT_PLAIN:
                            state.need_html_body = False
                    add_to_html, add_to_text = state.need_html_body, state.need_text_body
                else:
                    add_to_html = add_to_text = False

                if is_text:
                    charset = content_type.attribute("charset") if content_type else None
                    text = decode_charset(data, charset)
                    is_html = mime is _Mime.TEXT_HTML

                    if add_to_html and not is_html:
                        message.html_body.append(part_index)
                    elif add_to_text and is_html:
                        message.text_body.append(part_index)

                    if add_to_html and is_html:
                        message.html_body.append(part_index)
                    elif add_to_text and not is_html:
                        message.text_body.append(part_index)
                    else:
                        message.attachments.append(part_index)

                    kind, body = (BodyKind.HTML if is_html else BodyKind.TEXT), text
                else:
                    if add_to_html:
                        message.html_body.append(part_index)
                    if add_to_text:
                        message.text_body.append(part_index)
                    message.attachments.append(part_index)
                    kind = BodyKind.INLINE_BINARY if is_inline else BodyKind.BINARY
                    body = data
            else:
                message.attachments.append(part_index)
                nested = self._parse(data, depth - 1, False) if depth != 0 else None
                if nested is not None:
                    nested.raw_message = data
                    kind, body = BodyKind.MESSAGE, nested
                else:
                    is_encoding_problem = True
                    kind, body = BodyKind.BINARY, data

            message.parts.append(
                MessagePart(
                    headers=part_headers,
                    encoding=encoding,
                    is_encoding_problem=is_encoding_problem,
                    kind=kind,
                    body=body,
                    offset_header=state.offset_header,
                    offset_body=state.offset_body,
                    offset_end=state.offset_end,
                )
            )

            if state.mime_boundary is not None:
                finished = False
                while True:
                    if state.mime_type is _Mime.MESSAGE:
                        # A nested message ends here: hand it back to its parent.
                        if not stack:
                            finished = True
                            break
                        prev_state, prev_message = stack.pop()
                        if prev_message is None:
                            finished = True
                            break
                        boundary = state.mime_boundary
                        if boundary is not None:
                            pos = max(stream.offset() - (len(boundary) + 2), 0)
                            if 2 <= pos and pos - 2 < len(raw):
                                end = pos - 2 if raw[pos - 2] == _CR else pos - 1
                            else:
                                end = max(pos - 1, 0)
                        else:
                            end = stream.offset()
                        message.raw_message = raw
                        if state.part_id < len(prev_message.parts):
                            target = prev_message.parts[state.part_id]
                            target.kind = BodyKind.MESSAGE
                            target.body = message
                            target.offset_end = end
                        message = prev_message
                        prev_state.mime_boundary = state.mime_boundary
                        state = prev_state

                    if not stream.is_multipart_end():
                        break

                    if (
                        state.mime_type is _Mime.MULTIPART_ALTERNATIVE
                        and state.need_html_body
                        and state.need_text_body
                    ):
                        # Only HTML found: it serves as the text body too.
                        if state.text_parts == len(message.text_body) and state.html_parts != len(
                            message.html_body
                        ):
                            message.text_body.extend(message.html_body[state.html_parts :])
                        # Only text found: it serves as the HTML body too.
                        if state.html_parts == len(message.html_body) and state.text_parts != len(
                            message.text_body
                        ):
                            message.html_body.extend(message.text_body[state.html_parts :])

                    if state.part_id < len(message.parts):
                        container = message.parts[state.part_id]
                        container.kind = BodyKind.MULTIPART
                        container.body = state.sub_part_ids
                        state.sub_part_ids = []
                        if stack:
                            state = stack.pop()[0]
                            if state.mime_boundary is not None:
                                offset = stream.seek_next_part_offset(state.mime_boundary)
                                if offset is not None:
                                    container.offset_end = offset
                                    continue
                        container.offset_end = stream.offset()
                    finished = True
                    break
                if finished:
                    break
            elif stream.offset() >= len(raw):
                break

        # Recover whatever is possible from an unterminated structure.
        while stack:
            prev_state, prev_message = stack.pop()
            if prev_message is not None:
                message.raw_message = raw
                if state.part_id < len(prev_message.parts):
                    target = prev_message.parts[state.part_id]
                    target.kind = BodyKind.MESSAGE
                    target.body = message
                    target.offset_end = stream.offset()
                message = prev_message
            elif state.part_id < len(message.parts):
                container = message.parts[state.part_id]
                container.offset_end = stream.offset()
                container.kind = BodyKind.MULTIPART
                container.body = state.sub_part_ids
            state = prev_state

        message.raw_message = raw

        if not message.is_empty():
            message.parts[0].offset_end = len(raw)
            return message
        if part_headers:
            message.parts.append(
                MessagePart(
                    headers=part_headers,
                    encoding=Encoding.NONE,
                    is_encoding_problem=True,
                    kind=BodyKind.TEXT,
                    body="",
                    offset_header=0,
                    offset_body=len(raw),
                    offset_end=len(raw),
                )
            )
            return message
        return None