# mimescan

mimescan parses raw RFC 5322 e-mail messages and their MIME structure. It
makes a best effort with malformed input: it does not raise on a broken
message, and it returns whatever it could read as long as a header was found.

## Features

- Walks nested `multipart/*` bodies and splits them on their boundaries.
- Parses embedded `message/rfc822` and `message/global` parts into nested
  messages, up to a fixed nesting depth (`MAX_NESTED_ENCODED`, 3).
- Decodes `base64` and `quoted-printable` transfer encodings and applies the
  declared charset to text parts, falling back to lenient UTF-8.
- Decodes RFC 2047 encoded words in header values, and parses
  `Content-Type` and `Content-Disposition` into a `ContentType`, including
  RFC 2231 continued and percent-encoded parameters.
- Sorts the parts into the text body, the HTML body and the attachments,
  following how mail clients choose between `multipart/alternative` parts.
- Records the byte offsets of every part's header, body and end.
- Truncates text and HTML to a byte limit without cutting a character or
  a tag in half.

## Installation

```
pip install mimescan
```

## Parsing a message

```python
from mimescan.parser import MessageParser

raw = (
    b"From: sender@example.com\r\n"
    b"Subject: Hello\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"Hi there!\r\n"
)

message = MessageParser().parse(raw)
print(message.header_value("Subject"))    # Hello
print(repr(message.text_part(0).body))    # 'Hi there!\r\n'
```

`MessageParser.parse` accepts `bytes`, `bytearray` or `str`. It returns a
`mimescan.model.Message`, or `None` when no header could be read.
`MessageParser.parse_headers` reads only the top-level header block.

A `Message` has:

- `parts`: every `MessagePart`, in the order the parts appear; part 0 is the
  message itself.
- `text_body`, `html_body` and `attachments`: indexes into `parts`, reached
  most easily through `text_part(i)`, `html_part(i)` and `attachment(i)`,
  which return `None` for an index out of range.
- `raw_message`, `is_empty()`, `headers()` and `header_value(name)`.

Each `MessagePart` has `headers` (a list of `Header`), an `Encoding`, a
`BodyKind` and a `body`: a `str` for text and HTML, `bytes` for binary
parts, a list of sub-part indexes for a multipart, or a nested `Message`.
It also has `offset_header`, `offset_body`, `offset_end` and an
`is_encoding_problem` flag. `header_value(name)` looks a header up without
regard to case, the last occurrence winning; `content_type()` returns the
parsed `ContentType` or `None`; `len(part)` is the size of its body in bytes.

`ContentType` has `ctype`, `subtype` and `attributes`, with
`attribute(name)`, `has_attribute(name)` and `is_attachment()`.
`mimescan.model.parse_content_type` parses such a value on its own.

The lower-level pieces are public too: `mimescan.parser.parse_header_block`,
`decode_base64_mime`, `decode_quoted_printable_mime` and `decode_charset`,
and `mimescan.stream.MessageStream`, the byte cursor that does the boundary
scanning.

## Truncating text and HTML

```python
from mimescan.preview import truncate_text, truncate_html

truncate_text("A rather long sentence that goes on", 20)  # 'A rather long sen...'
truncate_html("<html>hello<br/>world<br/></html>", 25)    # '<html>hello<br/>world...'
```

Both limit the result to `max_len` bytes of UTF-8. When `max_len` is
greater than 6, they append `...` to text that was cut. `preview_text` is
the same as `truncate_text`.

## What it does not do

- Header values other than `Content-Type` and `Content-Disposition` are kept
  as decoded text: addresses, address groups and dates are not parsed.
- HTML is not converted to text, and text is not converted to HTML. When a
  `multipart/alternative` has only one of the two, the same part is listed
  as both the text and the HTML body, unchanged.
- There is no command-line tool; the package is a library only.

## Running the tests

```
pip install -e .[test]
pytest
```