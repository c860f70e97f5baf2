import pytest

from mimescan.stream import MessageStream


def test_iteration_yields_all_bytes():
    data = b"abc"
    assert list(MessageStream(data)) == list(data)


def test_len_and_remaining():
    data = b"hello world"
    stream = MessageStream(data)
    assert len(stream) == len(data)
    stream.next()
    assert stream.remaining() == len(data) - 1


def test_str_input_is_utf8():
    stream = MessageStream("é")
    assert stream.data == "é".encode("utf-8")


def test_next_past_end_keeps_offset_clamped():
    data = b"ab"
    stream = MessageStream(data)
    for _ in range(5):
        stream.next()
    assert stream.next() is None
    assert stream.offset() == len(data)
    assert stream.is_eof()


def test_checkpoint_restore_round_trip():
    data = b"abcdef"
    stream = MessageStream(data)
    stream.next()
    stream.checkpoint()
    before = stream.offset()
    stream.next()
    stream.next()
    stream.restore()
    assert stream.offset() == before
    assert stream.peek() == data[before]


def test_peek_bytes_and_try_skip():
    data = b"boundary rest"
    stream = MessageStream(data)
    assert stream.peek_bytes(len(data) + 1) is None
    assert stream.peek_bytes(8) == data[:8]
    assert not stream.try_skip(b"other")
    assert stream.offset() == 0
    assert stream.try_skip(b"boundary")
    assert stream.offset() == len(b"boundary")


def test_skip_bytes_past_end_raises():
    stream = MessageStream(b"ab")
    with pytest.raises(IndexError):
        stream.skip_bytes(3)


def test_space_helpers():
    stream = MessageStream(b" \tx")
    assert stream.try_next_is_space()
    assert stream.next_is_space()
    assert not stream.peek_next_is_space()
    assert stream.try_skip_char(ord("x"))
    assert stream.is_eof()


def test_seek_next_part_found():
    data = b"preamble\n--b\nbody"
    stream = MessageStream(data)
    assert stream.seek_next_part(b"b")
    assert stream.offset() == data.index(b"--b") + len(b"--b")


def test_seek_next_part_missing_restores():
    stream = MessageStream(b"no parts here")
    stream.next()
    assert not stream.seek_next_part(b"b")
    assert stream.offset() == 1
    assert not stream.seek_next_part(b"")


def test_seek_next_part_offset():
    data = b"line1\r\n--b\r\nmore"
    stream = MessageStream(data)
    assert stream.seek_next_part_offset(b"b") == data.index(b"\r\n")
    assert stream.offset() == data.index(b"--b") + len(b"--b")


def test_seek_next_part_offset_missing():
    stream = MessageStream(b"nothing")
    assert stream.seek_next_part_offset(b"b") is None
    assert stream.offset() == 0


@pytest.mark.parametrize("newline", [b"\n", b"\r\n"])
def test_mime_part_stops_before_boundary_line(newline):
    body = b"hello" + newline + b"world"
    data = body + newline + b"--b--"
    stream = MessageStream(data)
    end, content = stream.mime_part(b"b")
    assert content == body
    assert end == len(body)
    assert stream.offset() == data.index(b"--b") + len(b"--b")


def test_mime_part_without_boundary_takes_everything():
    data = b"whole\nbody"
    stream = MessageStream(data)
    assert stream.mime_part(b"") == (len(data), data)


def test_mime_part_missing_boundary_reports_problem():
    data = b"header\nbody text"
    stream = MessageStream(data)
    stream.skip_bytes(len(b"header\n"))
    end, content = stream.mime_part(b"b")
    assert end is None
    assert content == b"body text"
    assert stream.offset() == len(b"header\n")


def test_seek_part_end_without_boundary():
    data = b"anything"
    stream = MessageStream(data)
    assert stream.seek_part_end(None) == (len(data), True)
    assert stream.is_eof()


def test_seek_part_end_with_boundary():
    data = b"text\n--b\nrest"
    stream = MessageStream(data)
    assert stream.seek_part_end(b"b") == (data.index(b"\n"), True)


def test_seek_part_end_boundary_missing():
    data = b"text only"
    stream = MessageStream(data)
    assert stream.seek_part_end(b"b") == (len(data), False)


def test_is_multipart_end_closing():
    data = b"--\n"
    stream = MessageStream(data)
    assert stream.is_multipart_end()
    assert stream.offset() == 2


def test_is_multipart_end_crlf():
    data = b"\r\nNext"
    stream = MessageStream(data)
    assert not stream.is_multipart_end()
    assert stream.offset() == data.index(b"N")


def test_is_multipart_end_trailing_blanks():
    data = b"  \t\nNext"
    stream = MessageStream(data)
    assert not stream.is_multipart_end()
    assert stream.offset() == data.index(b"N")


def test_is_multipart_end_other_restores():
    stream = MessageStream(b"xyz")
    assert not stream.is_multipart_end()
    assert stream.offset() == 0


def test_skip_crlf_consumes_one_line_feed():
    data = b" \r\t\n\nX"
    stream = MessageStream(data)
    stream.skip_crlf()
    assert stream.offset() == data.index(b"\n") + 1