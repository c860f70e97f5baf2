"""A byte cursor over a raw message, with the MIME boundary scanning it needs."""

from __future__ import annotations

from collections.abc import Iterator

_ASCII_WHITESPACE = frozenset(b" \t\n\x0c\r")
_HYPHEN = ord("-")
_LF = ord("\n")
_CR = ord("\r")


class MessageStream(Iterator[int]):
    """Forward-only reader over the bytes of a message.

    The position may run past the end of the data while reading; ``offset()``
    always reports it clamped to the data length.
    """

    __slots__ = ("data", "_pos", "_restore_pos")

    def __init__(self, data: bytes | bytearray | memoryview | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.data = bytes(data)
        self._pos = 0
        self._restore_pos = 0

    # -- iteration -----------------------------------------------------------

    def __iter__(self) -> MessageStream:
        return self

    def __next__(self) -> int:
        ch = self.next()
        if ch is None:
            raise StopIteration
        return ch

    def __len__(self) -> int:
        return len(self.data)

    def next(self) -> int | None:
        """Consume and return the next byte, or None at the end."""
        pos = self._pos
        self._pos += 1
        return self.data[pos] if pos < len(self.data) else None

    def peek(self) -> int | None:
        """Return the next byte without consuming it, or None at the end."""
        return self.data[self._pos] if self._pos < len(self.data) else None

    # -- position ------------------------------------------------------------

    def offset(self) -> int:
        """Current position, never beyond the end of the data."""
        return min(self._pos, len(self.data))

    def remaining(self) -> int:
        """Number of bytes left to read."""
        return len(self.data) - self.offset()

    def checkpoint(self) -> None:
        """Remember the current position for a later ``restore``."""
        self._restore_pos = self.offset()

    def restore(self) -> None:
        """Return to the last checkpoint."""
        self._pos = self._restore_pos
        self._restore_pos = 0

    def reset(self) -> None:
        """Forget the last checkpoint."""
        self._restore_pos = 0

    def seek_end(self) -> None:
        """Move to the end of the data."""
        self._pos = len(self.data)

    def is_eof(self) -> bool:
        return self.peek() is None

    # -- lookahead and skipping ---------------------------------------------

    def peek_bytes(self, length: int) -> bytes | None:
        """Return the next ``length`` bytes, or None if fewer remain."""
        pos = self.offset()
        if pos + length > len(self.data):
            return None
        return self.data[pos : pos + length]

    def peek_char(self, ch: int) -> bool:
        return self.peek() == ch

    def skip_bytes(self, length: int) -> None:
        """Advance by ``length`` bytes."""
        new_pos = self._pos + length
        if new_pos > len(self.data):
            raise IndexError("cannot skip past the end of the stream")
        self._pos = new_pos

    def try_skip(self, data: bytes) -> bool:
        """Skip ``data`` if it comes next; report whether it did."""
        if self.peek_bytes(len(data)) == data:
            self.skip_bytes(len(data))
            return True
        return False

    def try_skip_char(self, ch: int) -> bool:
        if self.peek_char(ch):
            self.next()
            return True
        return False

    def slice(self, start: int, end: int) -> bytes:
        return self.data[start:end]

    def next_is_space(self) -> bool:
        return self.next() in (0x20, 0x09)

    def peek_next_is_space(self) -> bool:
        return self.peek() in (0x20, 0x09)

    def try_next_is_space(self) -> bool:
        if self.peek_next_is_space():
            self.next()
            return True
        return False

    # -- MIME boundaries -----------------------------------------------------

    def seek_next_part(self, boundary: bytes) -> bool:
        """Move just past the next ``--boundary``; stay put if there is none."""
        if boundary:
            last_ch = 0
            self.checkpoint()
            while (ch := self.next()) is not None:
                if ch == _HYPHEN and last_ch == _HYPHEN and self.try_skip(boundary):
                    return True
                last_ch = ch
            self.restore()
        return False

    def seek_next_part_offset(self, boundary: bytes) -> int | None:
        """Move past the next ``--boundary`` and return where its line break began."""
        last_ch = _LF
        offset_pos = self.offset()
        self.checkpoint()
        while (ch := self.next()) is not None:
            if ch == _LF:
                offset_pos = self.offset() - (2 if last_ch == _CR else 1)
            elif ch == _HYPHEN and last_ch == _HYPHEN and self.try_skip(boundary):
                return offset_pos
            last_ch = ch
        self.restore()
        return None

    def mime_part(self, boundary: bytes) -> tuple[int | None, bytes]:
        """Read a part body up to ``--boundary``.

        Returns the end offset of the body and the body bytes. With an empty
        boundary the rest of the data is the body. If a boundary is given but
        never found, the position is restored and the end offset is None.
        """
        last_ch = _LF
        before_last_ch = 0
        start_pos = self.offset()
        end_pos = self.offset()

        self.checkpoint()

        while (ch := self.next()) is not None:
            if ch == _LF:
                end_pos = self.offset() - (2 if last_ch == _CR else 1)
            elif (
                ch == _HYPHEN
                and boundary
                and last_ch == _HYPHEN
                and self.try_skip(boundary)
            ):
                if before_last_ch != _LF:
                    end_pos = self.offset() - len(boundary) - 2
                return end_pos, self.slice(start_pos, end_pos)
            before_last_ch = last_ch
            last_ch = ch

        if boundary:
            self.restore()
            return None, self.slice(start_pos, len(self.data))
        return self.offset(), self.slice(start_pos, len(self.data))

    def seek_part_end(self, boundary: bytes | None) -> tuple[int, bool]:
        """Find where the current part ends; report whether a boundary was found."""
        if boundary is None:
            self.seek_end()
            return self.offset(), True

        last_ch = _LF
        before_last_ch = 0
        end_pos = self.offset()
        while (ch := self.next()) is not None:
            if ch == _LF:
                end_pos = self.offset() - (2 if last_ch == _CR else 1)
            elif ch == _HYPHEN and last_ch == _HYPHEN and self.try_skip(boundary):
                if before_last_ch != _LF:
                    end_pos = self.offset() - len(boundary) - 2
                return end_pos, True
            before_last_ch = last_ch
            last_ch = ch
        return self.offset(), False

    def is_multipart_end(self) -> bool:
        """After a boundary: True if it is the closing ``--``, skipping the line end otherwise."""
        self.checkpoint()
        a = self.next()
        b = self.peek()
        if a == _CR and b == _LF:
            self.next()
            return False
        if a == _HYPHEN and b == _HYPHEN:
            self.next()
            return True
        if a == _LF:
            return False
        if a is not None and a in _ASCII_WHITESPACE:
            self.skip_crlf()
            return False
        self.restore()
        return False

    def skip_crlf(self) -> None:
        """Skip blanks and carriage returns up to and including one line feed."""
        while (ch := self.peek()) is not None:
            if ch in (_CR, 0x20, 0x09):
                self.next()
            elif ch == _LF:
                self.next()
                break
            else:
                break