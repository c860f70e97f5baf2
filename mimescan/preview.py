"""Length-limited previews of plain text and HTML, measured in UTF-8 bytes."""

from __future__ import annotations

_ELLIPSIS = "..."


def _utf8_len(ch: str) -> int:
    return len(ch.encode("utf-8"))


def preview_text(text: str, max_len: int) -> str:
    """Cut ``text`` to at most ``max_len`` UTF-8 bytes, adding "..." when room allows."""
    if len(text.encode("utf-8")) <= max_len:
        return text
    add_dots = max_len > 6
    if add_dots:
        max_len -= len(_ELLIPSIS)
    kept = []
    size = 0
    for ch in text:
        ch_len = _utf8_len(ch)
        if size + ch_len > max_len:
            break
        kept.append(ch)
        size += ch_len
    result = "".join(kept)
    return result + _ELLIPSIS if add_dots else result


def truncate_text(text: str, max_len: int) -> str:
    """Same as ``preview_text``."""
    return preview_text(text, max_len)


def truncate_html(html: str, max_len: int) -> str:
    """Cut ``html`` to at most ``max_len`` UTF-8 bytes without splitting a tag."""
    raw = html.encode("utf-8")
    if len(raw) <= max_len:
        return html
    add_dots = max_len > 6
    if add_dots:
        max_len -= len(_ELLIPSIS)

    in_tag = False
    in_comment = False
    last_tag_end_pos = 0
    pos = 0
    for ch in html:
        set_last_tag = 0
        if ch == "<" and not in_tag:
            in_tag = True
            if raw[pos + 1 : pos + 4] == b"!--":
                in_comment = True
            set_last_tag = pos
        elif ch == ">" and in_tag:
            if in_comment:
                if pos >= 2 and raw[pos - 2 : pos] == b"--":
                    in_comment = False
                    in_tag = False
                    set_last_tag = pos + 1
            else:
                in_tag = False
                set_last_tag = pos + 1

        ch_len = _utf8_len(ch)
        if ch_len + pos > max_len:
            cut = (
                last_tag_end_pos
                if (in_tag or set_last_tag > 0) and last_tag_end_pos > 0
                else pos
            )
            result = raw[:cut].decode("utf-8")
            return result + _ELLIPSIS if add_dots else result
        if set_last_tag > 0:
            last_tag_end_pos = set_last_tag
        pos += ch_len
    return ""