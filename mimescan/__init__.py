"""Best-effort parsing of RFC 5322 and MIME e-mail messages, with text and HTML truncation."""

__version__ = "0.1.0"
__all__ = ["model", "parser", "preview", "stream"]