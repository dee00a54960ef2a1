import re
import unicodedata
from typing import Optional

TAG_RE = re.compile(r"<[^>]*>")
LINE_BREAK_RE = re.compile(r"[\r\n]+")


def sanitize(raw: Optional[str]) -> str:
    """Strip tags and line breaks, NFC-normalize and trim free text.

    Applied to every client-supplied field before it is stored or used as
    a lookup key. sanitize(sanitize(x)) == sanitize(x).
    """
    if raw is None:
        return ""
    text = TAG_RE.sub("", str(raw))
    text = LINE_BREAK_RE.sub("", text)
    text = unicodedata.normalize("NFC", text)
    return text.strip()


def decode_identity(raw: Optional[str]) -> str:
    """Re-read a header value decoded as latin-1 as the UTF-8 it was sent as."""
    if raw is None:
        return ""
    try:
        raw = raw.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        # already proper text, or not UTF-8 on the wire
        pass
    return sanitize(raw)
