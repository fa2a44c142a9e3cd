"""Input sanitization for user-supplied text."""

import re
from typing import Optional
from urllib.parse import urlparse

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_HTML_TAG = re.compile(r"<[^>]*>")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_SEARCH_SPECIALS = re.compile(r"[%_;'\"\\]")

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,20}$")
RESERVED_USERNAMES = frozenset({"admin", "moderator", "system", "root", "anonymous"})


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Strip markup and script-like content, keeping newlines.

    Returns None for empty input or when nothing is left after cleanup.
    """
    if not value:
        return None
    cleaned = _SCRIPT_BLOCK.sub("", value.strip())
    cleaned = _HTML_TAG.sub("", cleaned)
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    cleaned = cleaned.replace("\0", "").strip()
    return cleaned or None


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Like sanitize_text but also collapses all whitespace runs to one space."""
    cleaned = sanitize_text(value)
    if cleaned is None:
        return None
    return _WHITESPACE.sub(" ", cleaned)


def sanitize_search_query(value: Optional[str]) -> Optional[str]:
    """Drop LIKE wildcards and quoting characters, cap at 100 characters."""
    if not value:
        return None
    cleaned = _SEARCH_SPECIALS.sub("", value.strip())
    cleaned = re.sub(r"\*+", "*", cleaned)[:100].strip()
    return cleaned or None


def sanitize_username(value: Optional[str]) -> Optional[str]:
    """Return the trimmed username if it is well formed and not reserved."""
    if not value:
        return None
    trimmed = value.strip()
    if not USERNAME_PATTERN.match(trimmed):
        return None
    if trimmed.lower() in RESERVED_USERNAMES:
        return None
    return trimmed


def sanitize_url(value: Optional[str]) -> Optional[str]:
    """Return the URL if it is a well-formed http(s) URL, else None."""
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed.startswith(("http://", "https://")):
        return None
    cleaned = re.sub(r"(?i)javascript:|data:|vbscript:", "", trimmed)
    cleaned = re.sub(r"[<>'\"]", "", cleaned)
    parsed = urlparse(cleaned)
    if not parsed.netloc:
        return None
    return cleaned
