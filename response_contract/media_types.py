"""
Media-type matching between an observed Content-Type and a content table.

Match order, most specific first:
1. the raw header value as declared
2. the bare media type (parameters such as charset stripped)
3. type/*
4. */*

An empty Content-Type only matches */*. A value without a subtype (no "/")
matches only an entry declared under that exact value, never a wildcard.
"""

from typing import Dict, Optional, Tuple, TypeVar

from werkzeug.http import parse_options_header

T = TypeVar('T')


def split_content_type(raw: Optional[str]) -> Tuple[str, Dict[str, str]]:
    """
    Split a Content-Type header into (bare media type, params).

    Examples:
        "application/json; charset=utf-8" -> ("application/json", {"charset": "utf-8"})
        "" -> ("", {})
    """
    if not raw:
        return "", {}
    mimetype, params = parse_options_header(raw)
    return mimetype.strip().lower(), params


def is_json_media_type(mimetype: str) -> bool:
    """application/json and any +json structured syntax suffix."""
    return mimetype == "application/json" or mimetype.endswith("+json")


def _candidates(raw: str):
    if not raw:
        yield "*/*"
        return
    yield raw
    mimetype, _ = split_content_type(raw)
    if mimetype:
        yield mimetype
    if "/" not in mimetype:
        # No subtype: invalid, never falls through to a wildcard
        return
    major = mimetype.split("/", 1)[0]
    yield f"{major}/*"
    yield "*/*"


def match_media_type(content: Dict[str, T], raw: Optional[str]) -> Optional[T]:
    """
    Find the content table entry for an observed Content-Type value.

    Args:
        content: Declared media-type pattern -> entry
        raw: Observed Content-Type header value (may be None or empty)

    Returns:
        The best-matching entry, or None
    """
    if not content:
        return None
    lowered = {pattern.strip().lower(): entry for pattern, entry in content.items()}
    raw = (raw or "").strip()
    for candidate in _candidates(raw):
        entry = content.get(candidate)
        if entry is None:
            entry = lowered.get(candidate.lower())
        if entry is not None:
            return entry
    return None
