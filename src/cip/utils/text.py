"""Text normalization and similarity helpers."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from rapidfuzz import fuzz

CONTAINMENT_SCORE = 0.8

_PHONE_STRIP = re.compile(r"[\s\-().]")
_SCHEME_WWW = re.compile(r"^(https?://)?(www\.)?")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace and trim."""
    return re.sub(r"\s+", " ", text).strip()


def normalize_for_match(text: Optional[str]) -> str:
    """Lowercase and collapse whitespace for comparisons."""
    return normalize_whitespace(text or "").lower()


def normalize_phone(phone: Optional[str]) -> str:
    """Strip spaces, dashes, dots and parentheses from a phone number."""
    return _PHONE_STRIP.sub("", phone or "")


def normalize_website(url: Optional[str]) -> str:
    """Reduce a URL to lowercase hostname + path without a leading www."""
    value = (url or "").strip()
    if not value:
        return ""

    parts = urlsplit(value)
    if parts.scheme and parts.hostname:
        normalized = f"{parts.hostname}{parts.path}".lower()
    else:
        normalized = _SCHEME_WWW.sub("", value.lower()).split("?", 1)[0].split("#", 1)[0]

    normalized = normalized.removeprefix("www.")
    return normalized.rstrip("/")


def contains_either(left: str, right: str) -> bool:
    """Containment in either direction; empty values never match."""
    if not left or not right:
        return False
    return left in right or right in left


def string_similarity(left: Optional[str], right: Optional[str]) -> float:
    """Score two strings in [0, 1].

    Equal strings (ignoring case and whitespace) score 1.0 and containment
    scores 0.8. Anything else falls back to a token-set ratio, capped at the
    containment score so a fuzzy hit never outranks a containment hit.
    """
    s1 = normalize_for_match(left)
    s2 = normalize_for_match(right)

    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return CONTAINMENT_SCORE

    ratio = fuzz.token_set_ratio(s1, s2) / 100.0
    return min(CONTAINMENT_SCORE, max(0.0, ratio))
