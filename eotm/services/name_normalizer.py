"""Person-name canonicalization used to join directory and roster records."""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize(text: str | None) -> str:
    """Strip diacritics, lowercase and collapse non-alphanumeric runs to one space.

    >>> normalize("  Pérez-López, ANA ")
    'perez lopez ana'
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub(" ", stripped.lower()).strip()


def tokens(text: str | None) -> list[str]:
    return normalize(text).split()


def build_key(text: str | None) -> str:
    """Order-independent key: "John Smith" and "Smith John" share a key."""
    return " ".join(sorted(tokens(text)))


def _split_last_first(name: str) -> tuple[str, str] | None:
    parts = name.split(",")
    if len(parts) != 2:
        return None
    return parts[0].strip(), parts[1].strip()


def candidate_keys(raw_name: str | None) -> set[str]:
    """Keys for the name as written and, for "Last, First", the flipped order."""
    cleaned = (raw_name or "").strip()
    if not cleaned:
        return set()

    keys = {build_key(cleaned)}
    split = _split_last_first(cleaned)
    if split:
        last, first = split
        keys.add(build_key(f"{first} {last}"))
    return {key for key in keys if key}


def to_display_order(name: str) -> str:
    """Turn "Last, First" into "First Last"; other forms are returned trimmed."""
    cleaned = name.strip()
    split = _split_last_first(cleaned)
    if not split:
        return cleaned
    last, first = split
    return f"{first} {last}".strip()


def capitalize_words(name: str | None) -> str | None:
    if not name or not name.strip():
        return name.strip() if name else name
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split())


def full_name(first: str | None, middle: str | None = None, last: str | None = None) -> str:
    parts = [capitalize_words(part) for part in (first, middle, last) if part and part.strip()]
    return " ".join(p for p in parts if p)
