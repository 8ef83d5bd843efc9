"""Filesystem-safe naming helpers for client folders."""

from __future__ import annotations

import re
import unicodedata

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def _strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(value: str) -> str:
    """Turn an arbitrary display name into a folder slug.

    ``"Amira Belkacem"`` -> ``"amira-belkacem"``, ``"Élodie  d'Arc"`` ->
    ``"elodie-darc"``.  Pure and idempotent; may return an empty string when
    nothing usable is left.
    """
    ascii_only = _strip_accents(value).encode("ascii", "ignore").decode("ascii")
    cleaned = _NON_WORD.sub("", ascii_only).strip()
    return _SEPARATORS.sub("-", cleaned).strip("-").lower()


def display_name_from_slug(slug: str) -> str:
    """``"jean_paul-dupont"`` -> ``"Jean Paul Dupont"``."""
    words = _SEPARATORS.sub(" ", slug).split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def name_sort_key(name: str) -> str:
    """Accent- and case-insensitive collation key for client names."""
    return _strip_accents(name).casefold()
