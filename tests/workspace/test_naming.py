from __future__ import annotations

import re

import pytest

from dossier.workspace.naming import display_name_from_slug, name_sort_key, slugify

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Amira Belkacem", "amira-belkacem"),
        ("Élodie  d'Arc", "elodie-darc"),
        ("  --Jean__Paul--  ", "jean-paul"),
        ("Ñandú & Co.", "nandu-co"),
        ("dupont", "dupont"),
    ],
)
def test_slugify(value: str, expected: str) -> None:
    assert slugify(value) == expected


@pytest.mark.parametrize(
    "value",
    ["Zoë Ångström", "東京 office", "a/b\\c", "  ", "Ünïcödé---Tëst", "Ωmega 42", "x\ty\nz", "🙂 smile"],
)
def test_slugify_is_idempotent_and_ascii(value: str) -> None:
    slug = slugify(value)
    assert slugify(slug) == slug
    assert slug == "" or SLUG_RE.match(slug)
    assert slug.isascii()


def test_slugify_can_return_empty() -> None:
    assert slugify("!!!") == ""


def test_display_name_from_slug() -> None:
    assert display_name_from_slug("jean_paul-dupont") == "Jean Paul Dupont"
    assert display_name_from_slug("") == ""


def test_name_sort_key_ignores_accents_and_case() -> None:
    names = ["zoe", "Émile", "adam", "Eric"]
    assert sorted(names, key=name_sort_key) == ["adam", "Émile", "Eric", "zoe"]
