"""Slug generation for directory venues."""

from __future__ import annotations

import re
from collections.abc import Callable

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Turn arbitrary text into a URL slug.

    Lowercases, collapses every run of non-alphanumeric characters into
    a single hyphen and strips leading/trailing hyphens.

    Examples:
        >>> slugify("Jump In! Trampoline Park")
        'jump-in-trampoline-park'
    """
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def venue_base_slug(name: str, city: str | None = None) -> str:
    """
    Build the base slug for a venue from its name and city.

    The city is appended unless it is empty or the name already ends
    with it ("Flip Out London" + "London" stays "flip-out-london").
    """
    name_slug = slugify(name)
    city_slug = slugify(city or "")
    if not city_slug or name_slug == city_slug or name_slug.endswith(f"-{city_slug}"):
        return name_slug or city_slug or "venue"
    if not name_slug:
        return city_slug
    return f"{name_slug}-{city_slug}"


def unique_slug(base: str, exists: Callable[[str], bool]) -> str:
    """
    Find a free slug by appending an incrementing suffix.

    Args:
        base: The preferred slug.
        exists: Predicate telling whether a slug is already taken.

    Returns:
        ``base`` if free, otherwise the first free ``base-1``, ``base-2``, ...
    """
    slug = base
    counter = 1
    while exists(slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug
