"""Small shared helpers: ids, timestamps, slugs."""
import re
import uuid
from datetime import datetime, timezone
from typing import Iterable


def utc_now() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_id() -> str:
    """Random UUID4 string."""
    return str(uuid.uuid4())


def slugify(text: str) -> str:
    """
    Lowercase, URL-safe, hyphenated form of a display name.

    "Design Notes!" -> "design-notes", "  __a  b__ " -> "a-b"
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def unique_slug(base: str, taken: Iterable[str]) -> str:
    """Append -1, -2, ... to base until it no longer collides with taken."""
    taken = set(taken)
    slug = base
    counter = 1
    while slug in taken:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def plural(count: int, noun: str) -> str:
    """'1 member', '3 members'."""
    return f"{count} {noun}{'' if count == 1 else 's'}"
