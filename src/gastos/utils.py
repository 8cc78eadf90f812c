"""
Shared helpers for the extraction scripts and the query layer.

Usage:
    from gastos.utils import configure_utf8, slugify, normalize_identifier, run_in_batches
"""

import asyncio
import re
import sys
import unicodedata
from typing import Any, Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATORS = re.compile(r"[\s_]+")
_NON_DIGITS = re.compile(r"\D")


def configure_utf8() -> None:
    """Force UTF-8 stdout on Windows to avoid cp1252 encoding errors.

    Deputy and supplier names carry accents; call once at the top of every
    entry point. Safe to call multiple times.
    """
    if sys.stdout.encoding != "utf-8":
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")


def slugify(text: str | None) -> str:
    """Return a URL-safe slug for a deputy name.

    Accents are stripped, the result is lowercased, anything that is not an
    ASCII word character, whitespace or dash is dropped, and runs of
    whitespace/underscores become a single dash:

        slugify("José Antônio")  # → "jose-antonio"
        slugify("")              # → ""

    The function is idempotent: slugify(slugify(x)) == slugify(x).
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_SLUG_CHARS.sub("", stripped.lower().strip())
    slug = _SEPARATORS.sub("-", slug)
    return slug.strip("-")


def unique_slug(name: str | None, deputy_id: int, is_taken: Callable[[str], bool]) -> str:
    """Slug for ``name`` that is non-empty and not already taken.

    Falls back to ``deputado-<id>`` for names without any slug characters and
    appends ``-<id>`` when another deputy already holds the plain slug.
    """
    base = slugify(name) or f"deputado-{deputy_id}"
    if not is_taken(base):
        return base
    return f"{base}-{deputy_id}"


def normalize_identifier(value: str | int | None) -> str | None:
    """Digits-only CNPJ/CPF, or None when nothing is left.

        normalize_identifier("12.345.678/0001-90")  # → "12345678000190"
        normalize_identifier(" - ")                 # → None
    """
    if value is None:
        return None
    digits = _NON_DIGITS.sub("", str(value))
    return digits or None


async def run_in_batches(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[Any]],
    batch_size: int,
    *,
    label: str = "item",
) -> list[Any]:
    """Run ``fn`` over ``items`` in concurrent batches of ``batch_size``.

    Every member of a batch must finish (or fail) before the next batch
    starts. A member's exception is printed and returned in its result slot;
    it never cancels the other members.
    """
    results: list[Any] = []
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        outcomes = await asyncio.gather(*(fn(item) for item in batch), return_exceptions=True)
        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                print(f"  {label} {item} FAILED: {outcome!r}")
        results.extend(outcomes)
    return results
