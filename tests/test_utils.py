"""
Tests for gastos.utils: slugs, identifier normalization and batch runner.
"""

import asyncio

from gastos.utils import normalize_identifier, run_in_batches, slugify, unique_slug


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------

def test_slugify_strips_accents():
    """Accented names become plain ASCII, lowercased and dash-separated."""
    assert slugify("José Antônio") == "jose-antonio"
    assert slugify("Zé Trovão") == "ze-trovao"


def test_slugify_drops_punctuation_and_collapses_separators():
    """Punctuation is removed; whitespace and underscores collapse to one dash."""
    assert slugify("  Dr. Luiz_Carlos   Motta  ") == "dr-luiz-carlos-motta"
    assert slugify("Coronel Chrisóstomo (PL)") == "coronel-chrisostomo-pl"


def test_slugify_empty_inputs():
    """Empty and missing names slugify to the empty string."""
    assert slugify("") == ""
    assert slugify(None) == ""
    assert slugify("!!!") == ""


def test_slugify_is_idempotent():
    """Slugifying a slug leaves it unchanged."""
    names = ["José Antônio", "Maria do Rosário", "Tabata Amaral", "Célio Studart", "A - B"]
    for name in names:
        once = slugify(name)
        assert slugify(once) == once, f"not idempotent for {name!r}: {once!r}"


def test_slugify_output_alphabet():
    """Slugs only contain lowercase ASCII letters, digits and dashes."""
    allowed = set("abcdefghijklmnopqrstuvwxyz0123456789-")
    for name in ["Ação Çãé 123", "Übermensch", "D'Ávila", "João-Pedro"]:
        slug = slugify(name)
        assert set(slug) <= allowed, f"unexpected characters in {slug!r}"
        assert not slug.startswith("-") and not slug.endswith("-")


# ---------------------------------------------------------------------------
# unique_slug
# ---------------------------------------------------------------------------

def test_unique_slug_free_name():
    """An untaken slug is used as is."""
    assert unique_slug("Maria Silva", 10, lambda s: False) == "maria-silva"


def test_unique_slug_collision_appends_id():
    """A slug held by another deputy gets the deputy id appended."""
    taken = {"maria-silva"}
    assert unique_slug("Maria Silva", 10, taken.__contains__) == "maria-silva-10"


def test_unique_slug_without_usable_name():
    """Names with no slug characters fall back to deputado-<id>."""
    assert unique_slug("", 42, lambda s: False) == "deputado-42"
    assert unique_slug(None, 42, lambda s: False) == "deputado-42"


# ---------------------------------------------------------------------------
# normalize_identifier
# ---------------------------------------------------------------------------

def test_normalize_identifier():
    """Formatting characters are stripped; empty results become None."""
    assert normalize_identifier("12.345.678/0001-90") == "12345678000190"
    assert normalize_identifier("123.456.789-00") == "12345678900"
    assert normalize_identifier(12345678000190) == "12345678000190"
    assert normalize_identifier(" - ") is None
    assert normalize_identifier("") is None
    assert normalize_identifier(None) is None


# ---------------------------------------------------------------------------
# run_in_batches
# ---------------------------------------------------------------------------

def test_run_in_batches_bounds_concurrency_and_isolates_failures():
    """At most batch_size items run at once, batches do not overlap, and a
    failing item does not cancel the others."""
    in_flight = 0
    peak = 0
    finished: list[int] = []

    async def work(i: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001 * (3 - i % 3))
        in_flight -= 1
        if i == 3:
            raise RuntimeError("boom")
        finished.append(i)
        return i * 10

    results = asyncio.run(run_in_batches(list(range(7)), work, 3))

    assert peak <= 3, f"peak concurrency {peak} exceeds batch size"
    assert sorted(finished[:3]) == [0, 1, 2], f"first batch not finished first: {finished}"
    assert sorted(finished[3:5]) == [4, 5], f"second batch interleaved: {finished}"
    assert finished[5] == 6
    assert results[0] == 0 and results[6] == 60
    assert isinstance(results[3], RuntimeError), "failure should be returned in its slot"
