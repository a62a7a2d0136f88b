import pytest

from pagecomposer.utils.slugs import DEFAULT_SLUG, slugify


@pytest.mark.parametrize(
    "name,slug",
    [
        ("About Us", "about-us"),
        ("About Us & Team", "about-us-team"),
        ("  --Payroll   2024--  ", "payroll-2024"),
        ("Nómina", "nmina"),
        ("", DEFAULT_SLUG),
        (None, DEFAULT_SLUG),
        ("!!!", DEFAULT_SLUG),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug
