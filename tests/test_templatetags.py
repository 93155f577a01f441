import pytest
from django.test import RequestFactory

from marketplace.context_processors import nav_section
from marketplace.templatetags.marketplace_tags import category_label, price_eur


@pytest.mark.parametrize("value, expected", [
    (29500, "29,500 €"),
    (0, "0 €"),
    (None, "€—"),
    ("", "€—"),
    ("n/a", "€—"),
])
def test_price_eur(value, expected):
    assert price_eur(value) == expected


def test_category_label():
    assert category_label("memorabilia") == "Memorabilia"
    assert category_label("boats") == "boats"


@pytest.mark.parametrize("path, section", [
    ("/", "home"),
    ("/browse/", "browse"),
    ("/listings/abc/", "browse"),
    ("/messages/", "messages"),
    ("/account/listings/", "account"),
    ("/api/threads", ""),
])
def test_nav_section(path, section):
    assert nav_section(RequestFactory().get(path)) == {"nav_section": section}
