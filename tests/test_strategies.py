from __future__ import annotations

import pytest

from core.errors import UnknownStrategyError
from core.models import Item, PageState
from fetchers import STRATEGIES, get_strategy
from fetchers.base import compose_price_text

CENEO_URL = "https://www.ceneo.pl/123456"

CENEO_HTML = """
<html><head>
<meta property="og:image" content="//image.ceneo.pl/data/products/123456/f-laptop.jpg">
</head><body>
<div class="product-top__price-column">
  <span class="price"><span class="value">2 399</span><span class="penny">,00</span></span>
</div>
<aside><span class="price"><span class="value">19</span><span class="penny">,99</span></span></aside>
</body></html>
"""


def _ceneo_item(**kwargs) -> Item:
    return Item(name="Laptop", url=CENEO_URL, strategy="ceneo", **kwargs)


def test_ceneo_structural_lookup() -> None:
    obs = STRATEGIES["ceneo"].extract(PageState(url=CENEO_URL, html=CENEO_HTML), _ceneo_item())
    assert obs is not None
    assert obs.amount_minor_units == 239900
    assert obs.method == "ceneo:dom:value+penny"
    assert obs.image_url == "https://image.ceneo.pl/data/products/123456/f-laptop.jpg"


def test_ceneo_markup_fallback() -> None:
    html = "<html><body><div class='offer'>Najniższa cena: 1&nbsp;299,00 zł</div></body></html>"
    obs = STRATEGIES["ceneo"].extract(PageState(url=CENEO_URL, html=html), _ceneo_item())
    assert obs is not None
    assert obs.amount_minor_units == 129900
    assert obs.method == "ceneo:regex"


def test_ceneo_markup_reads_whole_ungrouped_number() -> None:
    html = "<div>Najniższa cena: 2399,00 zł</div>"
    obs = STRATEGIES["ceneo"].extract(PageState(url=CENEO_URL, html=html), _ceneo_item())
    assert obs is not None
    assert obs.amount_minor_units == 239900
    assert obs.raw_text == "2399,00 zł"


def test_selector_fallback_tries_each_selector() -> None:
    html = "<html><body><div class='custom-price'>349 zł</div></body></html>"
    item = _ceneo_item(selector=".missing, div.custom-price")
    obs = STRATEGIES["ceneo"].extract(PageState(url=CENEO_URL, html=html), item)
    assert obs is not None
    assert obs.amount_minor_units == 34900
    assert obs.method == "div.custom-price"


def test_no_price_returns_none() -> None:
    html = "<html><body><p>Produkt niedostępny</p></body></html>"
    assert STRATEGIES["ceneo"].extract(PageState(url=CENEO_URL, html=html), _ceneo_item()) is None


def test_mediaexpert_cents_without_decimal_mark() -> None:
    html = (
        '<div class="main-price is-big"><span class="whole">2 242</span>'
        '<span class="cents">1</span><span class="currency">zł</span></div>'
    )
    item = Item(name="TV", url="https://www.mediaexpert.pl/tv/1", strategy="mediaexpert")
    obs = STRATEGIES["mediaexpert"].extract(PageState(url=item.url, html=html), item)
    assert obs is not None
    assert obs.amount_minor_units == 224201
    assert obs.raw_text == "2 242,01 zł"


def test_mediaexpert_markup_is_anchored() -> None:
    html = (
        "<p>Etui 1 199 00 zł</p>"
        "<section><h2>Cena produktu</h2><p>2 242 01 zł</p></section>"
    )
    item = Item(
        name="TV", url="https://www.mediaexpert.pl/tv/1", strategy="mediaexpert", anchor="Cena produktu"
    )
    obs = STRATEGIES["mediaexpert"].extract(PageState(url=item.url, html=html), item)
    assert obs is not None
    assert obs.amount_minor_units == 224201
    assert obs.method == "mediaexpert:regex"


def test_mediaexpert_markup_reads_whole_ungrouped_number() -> None:
    html = "<div class='main-price'><p>12345 67 zł</p></div>"
    item = Item(name="TV", url="https://www.mediaexpert.pl/tv/1", strategy="mediaexpert")
    obs = STRATEGIES["mediaexpert"].extract(PageState(url=item.url, html=html), item)
    assert obs is not None
    assert obs.amount_minor_units == 1234567
    assert obs.raw_text == "12345 67 zł"
    assert obs.method == "mediaexpert:regex"


def test_xkom_price_box() -> None:
    html = '<div data-name="productPrice"><span>1 299,00 zł</span></div>'
    item = Item(name="Monitor", url="https://www.x-kom.pl/p/1", strategy="xkom")
    obs = STRATEGIES["xkom"].extract(PageState(url=item.url, html=html), item)
    assert obs is not None
    assert obs.amount_minor_units == 129900
    assert obs.method == "xkom:dom:value"


def test_xkom_markup_pattern_and_first_image() -> None:
    html = (
        '<img src="/static/logo.svg"><img src="/images/p/123.webp">'
        "<div>Cena: 539,00 zł</div>"
    )
    item = Item(name="Monitor", url="https://www.x-kom.pl/p/1", strategy="xkom")
    obs = STRATEGIES["xkom"].extract(PageState(url=item.url, html=html), item)
    assert obs is not None
    assert obs.amount_minor_units == 53900
    assert obs.raw_text == "Cena: 539,00 zł"
    assert obs.image_url == "https://www.x-kom.pl/images/p/123.webp"


def test_missing_image_is_not_a_failure() -> None:
    html = "<div>Cena: 539,00 zł</div>"
    item = Item(name="Monitor", url="https://www.x-kom.pl/p/1", strategy="xkom")
    obs = STRATEGIES["xkom"].extract(PageState(url=item.url, html=html), item)
    assert obs is not None
    assert obs.image_url is None


def test_compose_price_text_synthesizes_decimal_mark() -> None:
    assert compose_price_text("2 399", ",00") == "2 399,00 zł"
    assert compose_price_text("2 399", "5") == "2 399,05 zł"
    assert compose_price_text("2 399", "") == "2 399,00 zł"


def test_cookie_candidates_prefer_site_buttons() -> None:
    candidates = STRATEGIES["xkom"].cookie_candidates()
    assert candidates[0] == "button[data-name='AcceptPermissionButton']"
    assert "text=Akceptuj" in candidates


def test_get_strategy() -> None:
    assert get_strategy("Ceneo") is STRATEGIES["ceneo"]
    with pytest.raises(UnknownStrategyError):
        get_strategy("allegro")
