# fetchers/ceneo.py
import re

from .base import PRICE_MAJOR, ExtractionStrategy


class CeneoStrategy(ExtractionStrategy):
    """
    Ceneo product pages. The lowest offer price is split into
    <span class="value">2 399</span><span class="penny">,00</span>.
    """

    name = "ceneo"
    price_boxes = (
        ("div.product-top__price-column span.price", "span.value", "span.penny"),
        ("span.price-format span.price", "span.value", "span.penny"),
        ("span.price", "span.value", "span.penny"),
    )
    markup_patterns = (
        re.compile(PRICE_MAJOR + r",(\d{2})\s*zł", re.I),
        re.compile(PRICE_MAJOR + r"\s+(\d{2})\s*zł", re.I),
    )
    cookie_buttons = (
        "button.js_cookie-consent-necessary",
        "button:has-text('Akceptuję')",
    )
