# fetchers/xkom.py
import re

from .base import ExtractionStrategy


class XKomStrategy(ExtractionStrategy):
    name = "xkom"
    price_boxes = (
        ("div[data-name='productPrice']", "span", ""),
    )
    # x-kom repeats the price in plain text as "Cena: 539,00 zł"
    markup_patterns = (
        re.compile(r"Cena:\s*([0-9\s]+),(\d{2})\s*zł", re.I),
    )
    cookie_buttons = (
        "button[data-name='AcceptPermissionButton']",
    )
