# fetchers/mediaexpert.py
import re

from .base import PRICE_MAJOR, ExtractionStrategy


class MediaExpertStrategy(ExtractionStrategy):
    """
    Media Expert renders prices as "2 242 01 zł" (cents in their own span)
    and sometimes as "2 899,00 zł". The markup is full of unrelated prices
    (accessories, financing), so patterns are searched after a landmark.
    """

    name = "mediaexpert"
    price_boxes = (
        ("div.main-price", "span.whole", "span.cents"),
    )
    markup_patterns = (
        re.compile(PRICE_MAJOR + r"\s+(\d{2})\s*zł", re.I),
        re.compile(PRICE_MAJOR + r",(\d{2})\s*zł", re.I),
    )
    default_anchor = "main-price"
    cookie_buttons = (
        "#onetrust-accept-btn-handler",
    )
