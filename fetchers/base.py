# fetchers/base.py
import re
from dataclasses import replace
from typing import Iterable, Optional, Pattern, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from core.chain import first_match
from core.logger import get_logger
from core.models import Item, PageState, PriceObservation
from core.price import CURRENCY_SUFFIX, normalize

logger = get_logger(__name__)

# How far past the landmark text the markup patterns may look
ANCHOR_WINDOW = 12000

# Major part of a price in markup; must start at the number's first digit
PRICE_MAJOR = r"(?<![\d.,])(?<!\d\s)(\d{1,3}(?:\s\d{3})*|\d+)"

_IMAGE_EXT_RE = re.compile(r"\.(jpe?g|png|webp)(\?|$)", re.I)
_NBSP_ENTITIES = ("&nbsp;", "&#160;", "&#xa0;")

GENERIC_COOKIE_BUTTONS: Tuple[str, ...] = (
    "#onetrust-accept-btn-handler",
    "text=ZAAKCEPTUJ WSZYSTKIE",
    "text=W porządku",
    "text=Akceptuj",
)


def _text_or_empty(tag: Tag | None) -> str:
    return tag.get_text(" ", strip=True) if tag is not None else ""


def _decode_spaces(html: str) -> str:
    for entity in _NBSP_ENTITIES:
        html = html.replace(entity, " ")
    return html


def compose_price_text(major: str, minor: str) -> str:
    """
    Join a decomposed price ("2 399" + ",00" or "2 399" + "00") into one string.
    A minor part without a leading decimal mark gets one.
    """
    major = major.strip()
    minor = minor.strip()
    if not minor:
        minor = ",00"
    elif not minor.startswith((",", ".")):
        minor = "," + re.sub(r"\D", "", minor).rjust(2, "0")
    return f"{major}{minor} {CURRENCY_SUFFIX}"


def _absolute_http(url: str | None, base_url: str) -> Optional[str]:
    if not url:
        return None
    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url
    url = urljoin(base_url, url)
    return url if url.startswith(("http://", "https://")) else None


def find_image_url(soup: BeautifulSoup, page_url: str) -> Optional[str]:
    """Best-effort representative product image: og:image, image_src, first <img>."""

    def og_image() -> Optional[str]:
        tag = soup.select_one("meta[property='og:image']")
        return _absolute_http(tag.get("content") if tag else None, page_url)

    def image_src() -> Optional[str]:
        tag = soup.select_one("link[rel='image_src']")
        return _absolute_http(tag.get("href") if tag else None, page_url)

    def first_img() -> Optional[str]:
        for img in soup.find_all("img"):
            for attr in ("src", "data-src"):
                candidate = _absolute_http(img.get(attr), page_url)
                if candidate and _IMAGE_EXT_RE.search(candidate):
                    return candidate
        return None

    return first_match([og_image, image_src, first_img], label="image lookup")


class ExtractionStrategy:
    """
    Per-site price extraction over a rendered page snapshot.

    Subclasses describe where the site keeps its price; the attempt order
    is structural lookup, markup patterns, then the item's own selectors.
    """

    name = "base"
    # (box, major, minor) CSS selectors; minor may be empty
    price_boxes: Tuple[Tuple[str, str, str], ...] = ()
    # regexes capturing (major, minor)
    markup_patterns: Tuple[Pattern[str], ...] = ()
    default_anchor: Optional[str] = None
    cookie_buttons: Tuple[str, ...] = ()

    def cookie_candidates(self) -> Tuple[str, ...]:
        return tuple(self.cookie_buttons) + tuple(
            sel for sel in GENERIC_COOKIE_BUTTONS if sel not in self.cookie_buttons
        )

    def from_structure(self, soup: BeautifulSoup) -> Optional[PriceObservation]:
        for box_sel, major_sel, minor_sel in self.price_boxes:
            box = soup.select_one(box_sel)
            if box is None:
                continue
            major = _text_or_empty(box.select_one(major_sel))
            if not major:
                continue
            if minor_sel:
                raw = compose_price_text(major, _text_or_empty(box.select_one(minor_sel)))
                method = f"{self.name}:dom:value+penny"
            else:
                raw = major
                method = f"{self.name}:dom:value"
            amount = normalize(raw)
            if amount is not None:
                return PriceObservation(amount, raw, method)
        return None

    def markup_window(self, html: str, item: Item) -> str:
        html = _decode_spaces(html)
        anchor = item.anchor or self.default_anchor
        if not anchor:
            return html
        start = max(html.find(anchor), 0)
        return html[start:start + ANCHOR_WINDOW]

    def from_markup(self, html: str, item: Item) -> Optional[PriceObservation]:
        chunk = self.markup_window(html, item)
        for pattern in self.markup_patterns:
            m = pattern.search(chunk)
            if not m:
                continue
            major = re.sub(r"\s+", "", m.group(1))
            minor = (m.group(2) or "00").rjust(2, "0")
            amount = normalize(f"{major},{minor} {CURRENCY_SUFFIX}")
            if amount is not None:
                return PriceObservation(amount, m.group(0).strip(), f"{self.name}:regex")
        return None

    def from_selectors(self, soup: BeautifulSoup, selectors: Optional[str]) -> Optional[PriceObservation]:
        if not selectors:
            return None
        candidates = [s.strip() for s in selectors.split(",") if s.strip()]

        def attempt(sel: str):
            def run() -> Optional[PriceObservation]:
                raw = _text_or_empty(soup.select_one(sel))
                amount = normalize(raw)
                return PriceObservation(amount, raw, sel) if amount is not None else None
            return run

        return first_match([attempt(sel) for sel in candidates], label="selector fallback")

    def attempts(self, soup: BeautifulSoup, state: PageState, item: Item) -> Iterable:
        return [
            lambda: self.from_structure(soup),
            lambda: self.from_markup(state.html, item),
            lambda: self.from_selectors(soup, item.selector),
        ]

    def extract(self, state: PageState, item: Item) -> Optional[PriceObservation]:
        soup = BeautifulSoup(state.html or "", "html.parser")
        observation = first_match(self.attempts(soup, state, item), label=f"{self.name} extraction")
        if observation is None:
            logger.info("No price found for '%s' with strategy %s.", item.name, self.name)
            return None

        image_url = find_image_url(soup, state.url or item.url)
        logger.debug(
            "Extracted %s for '%s' via %s (image=%s)",
            observation.raw_text, item.name, observation.method, image_url,
        )
        return replace(observation, image_url=image_url)
