# core/challenge.py
"""
Heuristics for recognising anti-bot interstitials.

Any single positive signal is conclusive. A false positive only costs an
unnecessary headful attempt, so the marker lists lean generous.
"""
from bs4 import BeautifulSoup

from .logger import get_logger
from .models import PageState

logger = get_logger(__name__)

CHALLENGE_URL_FRAGMENTS = (
    "/captcha/add",
    "challenges.cloudflare.com",
    "/cdn-cgi/challenge-platform",
)

CHALLENGE_WIDGET_SELECTORS = (
    "div.cf-turnstile",
    "iframe[src*='challenges.cloudflare.com']",
    "#challenge-form",
    "#cf-challenge-running",
)

CHALLENGE_TITLES = (
    "just a moment",
    "security verification",
    "checking your browser",
    "attention required",
    "weryfikacja",
)

CHALLENGE_MARKUP_MARKERS = (
    "_cf_chl_opt",
    "cf-chl-widget",
    "cf_challenge_response",
    "enter the characters you see below",
)


def _url_signal(url: str) -> bool:
    lower = (url or "").lower()
    return any(fragment in lower for fragment in CHALLENGE_URL_FRAGMENTS)


def _title_signal(title: str) -> bool:
    lower = (title or "").lower()
    return any(phrase in lower for phrase in CHALLENGE_TITLES)


def _markup_signal(html: str) -> bool:
    lower = (html or "").lower()
    return any(marker in lower for marker in CHALLENGE_MARKUP_MARKERS)


def _widget_signal(html: str) -> bool:
    if not html:
        return False
    try:
        soup = BeautifulSoup(html, "html.parser")
        return any(soup.select_one(sel) is not None for sel in CHALLENGE_WIDGET_SELECTORS)
    except Exception as exc:
        logger.debug("Challenge widget lookup failed: %s", exc)
        return False


def challenge_reason(state: PageState) -> str | None:
    """Return a short tag naming the first signal that fired, or None."""
    if _url_signal(state.url):
        return "url"
    if _title_signal(state.title):
        return "title"
    if _markup_signal(state.html):
        return "markup"
    if _widget_signal(state.html):
        return "widget"
    return None


def is_challenge(state: PageState) -> bool:
    reason = challenge_reason(state)
    if reason:
        logger.debug("Challenge detected at %s (signal=%s).", state.url, reason)
        return True
    return False
