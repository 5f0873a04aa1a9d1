# core/browser.py
"""Playwright session handling: launch, navigation, cookie prompts, debug dumps."""
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from playwright.sync_api import Browser, BrowserContext, Page, Playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from .chain import first_match
from .logger import get_logger
from .models import PageState

logger = get_logger(__name__)

NAV_TIMEOUT_MS = int(os.getenv("NAV_TIMEOUT_MS", "60000"))
NAV_ATTEMPTS = max(1, int(os.getenv("NAV_ATTEMPTS", "2")))
SETTLE_MS = int(os.getenv("SETTLE_MS", "1200"))
BROWSER_LOCALE = os.getenv("BROWSER_LOCALE", "pl-PL")
BROWSER_CHANNEL = os.getenv("BROWSER_CHANNEL", "").strip()

COOKIE_CLICK_TIMEOUT_MS = 1200
COOKIE_SETTLE_MS = 600
DEBUG_NAME_MAX = 70

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--no-default-browser-check",
    "--window-size=1440,960",
]


def debug_artifact_stem(name: str) -> str:
    """Filesystem-safe stem for debug files derived from an item name."""
    safe = re.sub(r"[^a-z0-9]+", "_", name or "", flags=re.I)[:DEBUG_NAME_MAX]
    return safe or "unknown"


@retry(
    wait=wait_exponential_jitter(initial=1, max=10),
    stop=stop_after_attempt(NAV_ATTEMPTS),
    retry=retry_if_exception_type(PlaywrightError),
    reraise=True,
)
def _goto(page: Page, url: str) -> None:
    page.goto(url, wait_until="domcontentloaded", timeout=NAV_TIMEOUT_MS)


class BrowserSession:
    """
    One browser + context + page, owned by a single attempt.
    Created by BrowserLauncher and closed by whoever opened it.
    """

    def __init__(self, browser: Browser, context: BrowserContext, page: Page, headless: bool):
        self.browser = browser
        self.context = context
        self.page = page
        self.headless = headless

    def open(self, url: str) -> None:
        logger.debug("Opening %s (headless=%s)", url, self.headless)
        _goto(self.page, url)
        self.page.wait_for_timeout(SETTLE_MS)

    def snapshot(self) -> PageState:
        try:
            title = self.page.title()
        except PlaywrightError:
            title = ""
        return PageState(url=self.page.url, title=title, html=self.page.content())

    def wait_until_idle(self, timeout_ms: int) -> None:
        try:
            self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug("Network did not go idle within %d ms at %s", timeout_ms, self.page.url)

    def _click_if_present(self, selector: str) -> Optional[str]:
        locator = self.page.locator(selector).first
        if not locator.count():
            return None
        locator.click(timeout=COOKIE_CLICK_TIMEOUT_MS)
        self.page.wait_for_timeout(COOKIE_SETTLE_MS)
        return selector

    def dismiss_cookies(self, selectors: Sequence[str]) -> Optional[str]:
        """Click the first consent button that exists; a page without one is fine."""
        clicked = first_match(
            [lambda sel=sel: self._click_if_present(sel) for sel in selectors],
            label="cookie dismiss",
        )
        if clicked:
            logger.debug("Dismissed cookie prompt via %s", clicked)
        return clicked

    def storage_state(self) -> Optional[Dict[str, Any]]:
        try:
            return self.context.storage_state()
        except PlaywrightError as e:
            logger.warning("Could not read browser storage state: %s", e)
            return None

    def capture_artifacts(self, debug_dir: str, item_name: str) -> List[Path]:
        """Save rendered HTML and a full-page screenshot; never raises."""
        written: List[Path] = []
        stem = debug_artifact_stem(item_name)
        try:
            os.makedirs(debug_dir, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create debug dir %s: %s", debug_dir, e)
            return written

        html_path = Path(debug_dir) / f"debug_{stem}.html"
        try:
            html_path.write_text(self.page.content(), encoding="utf-8")
            written.append(html_path)
        except Exception as e:
            logger.warning("Failed to dump HTML to %s: %s", html_path, e)

        png_path = Path(debug_dir) / f"debug_{stem}.png"
        try:
            self.page.screenshot(path=str(png_path), full_page=True)
            written.append(png_path)
        except Exception as e:
            logger.warning("Failed to save screenshot to %s: %s", png_path, e)

        if written:
            logger.info("Saved debug artifacts for '%s': %s", item_name, [str(p) for p in written])
        return written

    def close(self) -> None:
        for closable in (self.context, self.browser):
            try:
                closable.close()
            except Exception as e:
                logger.debug("Error while closing browser resource: %s", e)


class BrowserLauncher:
    """Starts fresh Chromium sessions from a running Playwright instance."""

    def __init__(self, playwright: Playwright):
        self.playwright = playwright

    def launch_kwargs(self, headless: bool) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headless": headless, "args": list(LAUNCH_ARGS)}
        if BROWSER_CHANNEL:
            kwargs["channel"] = BROWSER_CHANNEL
        return kwargs

    def __call__(self, headless: bool, storage_state: Optional[Dict[str, Any]] = None) -> BrowserSession:
        browser = self.playwright.chromium.launch(**self.launch_kwargs(headless))
        context_kwargs: Dict[str, Any] = {"locale": BROWSER_LOCALE}
        if storage_state:
            context_kwargs["storage_state"] = storage_state
        try:
            context = browser.new_context(**context_kwargs)
            page = context.new_page()
        except Exception:
            browser.close()
            raise
        return BrowserSession(browser, context, page, headless)
