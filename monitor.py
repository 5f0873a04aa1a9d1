import json
import os
import signal
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from playwright.sync_api import sync_playwright

from core.logger import get_logger
from core import storage
from core.browser import BrowserLauncher
from core.diff import change_event, record_observation
from core.errors import StorageError
from core.escalation import EscalationController
from core.gate import ConsoleHumanGate
from core.models import ChangeEvent, Item, PriceObservation, RunResult, StateRecord
from core.notify import build_change_alert, build_run_summary
from core.webhook import send_webhook
from fetchers import get_strategy

logger = get_logger(__name__)

POLL_MINUTES = int(os.getenv("POLL_MINUTES", "30"))
MODE = os.getenv("MODE", "daemon").lower()  # "daemon" or "once"
CONFIG_PATH = os.getenv("CONFIG_PATH", "/data/config.json")
STATE_PATH = os.getenv("STATE_PATH", "/data/state.json")
STORAGE_STATE_PATH = os.getenv("STORAGE_STATE_PATH", "/data/storage_state.json")
DEBUG_DIR = os.getenv("DEBUG_DIR", "/data/debug")
HEADLESS_DEFAULT = os.getenv("HEADLESS_DEFAULT", "true").lower() == "true"
NOTIFY_ON_CHANGE = os.getenv("NOTIFY_ON_CHANGE", "true").lower() == "true"
NOTIFY_ON_EVERY_CHECK = os.getenv("NOTIFY_ON_EVERY_CHECK", "true").lower() == "true"
DISCORD_WEBHOOK_URL = os.getenv("DISCORD_WEBHOOK_URL", "").strip()

NOT_FOUND_ERROR = "Price not found (strategy/selector did not match)"

Fetch = Callable[[Item], Optional[PriceObservation]]

GATE = ConsoleHumanGate()


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    if not os.path.exists(path):
        logger.error("Config file not found at %s", path)
        raise SystemExit(1)
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg: Dict[str, Any] = json.load(f)
    except Exception as e:
        logger.error("Failed to load config.json at %s: %s", path, e)
        raise SystemExit(1)

    if not isinstance(cfg, dict) or not isinstance(cfg.get("items"), list):
        logger.error("config.json must be an object with an 'items' list.")
        raise SystemExit(1)

    return cfg


def load_items(cfg: Dict[str, Any]) -> List[Item]:
    items: List[Item] = []
    for entry in cfg.get("items", []):
        if not isinstance(entry, dict):
            logger.error("Invalid item entry (not an object): %s", entry)
            continue
        url = str(entry.get("url") or "").strip()
        if not url:
            continue
        items.append(
            Item(
                name=str(entry.get("name") or url).strip(),
                url=url,
                strategy=str(entry.get("strategy") or "ceneo").strip().lower(),
                selector=entry.get("selector") or None,
                anchor=entry.get("anchor") or entry.get("anchorText") or None,
            )
        )
    return items


def process_item(
    item: Item,
    fetch: Fetch,
    store: Dict[str, StateRecord],
    seen_at: str,
) -> Tuple[RunResult, Dict[str, StateRecord], Optional[ChangeEvent]]:
    """
    Check one item. Site trouble is captured in RunResult.error; only
    storage failures propagate.
    """
    try:
        observation = fetch(item)
    except StorageError:
        raise
    except Exception as e:
        logger.error("Error checking '%s' (%s): %s", item.name, item.url, e)
        return RunResult(item=item, ok=False, error=str(e) or e.__class__.__name__), store, None

    if observation is None:
        logger.warning("No price for '%s' (%s).", item.name, item.url)
        return RunResult(item=item, ok=False, error=NOT_FOUND_ERROR), store, None

    store, prev = record_observation(
        store, item.url, observation, name=item.name, seen_at=seen_at
    )
    event = change_event(item, prev, observation)
    logger.info(
        "'%s': %s (previous %s, via %s)",
        item.name, observation.raw_text, prev, observation.method,
    )
    result = RunResult(item=item, ok=True, observation=observation, prev_minor_units=prev)
    return result, store, event


def check_items(
    items: List[Item],
    fetch: Fetch,
    store: Dict[str, StateRecord],
    seen_at: str,
) -> Tuple[List[RunResult], List[ChangeEvent], Dict[str, StateRecord]]:
    results: List[RunResult] = []
    changes: List[ChangeEvent] = []
    for item in items:
        result, store, event = process_item(item, fetch, store, seen_at)
        results.append(result)
        if event is not None:
            changes.append(event)
    return results, changes, store


def notify(results: List[RunResult], changes: List[ChangeEvent], now_iso: str) -> None:
    if NOTIFY_ON_CHANGE:
        alert = build_change_alert(changes, now_iso)
        if alert is not None:
            send_webhook(DISCORD_WEBHOOK_URL, alert)
        else:
            logger.info("No price changes this run.")

    if NOTIFY_ON_EVERY_CHECK:
        send_webhook(DISCORD_WEBHOOK_URL, build_run_summary(results, now_iso))


def make_fetch(controller: EscalationController) -> Fetch:
    def fetch(item: Item) -> Optional[PriceObservation]:
        return controller.fetch(item, get_strategy(item.strategy))
    return fetch


def run_once() -> int:
    cfg = load_config()
    items = load_items(cfg)
    if not items:
        logger.warning("No items with a url in %s; nothing to do.", CONFIG_PATH)
        return 0

    store = storage.load_state(STATE_PATH)
    seen_at = storage.now_utc_iso()
    logger.info("Checking %d items.", len(items))

    with sync_playwright() as pw:
        controller = EscalationController(
            launcher=BrowserLauncher(pw),
            gate=GATE,
            session_path=STORAGE_STATE_PATH,
            debug_dir=DEBUG_DIR,
            headless_first=HEADLESS_DEFAULT,
        )
        results, changes, store = check_items(items, make_fetch(controller), store, seen_at)

    storage.save_state(STATE_PATH, store)

    ok_count = sum(1 for r in results if r.ok)
    logger.info(
        "Run complete: %d ok, %d errors, %d changes.",
        ok_count, len(results) - ok_count, len(changes),
    )
    notify(results, changes, storage.now_utc_iso())
    return 0


def run_daemon() -> None:
    logger.info("Starting daemon; poll every %d minutes.", POLL_MINUTES)
    while True:
        try:
            run_once()
        except Exception as e:
            logger.exception("Unhandled error in daemon loop: %s", e)

        if GATE.cancelled:
            logger.info("Shutdown requested; leaving daemon loop.")
            return
        logger.info("Sleeping %d minutes before next run.", POLL_MINUTES)
        time.sleep(max(1, POLL_MINUTES) * 60)


def _handle_shutdown(signum, frame) -> None:
    waiting = GATE.waiting
    GATE.cancel()
    if waiting:
        # let the run abandon the item, save state and return
        logger.warning("Received signal %s; abandoning pending human check.", signum)
        return
    logger.warning("Received signal %s; exiting.", signum)
    raise SystemExit(0)


def install_signal_handlers() -> None:
    # Ctrl-C at the console prompt must cancel the gate, not skip save_state
    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, _handle_shutdown)


if __name__ == "__main__":
    install_signal_handlers()
    try:
        if MODE == "once":
            raise SystemExit(run_once())
        else:
            run_daemon()
    except Exception as e:
        logger.exception("Fatal monitor error: %s", e)
        raise SystemExit(2)
