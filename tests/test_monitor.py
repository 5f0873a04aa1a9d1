from __future__ import annotations

import signal
import threading

import pytest
import requests

import monitor
from core.errors import StorageError
from core.gate import ConsoleHumanGate
from core.models import Item, PriceObservation, StateRecord
from core.notify import COLORS, build_change_alert, build_run_summary, summary_counts
from core.webhook import send_webhook

SEEN = "2026-01-01T10:00:00+00:00"
LAPTOP = Item(name="Laptop", url="https://www.ceneo.pl/1")
PHONE = Item(name="Phone", url="https://www.ceneo.pl/2")


def _record(amount: int) -> StateRecord:
    return StateRecord(
        name="Laptop", last_amount_minor_units=amount, last_seen_at="2025-12-31T10:00:00+00:00",
        method="ceneo:regex", raw_text="2 399,00 zł",
    )


def _fetch_from(prices: dict):
    def fetch(item: Item):
        value = prices[item.url]
        if isinstance(value, Exception):
            raise value
        if value is None:
            return None
        return PriceObservation(amount_minor_units=value, raw_text=str(value), method="test")
    return fetch


def test_price_drop_end_to_end() -> None:
    store = {LAPTOP.url: _record(239900)}
    results, changes, store = monitor.check_items(
        [LAPTOP], _fetch_from({LAPTOP.url: 219900}), store, SEEN
    )

    assert len(changes) == 1
    assert (changes[0].from_minor_units, changes[0].to_minor_units) == (239900, 219900)
    assert store[LAPTOP.url].last_amount_minor_units == 219900

    alert = build_change_alert(changes, SEEN)
    assert alert["embeds"][0]["color"] == COLORS["decrease"]
    counts = summary_counts(results)
    assert counts["decreases"] == 1
    assert counts["increases"] == 0


def test_failed_item_does_not_touch_state_or_stop_the_run() -> None:
    store = {LAPTOP.url: _record(239900)}
    results, changes, new_store = monitor.check_items(
        [LAPTOP, PHONE],
        _fetch_from({LAPTOP.url: None, PHONE.url: 99900}),
        store,
        SEEN,
    )

    assert results[0].ok is False
    assert results[0].error == monitor.NOT_FOUND_ERROR
    assert new_store[LAPTOP.url] == store[LAPTOP.url]
    assert results[1].ok is True
    assert results[1].prev_minor_units is None
    assert changes == []

    header = build_run_summary(results, SEEN)["embeds"][0]["description"]
    assert "Laptop" in header


def test_navigation_error_is_item_level() -> None:
    results, _, _ = monitor.check_items(
        [LAPTOP, PHONE],
        _fetch_from({LAPTOP.url: TimeoutError("Timeout 60000ms exceeded"), PHONE.url: 100}),
        {},
        SEEN,
    )
    assert results[0].ok is False
    assert "Timeout" in results[0].error
    assert results[1].ok is True


def test_storage_error_aborts_the_run() -> None:
    with pytest.raises(StorageError):
        monitor.check_items(
            [LAPTOP, PHONE],
            _fetch_from({LAPTOP.url: StorageError("disk full"), PHONE.url: 100}),
            {},
            SEEN,
        )


def test_load_items_skips_entries_without_url() -> None:
    cfg = {
        "items": [
            {"name": "No url"},
            "garbage",
            {"name": "TV", "url": "https://www.mediaexpert.pl/tv", "strategy": "MediaExpert", "anchorText": "Cena"},
            {"url": "https://www.ceneo.pl/9"},
        ]
    }
    items = monitor.load_items(cfg)
    assert [i.url for i in items] == ["https://www.mediaexpert.pl/tv", "https://www.ceneo.pl/9"]
    assert items[0].strategy == "mediaexpert"
    assert items[0].anchor == "Cena"
    assert items[1].strategy == "ceneo"
    assert items[1].name == "https://www.ceneo.pl/9"


def test_load_config_missing_file_exits(tmp_path) -> None:
    with pytest.raises(SystemExit):
        monitor.load_config(str(tmp_path / "nope.json"))


class _Response:
    def __init__(self, status: int):
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


def test_send_webhook_posts_once(monkeypatch) -> None:
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json, timeout))
        return _Response(204)

    monkeypatch.setattr(requests, "post", fake_post)
    assert send_webhook("https://discord.test/hook", {"content": "hi"}, timeout=3) is True
    assert calls == [("https://discord.test/hook", {"content": "hi"}, 3)]


def test_send_webhook_failure_is_not_retried(monkeypatch) -> None:
    calls = []

    def failing_post(url, json=None, timeout=None):
        calls.append(url)
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests, "post", failing_post)
    assert send_webhook("https://discord.test/hook", {"content": "hi"}) is False
    assert len(calls) == 1


def test_send_webhook_without_url_is_skipped(monkeypatch) -> None:
    monkeypatch.setattr(requests, "post", lambda *a, **k: pytest.fail("should not post"))
    assert send_webhook("", {"content": "hi"}) is False


def test_interrupt_during_human_check_lets_the_run_finish(monkeypatch) -> None:
    started = threading.Event()
    never = threading.Event()

    def blocking_input(prompt: str) -> str:
        started.set()
        never.wait(5)
        return ""

    monkeypatch.setattr(monitor, "GATE", ConsoleHumanGate(input_fn=blocking_input))

    def interrupt() -> None:
        started.wait(5)
        monitor._handle_shutdown(signal.SIGINT, None)

    interrupter = threading.Thread(target=interrupt, daemon=True)

    def fetch(item: Item):
        if item is LAPTOP:
            interrupter.start()
            monitor.GATE.wait(item)
        return PriceObservation(amount_minor_units=99900, raw_text="999,00 zł", method="test")

    results, changes, store = monitor.check_items([LAPTOP, PHONE], fetch, {}, SEEN)
    interrupter.join(5)

    assert monitor.GATE.cancelled
    assert results[0].ok is False
    assert "abandoned" in results[0].error or "not confirmed" in results[0].error
    assert results[1].ok is True
    assert store[PHONE.url].last_amount_minor_units == 99900
    assert LAPTOP.url not in store


def test_shutdown_outside_human_check_exits(monkeypatch) -> None:
    gate = ConsoleHumanGate(input_fn=lambda prompt: "")
    monkeypatch.setattr(monitor, "GATE", gate)
    with pytest.raises(SystemExit):
        monitor._handle_shutdown(signal.SIGTERM, None)
    assert gate.cancelled


def test_signal_handlers_cover_sigterm_and_sigint(monkeypatch) -> None:
    registered = {}
    monkeypatch.setattr(signal, "signal", lambda signum, handler: registered.update({signum: handler}))
    monitor.install_signal_handlers()
    assert registered == {
        signal.SIGTERM: monitor._handle_shutdown,
        signal.SIGINT: monitor._handle_shutdown,
    }
