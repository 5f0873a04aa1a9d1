# core/notify.py
"""
Discord-style payloads built from a finished run.

Two independent messages: a change alert (only when prices moved) and a run
summary (every run). A message carries at most MAX_EMBEDS embeds.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from jinja2 import Environment, FileSystemLoader

from .diff import PRICE_CHANGE_MIN_MINOR_UNITS
from .models import ChangeEvent, RunResult
from .price import format_delta, format_minor_units

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), keep_trailing_newline=False)

MAX_EMBEDS = 10
MAX_DETAIL_EMBEDS = MAX_EMBEDS - 1
MAX_ERROR_LINES = 5
MAX_OVERFLOW_LINES = 25
ERROR_TEXT_MAX = 160
TITLE_MAX = 256
DESCRIPTION_MAX = 4096

COLORS = {
    "decrease": 0x2ECC71,
    "increase": 0xE74C3C,
    "mixed": 0xF1C40F,
    "neutral": 0x3498DB,
    "error": 0xE67E22,
}


def _clip(text: str, limit: int) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def _domain(url: str) -> str:
    host = urlparse(url).netloc
    return host[4:] if host.startswith("www.") else host


def direction_of(changes: List[ChangeEvent]) -> str:
    """'decrease', 'increase' or 'mixed' for a non-empty list of changes."""
    ups = sum(1 for c in changes if c.delta > 0)
    downs = sum(1 for c in changes if c.delta < 0)
    if downs and not ups:
        return "decrease"
    if ups and not downs:
        return "increase"
    return "mixed"


def change_indicator(prev: Optional[int], current: int) -> str:
    if prev is None:
        return "🆕 first check"
    if current < prev:
        return f"⬇️ {format_delta(current - prev)}"
    if current > prev:
        return f"⬆️ {format_delta(current - prev)}"
    return "➖ no change"


def build_change_alert(changes: List[ChangeEvent], now_iso: str) -> Optional[Dict[str, Any]]:
    if not changes:
        return None

    rows = [
        {
            "marker": "⬇️" if c.delta < 0 else "⬆️",
            "name": c.name,
            "url": c.url,
            "from_str": format_minor_units(c.from_minor_units),
            "to_str": format_minor_units(c.to_minor_units),
            "delta_str": format_delta(c.delta),
        }
        for c in changes
    ]
    description = env.get_template("change_alert.txt").render(changes=rows)

    embed = {
        "title": f"Price changes ({len(changes)})",
        "color": COLORS[direction_of(changes)],
        "timestamp": now_iso,
        "description": _clip(description, DESCRIPTION_MAX),
    }
    if len(changes) == 1:
        embed["url"] = changes[0].url
    return {"content": f"💸 **Price changes ({len(changes)})**", "embeds": [embed]}


def summary_counts(results: List[RunResult], min_change: int = PRICE_CHANGE_MIN_MINOR_UNITS) -> Dict[str, int]:
    """Moves smaller than min_change count as unchanged, matching change_event."""
    counts = {"ok": 0, "errors": 0, "increases": 0, "decreases": 0, "unchanged": 0, "first_seen": 0}
    for r in results:
        if not r.ok or r.observation is None:
            counts["errors"] += 1
            continue
        counts["ok"] += 1
        current = r.observation.amount_minor_units
        if r.prev_minor_units is None:
            counts["first_seen"] += 1
        elif abs(current - r.prev_minor_units) < max(1, min_change):
            counts["unchanged"] += 1
        elif current < r.prev_minor_units:
            counts["decreases"] += 1
        else:
            counts["increases"] += 1
    return counts


def _detail_embed(r: RunResult, now_iso: str) -> Dict[str, Any]:
    obs = r.observation
    current = obs.amount_minor_units
    prev = r.prev_minor_units
    if prev is None or prev == current:
        color = COLORS["neutral"]
    else:
        color = COLORS["decrease"] if current < prev else COLORS["increase"]

    description = env.get_template("item_detail.txt").render(
        amount_str=format_minor_units(current),
        indicator=change_indicator(prev, current),
        domain=_domain(r.item.url),
    )
    embed: Dict[str, Any] = {
        "title": _clip(r.item.name, TITLE_MAX),
        "url": r.item.url,
        "color": color,
        "timestamp": now_iso,
        "description": _clip(description, DESCRIPTION_MAX),
    }
    if obs.image_url:
        embed["thumbnail"] = {"url": obs.image_url}
    return embed


def build_run_summary(results: List[RunResult], now_iso: str) -> Dict[str, Any]:
    counts = summary_counts(results)
    successes = [r for r in results if r.ok and r.observation is not None]
    failures = [r for r in results if not (r.ok and r.observation is not None)]

    detailed = successes[:MAX_DETAIL_EMBEDS]
    overflow = [
        {
            "name": _clip(r.item.name, 80),
            "amount_str": format_minor_units(r.observation.amount_minor_units),
            "indicator": change_indicator(r.prev_minor_units, r.observation.amount_minor_units).split(" ", 1)[0],
        }
        for r in successes[MAX_DETAIL_EMBEDS:][:MAX_OVERFLOW_LINES]
    ]
    errors = [
        {"name": _clip(r.item.name, 80), "error": _clip(r.error or "unknown error", ERROR_TEXT_MAX)}
        for r in failures[:MAX_ERROR_LINES]
    ]

    description = env.get_template("run_summary.txt").render(
        counts=counts,
        overflow=overflow,
        errors=errors,
        errors_overflow=max(0, len(failures) - MAX_ERROR_LINES),
    )
    hidden = len(successes) - MAX_DETAIL_EMBEDS - len(overflow)
    if hidden > 0:
        description += f"\n…and {hidden} more items"

    header = {
        "title": f"Price report ({len(results)} items)",
        "color": COLORS["error"] if failures else COLORS["neutral"],
        "timestamp": now_iso,
        "description": _clip(description, DESCRIPTION_MAX),
    }
    embeds = [header] + [_detail_embed(r, now_iso) for r in detailed]
    return {"embeds": embeds[:MAX_EMBEDS]}
