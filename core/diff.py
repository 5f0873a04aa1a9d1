# core/diff.py
import os
from typing import Dict, Optional, Tuple

from .models import ChangeEvent, Item, PriceObservation, StateRecord

# Smallest difference (in minor units) reported as a change; 1 reports any move
PRICE_CHANGE_MIN_MINOR_UNITS = max(1, int(os.getenv("PRICE_CHANGE_MIN_MINOR_UNITS", "1")))


def record_observation(
    store: Dict[str, StateRecord],
    url: str,
    observation: PriceObservation,
    *,
    name: str,
    seen_at: str,
) -> Tuple[Dict[str, StateRecord], Optional[int]]:
    """
    Record a successful observation for url.
    Returns (updated_store, previous_minor_units). The input store is not
    modified; previous is None the first time a URL is seen.
    """
    previous = store.get(url)
    prev_amount = previous.last_amount_minor_units if previous is not None else None

    updated = dict(store)
    updated[url] = StateRecord(
        name=name,
        last_amount_minor_units=observation.amount_minor_units,
        last_seen_at=seen_at,
        method=observation.method,
        raw_text=observation.raw_text,
    )
    return updated, prev_amount


def change_event(
    item: Item,
    prev_minor_units: Optional[int],
    observation: PriceObservation,
    min_change: int = PRICE_CHANGE_MIN_MINOR_UNITS,
) -> Optional[ChangeEvent]:
    """A ChangeEvent when a previous price exists and moved by at least min_change."""
    if prev_minor_units is None:
        return None
    after = observation.amount_minor_units
    if abs(after - prev_minor_units) < max(1, min_change):
        return None
    return ChangeEvent(
        name=item.name,
        url=item.url,
        from_minor_units=prev_minor_units,
        to_minor_units=after,
    )
