# core/models.py
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Item:
    """
    A monitored product page, as configured by the operator.
    Identity is the URL.
    """
    name: str
    url: str
    strategy: str = "ceneo"
    selector: Optional[str] = None
    anchor: Optional[str] = None


@dataclass(frozen=True)
class PageState:
    """Snapshot of a rendered page: current URL, title and markup."""
    url: str
    title: str = ""
    html: str = ""


@dataclass(frozen=True)
class PriceObservation:
    """
    One successful price read. Amounts are kept in minor units (grosze)
    so that comparisons are exact.
    """
    amount_minor_units: int
    raw_text: str
    method: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class StateRecord:
    name: str
    last_amount_minor_units: int
    last_seen_at: str
    method: str
    raw_text: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "lastAmountMinorUnits": self.last_amount_minor_units,
            "lastSeenAt": self.last_seen_at,
            "method": self.method,
            "rawText": self.raw_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StateRecord":
        return cls(
            name=str(data.get("name") or ""),
            last_amount_minor_units=int(data["lastAmountMinorUnits"]),
            last_seen_at=str(data.get("lastSeenAt") or ""),
            method=str(data.get("method") or ""),
            raw_text=str(data.get("rawText") or ""),
        )


@dataclass(frozen=True)
class ChangeEvent:
    name: str
    url: str
    from_minor_units: int
    to_minor_units: int

    @property
    def delta(self) -> int:
        return self.to_minor_units - self.from_minor_units


@dataclass
class RunResult:
    """Outcome of processing one item in one run."""
    item: Item
    ok: bool
    observation: Optional[PriceObservation] = None
    prev_minor_units: Optional[int] = None
    error: Optional[str] = None
