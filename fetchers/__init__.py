# fetchers/__init__.py
from core.errors import UnknownStrategyError

from .base import ExtractionStrategy
from .ceneo import CeneoStrategy
from .mediaexpert import MediaExpertStrategy
from .xkom import XKomStrategy

STRATEGIES: dict[str, ExtractionStrategy] = {
    "ceneo": CeneoStrategy(),
    "xkom": XKomStrategy(),
    "mediaexpert": MediaExpertStrategy(),
}


def get_strategy(name: str) -> ExtractionStrategy:
    strategy = STRATEGIES.get((name or "").strip().lower())
    if strategy is None:
        raise UnknownStrategyError(
            f"No extraction strategy '{name}' (known: {', '.join(sorted(STRATEGIES))})"
        )
    return strategy
