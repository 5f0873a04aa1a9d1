# core/chain.py
from typing import Callable, Iterable, Optional, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def first_match(
    attempts: Iterable[Callable[[], Optional[T]]],
    label: str = "attempt",
) -> Optional[T]:
    """
    Run best-effort attempts in order and return the first non-None result.

    Each attempt may fail on its own; a failure is logged at DEBUG and the
    next attempt runs. Returns None when nothing matched.
    """
    for index, attempt in enumerate(attempts):
        try:
            result = attempt()
        except Exception as exc:
            logger.debug("%s #%d failed: %s", label, index, exc)
            continue
        if result is not None:
            return result
    return None
