# core/errors.py


class PriceWatchError(Exception):
    """Base class for pricewatch errors."""


class StorageError(PriceWatchError):
    """The state snapshot or session material could not be read or written."""


class ChallengeUnresolved(PriceWatchError):
    """The human gate was abandoned before the operator confirmed."""


class UnknownStrategyError(PriceWatchError):
    """An item names an extraction strategy that is not registered."""
