# core/gate.py
import threading
from typing import Callable

from .errors import ChallengeUnresolved
from .logger import get_logger
from .models import Item

logger = get_logger(__name__)


class ConsoleHumanGate:
    """
    Blocks until the operator confirms on the console that a challenge in
    the visible browser has been passed.

    There is no timeout. cancel() (e.g. from a signal handler) releases a
    waiting caller with ChallengeUnresolved so the run can wind down.
    """

    def __init__(self, input_fn: Callable[[str], str] = input):
        self._input_fn = input_fn
        self._wake = threading.Event()
        self._cancelled = threading.Event()
        self._confirmed = False
        self._waiting = False

    @property
    def waiting(self) -> bool:
        return self._waiting

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        self._wake.set()

    def _read_confirmation(self, prompt: str) -> None:
        try:
            self._input_fn(prompt)
            self._confirmed = True
        except EOFError:
            logger.error("Console input closed while waiting for confirmation.")
            self._cancelled.set()
        finally:
            self._wake.set()

    def wait(self, item: Item) -> None:
        if self.cancelled:
            raise ChallengeUnresolved(f"Human check for '{item.name}' abandoned (shutting down)")

        logger.warning(
            "[HUMAN CHECK] %s: solve the verification in the browser window "
            "and make sure the product page is shown.", item.name,
        )
        self._wake.clear()
        self._confirmed = False
        reader = threading.Thread(
            target=self._read_confirmation,
            args=("When ready, press Enter... ",),
            name="human-gate",
            daemon=True,
        )
        self._waiting = True
        reader.start()
        try:
            self._wake.wait()
        finally:
            self._waiting = False

        if not self._confirmed:
            raise ChallengeUnresolved(f"Human check for '{item.name}' was not confirmed")
        logger.info("Operator confirmed human check for '%s'.", item.name)
