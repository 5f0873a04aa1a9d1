# core/escalation.py
"""
Headless -> headful -> human-gate escalation for one item.

    INIT -> HEADLESS_ATTEMPT -> SUCCESS | FAILURE
                             -> CHALLENGE_DETECTED -> HEADFUL_ATTEMPT
                                -> [HUMAN_GATE_WAIT] -> FINAL_ATTEMPT -> SUCCESS | FAILURE

Session material is loaded before and saved after every attempt, whatever
its outcome, since a failed attempt may still have earned cookies.
"""
import enum
import os
from typing import Any, Callable, Dict, Optional, Protocol

from . import storage
from .challenge import is_challenge
from .logger import get_logger
from .models import Item, PageState, PriceObservation

logger = get_logger(__name__)

IDLE_TIMEOUT_MS = int(os.getenv("IDLE_TIMEOUT_MS", "8000"))


class Stage(enum.Enum):
    INIT = "init"
    HEADLESS_ATTEMPT = "headless_attempt"
    CHALLENGE_DETECTED = "challenge_detected"
    HEADFUL_ATTEMPT = "headful_attempt"
    HUMAN_GATE_WAIT = "human_gate_wait"
    FINAL_ATTEMPT = "final_attempt"
    SUCCESS = "success"
    FAILURE = "failure"


class Session(Protocol):
    def open(self, url: str) -> None: ...
    def snapshot(self) -> PageState: ...
    def wait_until_idle(self, timeout_ms: int) -> None: ...
    def dismiss_cookies(self, selectors) -> Optional[str]: ...
    def storage_state(self) -> Optional[Dict[str, Any]]: ...
    def capture_artifacts(self, debug_dir: str, item_name: str) -> Any: ...
    def close(self) -> None: ...


class Strategy(Protocol):
    def cookie_candidates(self): ...
    def extract(self, state: PageState, item: Item) -> Optional[PriceObservation]: ...


class Gate(Protocol):
    def wait(self, item: Item) -> None: ...


Launcher = Callable[..., Session]


class EscalationController:
    def __init__(
        self,
        launcher: Launcher,
        gate: Gate,
        session_path: str,
        debug_dir: str,
        headless_first: bool = True,
        idle_timeout_ms: int = IDLE_TIMEOUT_MS,
    ):
        self.launcher = launcher
        self.gate = gate
        self.session_path = session_path
        self.debug_dir = debug_dir
        self.headless_first = headless_first
        self.idle_timeout_ms = idle_timeout_ms
        self.stage = Stage.INIT

    def _enter(self, stage: Stage, item: Item) -> None:
        logger.debug("'%s': %s -> %s", item.name, self.stage.value, stage.value)
        self.stage = stage

    def _open(self, item: Item, headless: bool) -> Session:
        material = storage.load_session_material(self.session_path)
        session = self.launcher(headless=headless, storage_state=material)
        try:
            session.open(item.url)
        except Exception:
            self._close(session)
            raise
        return session

    def _persist(self, session: Session) -> None:
        material = session.storage_state()
        if material is not None:
            storage.save_session_material(self.session_path, material)

    def _close(self, session: Session) -> None:
        try:
            self._persist(session)
        finally:
            session.close()

    def _extract(self, session: Session, item: Item, strategy: Strategy) -> Optional[PriceObservation]:
        session.dismiss_cookies(strategy.cookie_candidates())
        session.wait_until_idle(self.idle_timeout_ms)
        observation = strategy.extract(session.snapshot(), item)
        if observation is None:
            session.capture_artifacts(self.debug_dir, item.name)
        return observation

    def _finish(self, item: Item, observation: Optional[PriceObservation]) -> Optional[PriceObservation]:
        self._enter(Stage.SUCCESS if observation is not None else Stage.FAILURE, item)
        return observation

    def fetch(self, item: Item, strategy: Strategy) -> Optional[PriceObservation]:
        """Return a price observation for item, or None when nothing matched."""
        self.stage = Stage.INIT

        self._enter(Stage.HEADLESS_ATTEMPT, item)
        session = self._open(item, headless=self.headless_first)
        try:
            if not is_challenge(session.snapshot()):
                return self._finish(item, self._extract(session, item, strategy))
            self._enter(Stage.CHALLENGE_DETECTED, item)
            logger.warning("Challenge page for '%s'; retrying in a visible browser.", item.name)
        finally:
            self._close(session)

        self._enter(Stage.HEADFUL_ATTEMPT, item)
        session = self._open(item, headless=False)
        try:
            if is_challenge(session.snapshot()):
                self._enter(Stage.HUMAN_GATE_WAIT, item)
                self.gate.wait(item)
            self._enter(Stage.FINAL_ATTEMPT, item)
            return self._finish(item, self._extract(session, item, strategy))
        finally:
            self._close(session)
