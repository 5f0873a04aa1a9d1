# core/storage.py
import datetime
import json
import os
from typing import Any, Dict, Optional

import pytz

from .errors import StorageError
from .logger import get_logger
from .models import StateRecord

logger = get_logger(__name__)


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


def _read_json(path: str) -> Optional[Any]:
    """Return parsed JSON, or None when the file is missing or blank."""
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read().strip()
    except OSError as e:
        raise StorageError(f"Cannot read {path}: {e}") from e
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StorageError(f"Malformed JSON in {path}: {e}") from e


def _write_json(path: str, data: Any) -> None:
    """Write the whole document to a temp file and swap it in."""
    tmp_path = f"{path}.tmp"
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError) as e:
        raise StorageError(f"Cannot write {path}: {e}") from e


def load_state(path: str) -> Dict[str, StateRecord]:
    """
    Load the state snapshot: mapping url -> StateRecord.
    A missing or empty file is an empty store.
    """
    data = _read_json(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StorageError(f"State file {path} must hold a JSON object.")

    store: Dict[str, StateRecord] = {}
    for url, record in data.items():
        try:
            store[url] = StateRecord.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Bad state record for {url} in {path}: {e}") from e
    logger.debug("Loaded %d state records from %s", len(store), path)
    return store


def save_state(path: str, store: Dict[str, StateRecord]) -> None:
    _write_json(path, {url: rec.to_dict() for url, rec in store.items()})
    logger.info("Saved %d state records to %s", len(store), path)


def load_session_material(path: str) -> Optional[Dict[str, Any]]:
    """Return the persisted browser storage state (cookies + origins), if any."""
    data = _read_json(path)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise StorageError(f"Session material at {path} must be a JSON object.")
    return data


def save_session_material(path: str, material: Dict[str, Any]) -> None:
    _write_json(path, material)
    logger.debug(
        "Saved session material to %s (%d cookies)",
        path, len(material.get("cookies") or []),
    )
