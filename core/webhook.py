# core/webhook.py
import os
from typing import Any, Dict

import requests

from .logger import get_logger

logger = get_logger(__name__)

WEBHOOK_TIMEOUT = float(os.getenv("WEBHOOK_TIMEOUT", "15"))


def send_webhook(url: str, payload: Dict[str, Any], timeout: float = WEBHOOK_TIMEOUT) -> bool:
    """
    POST one payload to a Discord-compatible webhook. Single attempt;
    failures are logged and reported as False.
    """
    if not url:
        logger.warning("DISCORD_WEBHOOK_URL is not set; skipping notification.")
        return False

    try:
        resp = requests.post(url, json=payload, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error("Webhook delivery failed: %s", e)
        return False

    logger.info(
        "Webhook delivered (%d embeds, status %s).",
        len(payload.get("embeds") or []), resp.status_code,
    )
    return True
