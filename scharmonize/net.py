"""HTTP helpers for remote resources."""

from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


def is_online(url: str, *, strict: bool = False, timeout: float = DEFAULT_TIMEOUT) -> bool:
    """Check whether a file is available at `url`.

    With `strict`, the response must be HTTP 200; otherwise anything but a
    404 counts as present. Connection failures and timeouts return False.
    """
    try:
        with requests.get(url, timeout=timeout, stream=True) as response:
            status = int(response.status_code)
    except requests.RequestException as exc:
        logger.warning("Cannot reach %s: %s", url, exc)
        return False
    if strict:
        return status == 200
    return status != 404


def fetch_bytes(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    with requests.get(url, timeout=timeout) as response:
        response.raise_for_status()
        return response.content
