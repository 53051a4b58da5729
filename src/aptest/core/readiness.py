"""Validator readiness: root key path scanning and the HTTP liveness probe."""
from __future__ import annotations

import logging
import time
from enum import Enum

import requests

from aptest.errors import NotFoundError

logger = logging.getLogger(__name__)

ROOT_KEY_MARKER = "Aptos root key path"
QUOTE_CHARS = "\"'"


class ReadinessStatus(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    TIMED_OUT = "timed_out"


def extract_credential_path(startup_text: str, marker: str = ROOT_KEY_MARKER) -> str:
    """
    Find the mint (root) key path in the validator's startup output.

    Only the first occurrence of ``marker`` counts. The value is whatever
    follows the first ``:`` after it up to the end of that line, with
    whitespace and quotes stripped. The line must be terminated inside
    ``startup_text``; a line cut off by the snapshot boundary is treated as
    missing rather than returned half-read.

    Raises:
        NotFoundError: If the first marker line is absent, truncated, has no
            separator, or holds an empty value.
    """
    start = startup_text.find(marker)
    end = startup_text.find("\n", start) if start != -1 else -1
    if end == -1:
        raise NotFoundError(
            f"Could not find {marker} in validator output. "
            "Perhaps give the node more time to spin up?"
        )

    _, separator, value = startup_text[start + len(marker):end].partition(":")
    if not separator:
        raise NotFoundError(f"{marker} line in validator output has no \":\" separator")

    path = value.strip().strip(QUOTE_CHARS).strip()
    if not path:
        raise NotFoundError(f"{marker} line in validator output is empty")
    return path


def check_ready(url: str, timeout: float = 2.0) -> ReadinessStatus:
    """Probe ``url`` once; any 2xx answer counts as ready."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.debug("Probe of %s failed: %s", url, type(e).__name__)
        return ReadinessStatus.NOT_READY

    if response.ok:
        return ReadinessStatus.READY
    logger.debug("Probe of %s answered HTTP %s", url, response.status_code)
    return ReadinessStatus.NOT_READY


def wait_until_ready(url: str, timeout: float, poll_interval: float = 1.0) -> ReadinessStatus:
    """
    Poll ``url`` until it answers or ``timeout`` seconds have passed.

    Returns:
        ReadinessStatus.READY, or ReadinessStatus.TIMED_OUT.
    """
    logger.info("Waiting for validator at %s (timeout: %ss)...", url, timeout)
    deadline = time.monotonic() + timeout
    attempt = 0

    while True:
        attempt += 1
        if check_ready(url) is ReadinessStatus.READY:
            logger.info("Validator answered after %s attempt(s)", attempt)
            return ReadinessStatus.READY
        if time.monotonic() >= deadline:
            logger.error("Validator did not answer within %ss", timeout)
            return ReadinessStatus.TIMED_OUT
        time.sleep(poll_interval)
