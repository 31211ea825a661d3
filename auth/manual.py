"""Manual authorization code entry.

Fallback for when the browser cannot reach the local callback (SSH,
containers, another machine). The operator pastes either the bare code or
the whole redirect URL.
"""

import logging
from concurrent.futures import Future
from threading import Event, Thread
from typing import Callable
from urllib.parse import parse_qs, urlparse

from auth.signals import deliver

logger = logging.getLogger(__name__)

PROMPT = "Paste authorization code here (or wait for automatic callback): "


def extract_code(text: str) -> str:
    """Return the authorization code from pasted text.

    Accepts a bare code or a redirect URL carrying a ``code`` query parameter.
    """
    text = text.strip()
    if "code=" in text:
        codes = parse_qs(urlparse(text).query).get("code")
        if codes:
            return codes[0].strip()
    return text


class ManualCodeReader:
    """Reads one line of operator input on a background thread."""

    def __init__(self, input_func: Callable[[str], str] = input, prompt: str = PROMPT) -> None:
        self.code: Future = Future()
        self._input_func = input_func
        self._prompt = prompt
        self._stopped = Event()

    def start(self) -> None:
        Thread(target=self._run, name="oauth-manual-input", daemon=True).start()

    def stop(self) -> None:
        """Mark the session over; a line read after this is discarded."""
        self._stopped.set()

    def _run(self) -> None:
        try:
            line = self._input_func(self._prompt)
        except (EOFError, OSError) as e:
            logger.debug("Manual input closed: %s", e)
            return

        if self._stopped.is_set():
            return
        code = extract_code(line)
        if code and deliver(self.code, code):
            logger.info("Authorization code received via manual entry")
