"""Single-slot delivery helpers.

A ``concurrent.futures.Future`` accepts exactly one result. Producers use
``deliver`` so that a second or late value is dropped instead of raising.
"""

import logging
from concurrent.futures import Future, InvalidStateError
from typing import Any

logger = logging.getLogger(__name__)


def deliver(slot: Future, value: Any) -> bool:
    """Put value into slot unless it already holds one.

    Returns:
        True if this call filled the slot, False if the value was dropped.
    """
    try:
        slot.set_result(value)
    except InvalidStateError:
        logger.debug("Slot already filled, dropping late delivery")
        return False
    return True


def first_of(*slots: Future) -> Future:
    """Return a future that resolves to whichever slot completes first.

    The result of the returned future is the winning slot itself, so the
    caller can tell which source delivered.
    """
    winner: Future = Future()
    for slot in slots:
        slot.add_done_callback(lambda done: deliver(winner, done))
    return winner
