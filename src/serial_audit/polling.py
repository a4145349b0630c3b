"""Fixed-interval polling with a hard deadline."""

import threading
import time
from enum import Enum
from typing import Callable, Optional


class AuditCancelled(Exception):
    """Raised when the run is cancelled while waiting."""


class PollOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    TIMEOUT = "TIMEOUT"


def wait_or_cancel(seconds: float, cancel: Optional[threading.Event] = None) -> None:
    """Sleep for ``seconds``, returning early with AuditCancelled if ``cancel`` is set."""
    if cancel is None:
        time.sleep(seconds)
        return
    if cancel.wait(seconds):
        raise AuditCancelled("cancelled while waiting")


def raise_if_cancelled(cancel: Optional[threading.Event] = None) -> None:
    if cancel is not None and cancel.is_set():
        raise AuditCancelled("cancelled")


def poll_until(
    condition: Callable[[], bool],
    *,
    interval: float = 1.0,
    timeout: float = 60.0,
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
) -> PollOutcome:
    """
    Call ``condition`` every ``interval`` seconds until it returns True or ``timeout`` passes.

    Exceptions raised by ``condition`` propagate unchanged.

    Returns:
        PollOutcome.SUCCESS or PollOutcome.TIMEOUT

    Raises:
        AuditCancelled: If ``cancel`` is set while waiting
    """
    deadline = clock() + timeout
    while True:
        if cancel is not None and cancel.is_set():
            raise AuditCancelled("cancelled while polling")
        if condition():
            return PollOutcome.SUCCESS
        remaining = deadline - clock()
        if remaining <= 0:
            return PollOutcome.TIMEOUT
        wait_or_cancel(min(interval, remaining), cancel)
