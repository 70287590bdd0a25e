"""Blocking wait for a resource to reach a lifecycle state."""

import threading
import time
from typing import Callable

from .utils import log, warn

POLL_INTERVAL = 5.0


def wait_for_state(
    get_state: Callable[[str], str],
    resource_name: str,
    target_state: str,
    *,
    interval: float = POLL_INTERVAL,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll a resource at a fixed interval until it reports the target state.

    Without a timeout this blocks until the state is observed. The state is
    compared as an opaque string, so any resource with a state getter works.

    :param get_state: Callable returning the current state for a resource name
    :param resource_name: Name passed to get_state
    :param target_state: State to wait for (e.g. 'running')
    :param interval: Seconds between polls
    :param timeout: Give up after this many seconds (None waits forever)
    :param cancel: Event that aborts the wait when set
    :param sleep: Sleep function, replaced in tests
    :param clock: Monotonic clock, replaced in tests
    :return: True once the target state is seen, False on timeout or cancel
    """
    started = clock()
    while True:
        state = get_state(resource_name)
        log(f"'{resource_name}' state: {state}")
        if state == target_state:
            return True
        if cancel is not None and cancel.is_set():
            warn(f"Cancelled waiting for '{resource_name}' to reach '{target_state}'")
            return False
        if timeout is not None and clock() - started >= timeout:
            warn(
                f"Timed out after {timeout:g}s waiting for '{resource_name}' "
                f"to reach '{target_state}' (last state: {state})"
            )
            return False
        sleep(interval)
