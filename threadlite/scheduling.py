"""GIL release cadence and busy retry for native stepping.

The host's cooperative scheduling lock is the GIL. A native call made through
the PyDLL view of the engine keeps it; the same call made through the CDLL
view drops it for the call's duration so other threads run meanwhile.
"""
import itertools
import logging
import numbers
import time

from .errors import ArgumentError
from .native import load_library, load_releasing_library, SQLITE_BUSY

logger = logging.getLogger(__name__)

DEFAULT_YIELD_THRESHOLD = 1000

# Same ladder the engine's own busy-timeout handler walks, in seconds.
BUSY_DELAYS = (0.001, 0.002, 0.005, 0.010, 0.015, 0.020, 0.025, 0.025, 0.025, 0.050, 0.050, 0.100)


def normalize_yield_threshold(value):
    if value is None:
        return DEFAULT_YIELD_THRESHOLD
    if isinstance(value, bool) or not isinstance(value, int):
        raise ArgumentError(f"Invalid yield threshold {value!r}: expected a non-negative integer or None")
    if value < 0:
        raise ArgumentError(f"Invalid yield threshold {value!r}: must not be negative")
    return value


def normalize_busy_timeout(value):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ArgumentError(f"Invalid busy timeout {value!r}: expected seconds or None")
    if value < 0:
        raise ArgumentError(f"Invalid busy timeout {value!r}: must not be negative")
    return float(value)


class CooperativeYieldController:
    """Per-statement step counter deciding when a step runs without the GIL.

    Threshold 0 holds the GIL for the whole statement. Otherwise the first
    step of an execution, and every step on which the counter reaches the
    threshold, run with the GIL released and restart the count.
    """

    def __init__(self, connection):
        self._connection = connection
        self._count = 0
        self._hold = load_library()
        self._release = load_releasing_library()

    def reset(self):
        self._count = 0

    def releases_next(self, started):
        threshold = self._connection._yield_threshold
        if threshold == 0:
            return False
        self._count += 1
        if not started or self._count >= threshold:
            self._count = 0
            return True
        return False

    def call(self, started, name, *args):
        lib = self._release if self.releases_next(started) else self._hold
        return getattr(lib, name)(*args)


class BusyRetryController:
    """Retries an operation that reports lock contention, up to a deadline.

    ``timeout`` of None means a single attempt. Any other value, including 0,
    retries at least once; the GIL is released while sleeping between tries.
    """

    def __init__(self, timeout=None):
        self.timeout = normalize_busy_timeout(timeout)

    def run(self, attempt, retryable=True, contention=(SQLITE_BUSY,)):
        timeout = self.timeout
        started = time.monotonic()
        rc = attempt()
        if rc not in contention or timeout is None or not retryable:
            return rc

        for tries in itertools.count(1):
            rc = attempt()
            if rc not in contention:
                if tries > 1:
                    logger.debug("Contention cleared after %d retries", tries)
                return rc
            remaining = timeout - (time.monotonic() - started)
            if remaining <= 0:
                logger.debug("Busy timeout of %.3fs exceeded after %d retries", timeout, tries)
                return rc
            delay = BUSY_DELAYS[min(tries - 1, len(BUSY_DELAYS) - 1)]
            time.sleep(min(delay, remaining))
