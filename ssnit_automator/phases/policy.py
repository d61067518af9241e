"""Response timeout and stuck-progress policies"""

from enum import Enum

import ssnit_automator.config as config


class TimeoutDecision(str, Enum):
    WAIT = "wait"
    RETRY = "retry"
    FAIL = "fail"


class ResponseTimeoutPolicy:
    """How long to wait for a response dialog after a submit

    Under the timeout: WAIT. First timeout: RETRY (resubmit once).
    Timeout after max_retries resubmits: FAIL.
    """

    def __init__(self, timeout_ms=None, max_retries=None):
        self.timeout_ms = config.RESPONSE_TIMEOUT_MS if timeout_ms is None else timeout_ms
        self.max_retries = config.MAX_SUBMIT_RETRIES if max_retries is None else max_retries

    def elapsed(self, submitted_at, now):
        return max(0, now - submitted_at)

    def is_timed_out(self, submitted_at, now):
        return self.elapsed(submitted_at, now) > self.timeout_ms

    def evaluate(self, submitted_at, retries, now):
        if not self.is_timed_out(submitted_at, now):
            return TimeoutDecision.WAIT
        if retries < self.max_retries:
            return TimeoutDecision.RETRY
        return TimeoutDecision.FAIL


class StuckCounter:
    """Ticks without progress. Reaching the limit forces an outcome."""

    def __init__(self, limit=None):
        self.limit = config.MAX_STUCK_COUNT if limit is None else limit
        self.count = 0

    def bump(self, limit=None):
        """Count one stuck tick. True once the limit is reached."""
        self.count += 1
        return self.count >= (self.limit if limit is None else limit)

    def reset(self):
        self.count = 0

    def __str__(self):
        return f"{self.count}/{self.limit}"
