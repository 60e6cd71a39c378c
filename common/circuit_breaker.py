# common/circuit_breaker.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    In-memory circuit breaker guarding calls to a sibling service.

    Used by the reviews and listings services when calling the rooms
    service, and by the users service when loading dashboard listings.

    Parameters
    ----------
    name : str
        Dependency name, reported in logs.
    max_failures : int
        Consecutive failures that open the circuit.
    reset_timeout_seconds : int
        How long an open circuit blocks calls before one trial call is
        let through (half-open).
    """

    def __init__(self, name: str, max_failures: int = 3, reset_timeout_seconds: int = 30):
        self.name = name
        self.max_failures = max_failures
        self.reset_timeout = timedelta(seconds=reset_timeout_seconds)
        self.failure_count = 0
        self.state = CLOSED
        self.last_failure_time: Optional[datetime] = None

    def allow_request(self) -> bool:
        """Return False while the circuit is open and the timeout has not passed."""
        if self.state != OPEN:
            return True
        if self.last_failure_time is None:
            return False
        if datetime.now(timezone.utc) - self.last_failure_time < self.reset_timeout:
            return False
        self.state = HALF_OPEN
        return True

    def record_success(self) -> None:
        self.failure_count = 0
        self.state = CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = datetime.now(timezone.utc)
        if self.failure_count >= self.max_failures and self.state != OPEN:
            logger.warning(
                f"Circuit {self.name} opened after {self.failure_count} failures",
                extra={"dependency": self.name},
            )
            self.state = OPEN

    def reset(self) -> None:
        self.record_success()
