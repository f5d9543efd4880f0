"""Deletion confirmation polling.

The control plane deletes deployments asynchronously: the delete call
returns (or times out) long before the resource is actually gone. The
poller turns that into a bounded, cancellable wait.

STATE MACHINE:
    INITIATED -> POLLING -> CONFIRMED | TIMED_OUT | CANCELLED
    INITIATED -> FAILED   (initial delete call failed for a non-timeout reason)

1. Issue the delete call. A timeout-classified error is provisional
   acceptance; any other error is fatal.
2. Probe the resource until it is reported not-found. Any other probe error
   is transient, since the resource may be mid-transition.
3. Stop when the caller cancels (PollCancelledError) or the wall-clock
   deadline elapses (PollTimeoutError).

Time is read through an injectable ``Clock`` so tests advance time
deterministically instead of sleeping.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, NoReturn, Protocol

from .config import DEFAULT_DELETE_DEADLINE_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS, Config
from .errors import (
    OperationCancelledError,
    PollCancelledError,
    PollTimeoutError,
    is_not_found_error,
    is_timeout_error,
)

logger = logging.getLogger(__name__)


class PollState(str, Enum):
    INITIATED = "initiated"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CancellationToken:
    """Caller-owned cancellation signal.

    Thread-safe: the orchestrator may cancel from any thread while the poll
    loop is waiting.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "operation cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds. Returns True if cancelled."""
        return self._event.wait(timeout)

    def cause(self) -> OperationCancelledError:
        return OperationCancelledError(self._reason or "operation cancelled")


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def wait(self, seconds: float, cancel: CancellationToken | None = None) -> bool:
        """Wait ``seconds``, returning early with True if cancelled."""
        ...


class SystemClock:
    """Real clock. Waits on the cancellation event so cancel is prompt."""

    def monotonic(self) -> float:
        return time.monotonic()

    def wait(self, seconds: float, cancel: CancellationToken | None = None) -> bool:
        if cancel is None:
            time.sleep(seconds)
            return False
        return cancel.wait(seconds)


@dataclass(frozen=True)
class PollOutcome:
    """Terminal result of a confirmed deletion."""

    state: PollState
    attempts: int
    elapsed_seconds: float


class DeletionPoller:
    """Bounded deletion confirmation loop.

    Args:
        clock: Time source (defaults to SystemClock).
        interval_seconds: Wait between probes.
        deadline_seconds: Wall-clock budget for the polling phase.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        deadline_seconds: float = DEFAULT_DELETE_DEADLINE_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if deadline_seconds < interval_seconds:
            raise ValueError("deadline_seconds cannot be shorter than interval_seconds")
        self._clock = clock or SystemClock()
        self._interval = interval_seconds
        self._deadline = deadline_seconds

    @classmethod
    def from_config(cls, config: Config, clock: Clock | None = None) -> DeletionPoller:
        return cls(
            clock=clock,
            interval_seconds=config.poll_interval_seconds,
            deadline_seconds=config.delete_deadline_seconds,
        )

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def deadline_seconds(self) -> float:
        return self._deadline

    def run(
        self,
        delete_call: Callable[[], Any],
        probe: Callable[[], Any],
        cancel: CancellationToken | None = None,
        resource: str = "",
    ) -> PollOutcome:
        """Delete a resource and wait until the control plane reports it gone.

        Args:
            delete_call: Issues the delete request.
            probe: Looks the resource up; raises a not-found error once gone.
            cancel: Optional caller cancellation signal.
            resource: Identity used in log records.

        Returns:
            PollOutcome in state CONFIRMED.

        Raises:
            ClientError: The initial delete call failed for a non-timeout reason.
            PollCancelledError: The caller cancelled; the cause is chained.
            PollTimeoutError: The deadline elapsed without a not-found probe.
        """
        state = PollState.INITIATED
        try:
            delete_call()
        except Exception as e:
            if not is_timeout_error(e):
                logger.error(
                    "Delete call failed",
                    extra={"resource": resource, "state": PollState.FAILED.value, "error": str(e)},
                )
                raise
            logger.info(
                "Delete call timed out, treating as accepted",
                extra={"resource": resource, "error": str(e)},
            )

        state = PollState.POLLING
        started = self._clock.monotonic()
        deadline = started + self._deadline
        attempts = 0

        while self._clock.monotonic() < deadline:
            if cancel is not None and cancel.cancelled:
                self._cancelled(cancel, resource, attempts)

            attempts += 1
            try:
                probe()
            except Exception as e:
                if is_not_found_error(e):
                    state = PollState.CONFIRMED
                    elapsed = self._clock.monotonic() - started
                    logger.info(
                        "Deletion confirmed",
                        extra={
                            "resource": resource,
                            "attempts": attempts,
                            "elapsed_seconds": elapsed,
                        },
                    )
                    return PollOutcome(state=state, attempts=attempts, elapsed_seconds=elapsed)
                logger.warning(
                    "Transient error while polling deletion",
                    extra={"resource": resource, "attempt": attempts, "error": str(e)},
                )
            else:
                logger.debug(
                    "Resource still present",
                    extra={"resource": resource, "attempt": attempts, "state": state.value},
                )

            remaining = deadline - self._clock.monotonic()
            if remaining > 0 and self._clock.wait(min(self._interval, remaining), cancel):
                # Cancellation during the last wait wins over the deadline
                if cancel is not None:
                    self._cancelled(cancel, resource, attempts)

        elapsed = self._clock.monotonic() - started
        logger.error(
            "Deletion not confirmed before deadline",
            extra={
                "resource": resource,
                "state": PollState.TIMED_OUT.value,
                "attempts": attempts,
                "elapsed_seconds": elapsed,
            },
        )
        raise PollTimeoutError(
            f"Timed out after {self._deadline:g}s waiting for deletion of "
            f"{resource or 'resource'}; the control plane may still be deleting it",
            attempts=attempts,
            elapsed_seconds=elapsed,
        )

    @staticmethod
    def _cancelled(cancel: CancellationToken, resource: str, attempts: int) -> NoReturn:
        logger.warning(
            "Deletion polling cancelled",
            extra={"resource": resource, "attempts": attempts, "reason": cancel.reason},
        )
        raise PollCancelledError(
            f"Deletion of {resource or 'resource'} cancelled after {attempts} polls"
        ) from cancel.cause()
