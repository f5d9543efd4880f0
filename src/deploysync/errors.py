"""Error taxonomy for reconciliation against the control-plane API.

Every failure the reconciler can surface maps onto one of these classes.
The reconciler never lets them escape a CRUD call: they are converted into
structured diagnostics (kind + message) on the ReconcileResult.

CLASSIFICATION:
The control plane reports errors through HTTP status codes, but some
intermediaries only surface a message string. Classification therefore
checks the typed status first and falls back to message markers, so
callers never hard-code one transport.
"""

from __future__ import annotations

from http import HTTPStatus


class DeploySyncError(Exception):
    """Base class for all package errors."""

    pass


class ValidationError(DeploySyncError):
    """Declared configuration is malformed.

    Raised before any remote call. Never retried.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ClientError(DeploySyncError):
    """A remote call failed.

    Attributes:
        status_code: HTTP status returned by the control plane, if any.
        operation: Short name of the gateway operation that failed.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        operation: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {base}"
        return base


class NotFoundError(ClientError):
    """The remote resource does not exist (HTTP 404)."""

    pass


class GatewayTimeoutError(ClientError):
    """The remote call timed out (HTTP 504 or a transport timeout).

    On the initial delete call this is provisional acceptance, not failure.
    """

    pass


class PollTimeoutError(DeploySyncError):
    """Deletion was not confirmed before the poll deadline.

    Distinct from ClientError: the remote side may still be deleting.
    """

    def __init__(self, message: str, attempts: int = 0, elapsed_seconds: float = 0.0) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds


class PollCancelledError(DeploySyncError):
    """The caller cancelled an in-flight deletion poll.

    The cancellation cause is chained as ``__cause__``.
    """

    pass


class OperationCancelledError(DeploySyncError):
    """Cancellation cause carried by a CancellationToken."""

    pass


class UnsupportedOperationError(DeploySyncError):
    """The resource kind has no update endpoint.

    Returned deterministically instead of emulating update with
    destroy+recreate, which could delete remote data the caller never
    meant to touch.
    """

    pass


class RequiresReplaceError(DeploySyncError):
    """A declared change touches a field that cannot be updated in place."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


_NOT_FOUND_MARKERS = ("404", "not found")
_TIMEOUT_MARKERS = ("504", "timeout", "timed out")


def is_not_found_error(err: BaseException | None) -> bool:
    """Check whether an error means the remote resource is gone."""
    if err is None:
        return False
    if isinstance(err, NotFoundError):
        return True
    if isinstance(err, ClientError) and err.status_code is not None:
        return err.status_code == HTTPStatus.NOT_FOUND
    message = str(err).lower()
    return any(marker in message for marker in _NOT_FOUND_MARKERS)


def is_timeout_error(err: BaseException | None) -> bool:
    """Check whether an error is a gateway or transport timeout."""
    if err is None:
        return False
    if isinstance(err, GatewayTimeoutError):
        return True
    if isinstance(err, ClientError) and err.status_code is not None:
        return err.status_code == HTTPStatus.GATEWAY_TIMEOUT
    message = str(err).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)
