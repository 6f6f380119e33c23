"""
Provider Errors - Error taxonomy shared by every provider component.

All errors raised by the adapter, the projector, the waiter and the cluster
client derive from ProviderError so that callers can catch one type. Errors
are never retried or recovered locally; the adapter only annotates them with
the operation and the resource identifier before re-raising.
"""

from typing import Optional


class ProviderError(Exception):
    """Base class for all provider errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        identifier: Optional[str] = None,
    ):
        self.message = message
        self.operation = operation
        self.identifier = identifier
        super().__init__(message)

    def with_context(
        self, operation: str, identifier: Optional[str] = None
    ) -> "ProviderError":
        """
        Attach operation context if none was recorded yet.

        The innermost context wins, so an error that already carries an
        operation name keeps it when it bubbles through outer operations.

        Args:
            operation: Lifecycle verb that failed (e.g. 'create').
            identifier: External identifier of the resource, if known.

        Returns:
            The same error instance, for ``raise err.with_context(...)``.
        """
        if self.operation is None:
            self.operation = operation
        if self.identifier is None:
            self.identifier = identifier
        return self

    def __str__(self) -> str:
        if self.operation and self.identifier:
            return f"{self.operation} {self.identifier}: {self.message}"
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class InvalidIdentity(ProviderError):
    """Namespace or name cannot be composed into an identifier."""


class MalformedIdentifier(ProviderError):
    """Identifier string cannot be split into namespace and name."""


class ValidationError(ProviderError):
    """Configuration record does not match the kind's schema."""


class StateError(ProviderError):
    """Lifecycle verb invoked from a state that does not allow it."""


class NotFound(ProviderError):
    """Remote object does not exist."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} {namespace}/{name} not found")


class RemoteError(ProviderError):
    """Failure reported by the remote store, message passed through as-is."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        if status is not None:
            message = f"remote store returned {status}: {message}"
        super().__init__(message)


class Timeout(ProviderError):
    """Operation or wait did not finish within its deadline."""


class Cancelled(ProviderError):
    """Wait was cancelled by the caller."""


class PollError(ProviderError):
    """Poll function failed while waiting for a target state."""
