"""
Error taxonomy shared by every component.

Provider exceptions (requests, google.auth, pymysql) are converted into one of
these at the component boundary; nothing else is allowed to reach the HTTP
layer.
"""

# ─── Future imports ───
from __future__ import annotations


class ConfigurationError(RuntimeError):
    """
    Missing or invalid required input.

    Fatal: it will not change across orchestrator retries, so it is reported
    as HTTP 500 and an operator has to fix the environment.
    """

    def __init__(self, message: str, missing: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing


class TransientUnavailable(RuntimeError):
    """
    The database or its backing resource is not usable yet (HTTP 503, retryable).
    """


class ControlPlaneError(TransientUnavailable):
    """
    A cloud control-plane call failed (auth, not-found, rate limit, bad request).

    Reported to the orchestrator as a plain 503, but keeps enough detail
    (status + API reason) for the operator log.
    """

    # API reasons meaning "someone else already asked for this"
    CONFLICT_REASONS = frozenset({
        "operationInProgress",
        "conflict",
        "instanceAlreadyRunning",
        "instanceAlreadyStopped",
    })

    def __init__(
        self,
        message: str,
        status: int | None = None,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.reason = reason

    @property
    def already_satisfied(self) -> bool:
        """
        True when the failure means the desired change is already underway
        or already in effect, i.e. a concurrent probe got there first.

        Decided on status and API reason only. "Not ready" replies are real
        failures: the resource is mid-transition and the change did not happen.
        """
        return self.status == 409 or self.reason in self.CONFLICT_REASONS

    def summary(self) -> str:
        """Short, non-sensitive description for response bodies."""
        parts = [p for p in (str(self.status or ""), self.reason or "") if p]
        return " ".join(parts) or "control-plane error"


class ClassifierError(ControlPlaneError):
    """
    The resource state could not be determined (as opposed to being Unknown).
    """
