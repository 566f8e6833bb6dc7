# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional

# ─── Project imports ───
from .telemetry import tlog
from .logger import get_logger
from .errors import ControlPlaneError
from .control_plane import ControlPlane
from .resources import ActivationDecision, DesiredChange, ResourceRef


logger = get_logger("dispatcher")


class DispatchStatus(Enum):
    ACCEPTED = auto()
    ALREADY_SATISFIED = auto()
    FAILED = auto()
    SKIPPED = auto()   # decision needed no mutation

    def __str__(self) -> str:
        return self.name


DISPATCH_EMOJI = {
    DispatchStatus.ACCEPTED:          "🚀",
    DispatchStatus.ALREADY_SATISFIED: "🟢",
    DispatchStatus.FAILED:            "🔴",
    DispatchStatus.SKIPPED:           "⚪",
}


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    change: Optional[DesiredChange] = None
    operation_id: Optional[str] = None
    detail: str = ""
    error: Optional[ControlPlaneError] = None

    @property
    def ok(self) -> bool:
        return self.status != DispatchStatus.FAILED


# Wake decisions → the one mutation each of them issues
DECISION_CHANGES = {
    ActivationDecision.TRIGGER_START: DesiredChange.START,
    ActivationDecision.TRIGGER_RESUME: DesiredChange.RESUME,
    ActivationDecision.TRIGGER_ACTIVATION_POLICY_CHANGE: DesiredChange.ACTIVATION_ALWAYS,
}


def issue_change(
    control_plane: ControlPlane,
    ref: ResourceRef,
    change: DesiredChange,
) -> DispatchResult:
    """
    Issue exactly one asynchronous mutation and classify the reply.

    Never polls the returned operation. Conflict replies ("operation in
    progress", "already running/stopped") count as ALREADY_SATISFIED so that
    overlapping probes or redelivered signals do not surface as failures.
    """
    try:
        operation = control_plane.mutate(ref, change)
    except ControlPlaneError as e:
        if e.already_satisfied:
            result = DispatchResult(
                DispatchStatus.ALREADY_SATISFIED, change=change, detail=e.summary()
            )
        else:
            logger.error(f"{change} for {ref.kind} '{ref.resource_id}' failed: {e}")
            result = DispatchResult(
                DispatchStatus.FAILED, change=change, detail=e.summary(), error=e
            )
    else:
        result = DispatchResult(
            DispatchStatus.ACCEPTED,
            change=change,
            operation_id=operation.operation_id,
            detail=f"done={operation.done}",
        )

    tlog(
        logger,
        DISPATCH_EMOJI[result.status],
        "DISPATCH",
        str(result.status),
        primary=str(change),
        meta={
            "resource": ref.resource_id,
            "operation": result.operation_id,
            "detail": result.detail,
        },
    )
    return result


class ActivationDispatcher:
    """
    Turns an ActivationDecision into at most one control-plane mutation.
    """

    def __init__(self, control_plane: ControlPlane):
        self.control_plane = control_plane

    def dispatch(self, ref: ResourceRef, decision: ActivationDecision) -> DispatchResult:
        change = DECISION_CHANGES.get(decision)
        if change is None:
            logger.debug(f"Decision {decision} needs no mutation")
            return DispatchResult(DispatchStatus.SKIPPED, detail=str(decision))

        logger.info(f"{ref.kind} '{ref.resource_id}' → {decision}, issuing {change}")
        return issue_change(self.control_plane, ref, change)
