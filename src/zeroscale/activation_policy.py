# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from typing import Optional

# ─── Project imports ───
from .resources import ActivationDecision, ActivationPolicy, ResourceKind, ResourceState


def decide(
    kind: ResourceKind,
    state: ResourceState,
    policy: Optional[ActivationPolicy] = None,
    resume_suspended: bool = False,
) -> ActivationDecision:
    """
    Decide whether a failed readiness probe should wake the backing resource.

    Pure function: no I/O, no clock, total over every input combination.

    Compute instance (policy ignored):
    • STOPPED                                   → TRIGGER_START
    • SUSPENDED with resume_suspended           → TRIGGER_RESUME
    • anything else                             → WAIT

    Managed database:
    • STOPPED (any policy)                      → TRIGGER_ACTIVATION_POLICY_CHANGE
    • RUNNING + NEVER                           → TRIGGER_ACTIVATION_POLICY_CHANGE
    • RUNNING + ALWAYS/UNSPECIFIED              → NO_ACTION
    • anything else                             → WAIT

    RUNNING + NEVER is what a scale-down leaves behind: the instance is
    runnable but held off, and only flipping the policy releases it.
    WAIT rows keep repeated probes during a transition from piling up
    redundant start calls.
    """
    if kind == ResourceKind.COMPUTE_INSTANCE:
        match state:
            case ResourceState.STOPPED:
                return ActivationDecision.TRIGGER_START
            case ResourceState.SUSPENDED if resume_suspended:
                return ActivationDecision.TRIGGER_RESUME
            case _:
                return ActivationDecision.WAIT

    match state:
        case ResourceState.STOPPED:
            return ActivationDecision.TRIGGER_ACTIVATION_POLICY_CHANGE
        case ResourceState.RUNNING if policy == ActivationPolicy.NEVER:
            return ActivationDecision.TRIGGER_ACTIVATION_POLICY_CHANGE
        case ResourceState.RUNNING:
            return ActivationDecision.NO_ACTION
        case _:
            return ActivationDecision.WAIT
