# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from dataclasses import dataclass
from typing import Optional

# ─── Project imports ───
from .telemetry import tlog
from .logger import get_logger
from .control_plane import ControlPlane
from .errors import ClassifierError, ControlPlaneError
from .resources import (
    STATE_EMOJI,
    ActivationPolicy,
    ResourceKind,
    ResourceRef,
    ResourceState,
)


logger = get_logger("classifier")


# Compute Engine `Instance.status`
COMPUTE_STATES = {
    "RUNNING": ResourceState.RUNNING,
    "TERMINATED": ResourceState.STOPPED,
    "STOPPED": ResourceState.STOPPED,
    "PROVISIONING": ResourceState.TRANSITIONING,
    "STAGING": ResourceState.TRANSITIONING,
    "STOPPING": ResourceState.TRANSITIONING,
    "SUSPENDING": ResourceState.TRANSITIONING,
    "REPAIRING": ResourceState.TRANSITIONING,
    "SUSPENDED": ResourceState.SUSPENDED,
}

# Cloud SQL `DatabaseInstance.state`
DATABASE_STATES = {
    "RUNNABLE": ResourceState.RUNNING,
    "STOPPED": ResourceState.STOPPED,
    "PENDING_CREATE": ResourceState.TRANSITIONING,
    "PENDING_DELETE": ResourceState.TRANSITIONING,
    "MAINTENANCE": ResourceState.TRANSITIONING,
    "ONLINE_MAINTENANCE": ResourceState.TRANSITIONING,
    "REPAIRING": ResourceState.TRANSITIONING,
    "SUSPENDED": ResourceState.SUSPENDED,
    "FAILED": ResourceState.ERROR,
}

# Cloud SQL `Settings.activationPolicy`
ACTIVATION_POLICIES = {
    "ALWAYS": ActivationPolicy.ALWAYS,
    "NEVER": ActivationPolicy.NEVER,
}


@dataclass(frozen=True)
class Classification:
    """
    Normalized view of one control-plane read.

    `policy` is None for compute instances (they have no activation policy).
    Raw provider strings are kept for diagnostics only.
    """
    state: ResourceState
    policy: Optional[ActivationPolicy]
    raw_state: Optional[str]
    raw_policy: Optional[str] = None

    def describe(self) -> str:
        text = f"{self.raw_state or 'UNKNOWN_STATE'} ({self.state})"
        if self.policy is not None:
            text += f", activation policy {self.raw_policy or 'UNSPECIFIED'} ({self.policy})"
        return text


def normalize_state(kind: ResourceKind, raw: Optional[str]) -> ResourceState:
    """
    Map a provider status string to the closed ResourceState set.

    Anything unrecognized is UNKNOWN; it is never guessed as running or stopped.
    """
    table = COMPUTE_STATES if kind == ResourceKind.COMPUTE_INSTANCE else DATABASE_STATES
    if not raw:
        return ResourceState.UNKNOWN
    return table.get(raw.strip().upper(), ResourceState.UNKNOWN)


def normalize_policy(raw: Optional[str]) -> ActivationPolicy:
    if not raw:
        return ActivationPolicy.UNSPECIFIED
    return ACTIVATION_POLICIES.get(raw.strip().upper(), ActivationPolicy.UNSPECIFIED)


class ResourceStateClassifier:
    """
    Reads the backing resource once and normalizes what it sees.

    Non-responsibilities:
    • No waiting for state changes (the orchestrator retries)
    • No decisions about what to do with the state
    """

    def __init__(self, control_plane: ControlPlane):
        self.control_plane = control_plane

    def classify(self, ref: ResourceRef) -> Classification:
        """
        Raises:
            ClassifierError: the control-plane read failed, so the state is
                             not known at all (distinct from ResourceState.UNKNOWN).
        """
        logger.info(f"Checking {ref.kind} '{ref.resource_id}' ({ref}) state")

        try:
            snapshot = self.control_plane.get(ref)
        except ControlPlaneError as e:
            tlog(logger, "🔴", "CLASSIFY", "ERROR", primary=ref.resource_id, meta=str(e))
            raise ClassifierError(str(e), status=e.status, reason=e.reason) from e

        state = normalize_state(ref.kind, snapshot.status)
        if state == ResourceState.UNKNOWN and snapshot.status:
            logger.warning(
                f"Could not map {ref.kind} status {snapshot.status!r} to a known state"
            )

        policy = None
        if ref.kind == ResourceKind.MANAGED_DATABASE:
            policy = normalize_policy(snapshot.activation_policy)

        classification = Classification(
            state=state,
            policy=policy,
            raw_state=snapshot.status,
            raw_policy=snapshot.activation_policy,
        )

        tlog(
            logger,
            STATE_EMOJI[state],
            "CLASSIFY",
            str(state),
            primary=ref.resource_id,
            meta=classification.describe(),
        )
        return classification
