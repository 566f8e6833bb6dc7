# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from enum import Enum, auto
from dataclasses import dataclass


class ResourceKind(Enum):
    """
    Backing resource flavours the controller knows how to wake.

    • COMPUTE_INSTANCE : Compute Engine VM running MySQL (start/stop/suspend)
    • MANAGED_DATABASE : Cloud SQL instance (activation policy ALWAYS/NEVER)
    """
    COMPUTE_INSTANCE = "compute"
    MANAGED_DATABASE = "database"

    def __str__(self) -> str:
        return self.name


class ResourceState(Enum):
    """
    Normalized lifecycle state.

    Invariants:
    • Provider values we do not recognize map to UNKNOWN, never RUNNING/STOPPED
    • TRANSITIONING covers starting/stopping/provisioning/repairing sub-states
    """
    RUNNING = auto()
    STOPPED = auto()
    TRANSITIONING = auto()
    SUSPENDED = auto()
    UNKNOWN = auto()
    ERROR = auto()

    def __str__(self) -> str:
        return self.name


class ActivationPolicy(Enum):
    """
    Intent flag persisted on a managed database (absent for VMs).
    """
    ALWAYS = auto()
    NEVER = auto()
    UNSPECIFIED = auto()

    def __str__(self) -> str:
        return self.name


class ActivationDecision(Enum):
    NO_ACTION = auto()
    TRIGGER_START = auto()
    TRIGGER_RESUME = auto()
    TRIGGER_ACTIVATION_POLICY_CHANGE = auto()
    WAIT = auto()

    @property
    def actionable(self) -> bool:
        return self not in (ActivationDecision.NO_ACTION, ActivationDecision.WAIT)

    def __str__(self) -> str:
        return self.name


class DesiredChange(Enum):
    """
    The single mutation a control-plane `mutate` call carries.
    """
    START = auto()
    RESUME = auto()
    STOP = auto()
    SUSPEND = auto()
    ACTIVATION_ALWAYS = auto()
    ACTIVATION_NEVER = auto()

    def __str__(self) -> str:
        return self.name


STATE_EMOJI = {
    ResourceState.RUNNING:       "💚",
    ResourceState.STOPPED:       "⚫",
    ResourceState.TRANSITIONING: "🟡",
    ResourceState.SUSPENDED:     "💤",
    ResourceState.UNKNOWN:       "⚪",
    ResourceState.ERROR:         "🔴",
}


@dataclass(frozen=True)
class ResourceRef:
    """
    Identifies one control-plane resource.

    `location` is the zone of a Compute Engine instance. Cloud SQL addresses
    instances by project + id, so it stays None for MANAGED_DATABASE.
    """
    project: str
    resource_id: str
    kind: ResourceKind
    location: str | None = None

    def missing_fields(self) -> tuple[str, ...]:
        missing = []
        if not self.project:
            missing.append("project")
        if not self.resource_id:
            missing.append("resource_id")
        if self.kind == ResourceKind.COMPUTE_INSTANCE and not self.location:
            missing.append("location")
        return tuple(missing)

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def __str__(self) -> str:
        if self.location:
            return f"{self.project}/{self.location}/{self.resource_id}"
        return f"{self.project}/{self.resource_id}"


@dataclass(frozen=True)
class ResourceSnapshot:
    """
    Raw reply of a control-plane `get`: provider strings, not yet normalized.
    """
    status: str | None
    activation_policy: str | None = None


@dataclass(frozen=True)
class Operation:
    """
    Handle of an asynchronous control-plane mutation.
    """
    operation_id: str | None
    done: bool = False
