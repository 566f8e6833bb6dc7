# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import json
import base64
import binascii
from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

# ─── Project imports ───
from .telemetry import tlog
from .config import Settings
from .logger import get_logger
from .errors import ConfigurationError
from .control_plane import ControlPlane, control_plane_for
from .dispatcher import DispatchStatus, issue_change
from .resources import DesiredChange, ResourceKind, ResourceRef


logger = get_logger("deactivation")


class HandlerState(Enum):
    IDLE = auto()
    DISPATCHING = auto()

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class StopSignal:
    """
    One decoded Pub/Sub push delivery.

    `data` is the decoded message payload: a dict when it was a JSON object,
    otherwise the raw text (e.g. a plain "stop" string from Cloud Scheduler).
    """
    message_id: Optional[str]
    data: Any = None
    attributes: dict[str, str] = field(default_factory=dict)

    def targets(self) -> dict[str, str]:
        """
        Target identifiers named by the signal, if any.

        Looks at the JSON payload first, then at the message attributes.
        """
        found: dict[str, str] = {}
        sources = [self.attributes]
        if isinstance(self.data, dict):
            sources.insert(0, self.data)

        for source in sources:
            for key in ("project", "zone", "instance"):
                value = source.get(key)
                if value and key not in found:
                    found[key] = str(value)
        return found


def parse_push_envelope(body: Any) -> StopSignal:
    """
    Decode a Pub/Sub push body:
    {"message": {"data": "<base64>", "attributes": {...}, "messageId": "..."},
     "subscription": "..."}

    Raises:
        ValueError: the body is not a Pub/Sub push envelope.
    """
    if not isinstance(body, dict) or not isinstance(body.get("message"), dict):
        raise ValueError("Body is not a Pub/Sub push envelope (missing 'message')")

    message = body["message"]
    attributes = message.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise ValueError("Pub/Sub message attributes must be an object")

    data: Any = None
    raw = message.get("data")
    if raw:
        try:
            text = base64.b64decode(raw, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, TypeError) as e:
            raise ValueError(f"Pub/Sub message data is not base64 UTF-8: {e}") from e
        try:
            data = json.loads(text)
        except ValueError:
            data = text

    return StopSignal(
        message_id=message.get("messageId") or message.get("message_id"),
        data=data,
        attributes={str(k): str(v) for k, v in attributes.items()},
    )


@dataclass(frozen=True)
class DeactivationResult:
    """
    Acknowledged (stop issued or already in effect) or Rejected(reason).

    `fatal` rejections come from configuration and will not go away on
    redelivery; non-fatal ones come from a bad signal.
    """
    acknowledged: bool
    reason: str = ""
    fatal: bool = False
    change: Optional[DesiredChange] = None
    operation_id: Optional[str] = None
    already_satisfied: bool = False

    @classmethod
    def rejected(cls, reason: str, fatal: bool) -> "DeactivationResult":
        return cls(acknowledged=False, reason=reason, fatal=fatal)


class DeactivationHandler:
    """
    Push-triggered scale-down: stops (or suspends) the backing resource.

    State machine: IDLE → DISPATCHING → IDLE, one mutation per signal.

    • Missing configuration is a fatal rejection, never a best-effort stop
    • Control-plane errors propagate so the delivery system can redeliver
    • "Already stopped / in progress" acknowledges, so redelivery is harmless
    """

    def __init__(
        self,
        settings: Settings,
        control_plane_factory: Callable[..., ControlPlane] = control_plane_for,
    ):
        self.settings = settings
        self._control_plane_factory = control_plane_factory
        self.state = HandlerState.IDLE

    def _stop_change(self, ref: ResourceRef) -> DesiredChange:
        if ref.kind == ResourceKind.MANAGED_DATABASE:
            if self.settings.suspend_on_stop:
                raise ConfigurationError(
                    "SUSPEND_ON_STOP is not supported for Cloud SQL instances"
                )
            return DesiredChange.ACTIVATION_NEVER

        if self.settings.suspend_on_stop:
            return DesiredChange.SUSPEND
        return DesiredChange.STOP

    @staticmethod
    def _target_mismatch(ref: ResourceRef, targets: dict[str, str]) -> Optional[str]:
        expected = {"project": ref.project, "instance": ref.resource_id}
        if ref.location:
            expected["zone"] = ref.location

        for key, value in targets.items():
            if key in expected and value != expected[key]:
                return f"signal targets {key}={value!r}, configured {key}={expected[key]!r}"
        return None

    def on_stop_signal(self, signal: StopSignal) -> DeactivationResult:
        """
        Raises:
            ControlPlaneError: the stop/suspend call failed (not a conflict).
        """
        logger.info(
            f"Received stop signal {signal.message_id or 'N/A'}: "
            f"data={signal.data!r} attributes={signal.attributes}"
        )

        try:
            ref = self.settings.resource_ref()
            change = self._stop_change(ref)
        except ConfigurationError as e:
            logger.critical(f"Stop signal rejected: {e}")
            return DeactivationResult.rejected(str(e), fatal=True)

        mismatch = self._target_mismatch(ref, signal.targets())
        if mismatch:
            logger.warning(f"Stop signal rejected: {mismatch}")
            return DeactivationResult.rejected(mismatch, fatal=False)

        control_plane = self._control_plane_factory(ref.kind, self.settings.api_timeout_s)

        self.state = HandlerState.DISPATCHING
        try:
            result = issue_change(control_plane, ref, change)
        finally:
            self.state = HandlerState.IDLE

        if result.status == DispatchStatus.FAILED:
            raise result.error

        tlog(
            logger,
            "💤",
            "STOP",
            "ACKNOWLEDGED",
            primary=ref.resource_id,
            meta={"change": change, "operation": result.operation_id},
        )
        return DeactivationResult(
            acknowledged=True,
            change=change,
            operation_id=result.operation_id,
            already_satisfied=result.status == DispatchStatus.ALREADY_SATISFIED,
        )
