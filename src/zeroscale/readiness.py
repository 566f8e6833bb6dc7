# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import time
from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, Callable, Optional

# ─── Third-party imports ───
import pymysql

# ─── Project imports ───
from .telemetry import tlog
from .config import DatabaseCredentials, Settings
from .logger import get_logger
from .activation_policy import decide
from .errors import ClassifierError, ConfigurationError
from .connectivity import ConnectivityProber, ConnectivityResult
from .control_plane import ControlPlane, control_plane_for
from .classifier import Classification, ResourceStateClassifier
from .dispatcher import ActivationDispatcher, DispatchResult, DispatchStatus
from .resources import ActivationDecision, ResourceKind, ResourceRef, ResourceState


logger = get_logger("readiness")


class ProbeStatus(Enum):
    """
    • READY         : database reachable and live-query verified
    • NOT_READY     : anything transient; the orchestrator should retry
    • MISCONFIGURED : required input missing; retrying will not help
    """
    READY = auto()
    NOT_READY = auto()
    MISCONFIGURED = auto()

    def __str__(self) -> str:
        return self.name


PROBE_EMOJI = {
    ProbeStatus.READY:         "💚",
    ProbeStatus.NOT_READY:     "🟡",
    ProbeStatus.MISCONFIGURED: "🔥",
}

RESOURCE_LABELS = {
    ResourceKind.COMPUTE_INSTANCE: "Compute Engine instance",
    ResourceKind.MANAGED_DATABASE: "Cloud SQL instance",
}


@dataclass(frozen=True)
class ProbeOutcome:
    status: ProbeStatus
    reason: str = ""
    classification: Optional[Classification] = None
    decision: Optional[ActivationDecision] = None
    dispatch: Optional[DispatchResult] = None

    @classmethod
    def ready(cls) -> "ProbeOutcome":
        return cls(ProbeStatus.READY, "OK")

    @classmethod
    def misconfigured(cls, reason: str) -> "ProbeOutcome":
        return cls(ProbeStatus.MISCONFIGURED, reason)


@dataclass(frozen=True)
class ProbeReport:
    """
    What the HTTP boundary sends back to the orchestrator.
    """
    status_code: int
    body: str


def report(outcome: ProbeOutcome) -> ProbeReport:
    """
    Map a probe outcome onto the orchestrator's status-code contract.

    500 is not retryable, 200 routes traffic, 503 means "try again later".
    """
    match outcome.status:
        case ProbeStatus.READY:
            return ProbeReport(200, "OK")
        case ProbeStatus.MISCONFIGURED:
            return ProbeReport(500, f"Critical Error: {outcome.reason}")
        case _:
            return ProbeReport(503, f"Service Unavailable: {outcome.reason}")


class ReadinessProbe:
    """
    Startup probe that wakes a scaled-to-zero database on demand.

    Flow per invocation (stateless):
        probe DB → ready? 200
                 → classify resource → decide → dispatch (optional) → 503

    Non-responsibilities:
    • No retries or backoff on the default path (the orchestrator retries)
    • No waiting for the resource, except in `run_blocking`
    """

    def __init__(
        self,
        settings: Settings,
        connect: Callable[..., Any] = pymysql.connect,
        control_plane_factory: Callable[..., ControlPlane] = control_plane_for,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings
        self._connect = connect
        self._control_plane_factory = control_plane_factory
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic

    # ──────────────────────────────────────────────────────────────
    # Public entry points
    # ──────────────────────────────────────────────────────────────

    def check_health(self) -> ProbeOutcome:
        """
        Warm health check: database probe only, no control-plane traffic.
        """
        try:
            prober = self._prober(self.settings.database_credentials())
            result = prober.probe()
        except ConfigurationError as e:
            return self._emit(ProbeOutcome.misconfigured(str(e)))

        if result.ready:
            return self._emit(ProbeOutcome.ready())
        return self._emit(
            ProbeOutcome(ProbeStatus.NOT_READY, f"Database not ready: {result.detail}")
        )

    def run(self) -> ProbeOutcome:
        """
        Single readiness probe with on-demand activation.
        """
        try:
            ref, credentials = self.settings.probe_inputs()
            prober = self._prober(credentials)
            result = prober.probe()
        except ConfigurationError as e:
            return self._emit(ProbeOutcome.misconfigured(str(e)))

        if result.ready:
            return self._emit(ProbeOutcome.ready())

        return self._emit(self._wake(ref, result))

    def run_blocking(self) -> ProbeOutcome:
        """
        Readiness probe that waits in-request for the resource to come up.

        Only for callers whose timeout budget exceeds typical start latency:
        after the usual wake attempt it re-polls the resource every
        `poll_interval_s` until RUNNING or `max_wait_s` elapses, then probes
        the database once more.
        """
        try:
            ref, credentials = self.settings.probe_inputs()
            prober = self._prober(credentials)
            result = prober.probe()
        except ConfigurationError as e:
            return self._emit(ProbeOutcome.misconfigured(str(e)))

        if result.ready:
            return self._emit(ProbeOutcome.ready())

        outcome = self._wake(ref, result)
        if outcome.classification is None:
            return self._emit(outcome)
        if outcome.dispatch is not None and outcome.dispatch.status == DispatchStatus.FAILED:
            return self._emit(outcome)

        classification = self._wait_until_running(ref, outcome.classification)
        if classification.state != ResourceState.RUNNING:
            return self._emit(ProbeOutcome(
                ProbeStatus.NOT_READY,
                f"{self._label(ref)} did not become RUNNING within "
                f"{self.settings.max_wait_s:g} seconds. "
                f"Last state: {classification.describe()}. Probe will retry.",
                classification=classification,
                decision=outcome.decision,
                dispatch=outcome.dispatch,
            ))

        result = prober.probe()
        if result.ready:
            return self._emit(ProbeOutcome.ready())

        return self._emit(ProbeOutcome(
            ProbeStatus.NOT_READY,
            f"{self._label(ref)} is RUNNING but the database is not ready yet "
            f"({result.detail}). Probe will retry.",
            classification=classification,
            decision=outcome.decision,
            dispatch=outcome.dispatch,
        ))

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    def _prober(self, credentials: DatabaseCredentials) -> ConnectivityProber:
        return ConnectivityProber(
            credentials,
            timeout_s=self.settings.db_connect_timeout_s,
            connect=self._connect,
        )

    def _control_plane(self, ref: ResourceRef) -> ControlPlane:
        return self._control_plane_factory(ref.kind, self.settings.api_timeout_s)

    @staticmethod
    def _label(ref: ResourceRef) -> str:
        return f"{RESOURCE_LABELS[ref.kind]} '{ref.resource_id}'"

    def _wake(self, ref: ResourceRef, probe_result: ConnectivityResult) -> ProbeOutcome:
        """
        Classify the backing resource, decide, and dispatch at most one mutation.
        """
        logger.info(
            f"Database not directly accessible ({probe_result.detail}). "
            f"Checking {self._label(ref)}."
        )
        control_plane = self._control_plane(ref)

        try:
            classification = ResourceStateClassifier(control_plane).classify(ref)
        except ClassifierError as e:
            logger.error(f"Could not determine state of {self._label(ref)}: {e}")
            return ProbeOutcome(
                ProbeStatus.NOT_READY,
                f"Database not ready. Could not determine state of "
                f"{self._label(ref)} ({e.summary()}). Probe will retry.",
            )

        decision = decide(
            ref.kind,
            classification.state,
            classification.policy,
            resume_suspended=self.settings.resume_suspended,
        )
        tlog(logger, "🧭", "DECIDE", str(decision), primary=ref.resource_id)

        if decision == ActivationDecision.NO_ACTION:
            logger.warning(
                f"{self._label(ref)} is {classification.describe()}, but the DB "
                f"connection via '{self.settings.db_host}' failed. Possible "
                f"network/proxy issue or the server is still initializing."
            )

        dispatch = ActivationDispatcher(control_plane).dispatch(ref, decision)

        reason = (
            f"Database not ready. {self._label(ref)} current state: "
            f"{classification.describe()}"
        )
        if dispatch.status == DispatchStatus.ACCEPTED:
            reason += f"; {dispatch.change} requested"
        elif dispatch.status == DispatchStatus.ALREADY_SATISFIED:
            reason += f"; {dispatch.change} already in progress"
        elif dispatch.status == DispatchStatus.FAILED:
            reason += f"; {dispatch.change} failed ({dispatch.detail})"
        reason += ". Probe will retry."

        return ProbeOutcome(
            ProbeStatus.NOT_READY,
            reason,
            classification=classification,
            decision=decision,
            dispatch=dispatch,
        )

    def _wait_until_running(
        self,
        ref: ResourceRef,
        classification: Classification,
    ) -> Classification:
        """
        Bounded re-poll of the resource state. Classifier errors are logged
        and polling continues until the deadline.
        """
        if classification.state == ResourceState.RUNNING:
            return classification

        classifier = ResourceStateClassifier(self._control_plane(ref))
        started = self._clock()
        deadline = started + self.settings.max_wait_s

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return classification

            self._sleep(min(self.settings.poll_interval_s, remaining))
            waited = self._clock() - started

            try:
                classification = classifier.classify(ref)
            except ClassifierError as e:
                logger.warning(f"State poll failed after {waited:.0f}s: {e}")
                continue

            if classification.state == ResourceState.RUNNING:
                logger.info(f"{self._label(ref)} is RUNNING after {waited:.0f} seconds")
                return classification

            logger.info(
                f"Waiting for {self._label(ref)} ({classification.state})... "
                f"{waited:.0f}s / {self.settings.max_wait_s:g}s"
            )

    def _emit(self, outcome: ProbeOutcome) -> ProbeOutcome:
        tlog(logger, PROBE_EMOJI[outcome.status], "PROBE", str(outcome.status))

        match outcome.status:
            case ProbeStatus.READY:
                logger.success("Database connection verified. Probe succeeded.")
            case ProbeStatus.MISCONFIGURED:
                logger.critical(f"Probe failed (500): {outcome.reason}")
            case _:
                logger.info(f"Probe failed (503): {outcome.reason}")
        return outcome
