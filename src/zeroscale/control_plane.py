# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import json
from typing import Optional, Protocol

# ─── Third-party imports ───
import requests
import google.auth
from google.auth import exceptions as auth_exceptions
from google.auth.transport.requests import AuthorizedSession

# ─── Project imports ───
from .logger import get_logger
from .errors import ControlPlaneError
from .resources import DesiredChange, Operation, ResourceKind, ResourceRef, ResourceSnapshot


COMPUTE_API_BASE_URL = "https://compute.googleapis.com/compute/v1"
SQLADMIN_API_BASE_URL = "https://sqladmin.googleapis.com/v1"
SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class ControlPlane(Protocol):
    """
    Capability the controller needs from a cloud management API.
    """

    kind: ResourceKind

    def get(self, ref: ResourceRef) -> ResourceSnapshot: ...

    def mutate(self, ref: ResourceRef, change: DesiredChange) -> Operation: ...


class GoogleRestClient:
    """
    Thin REST transport shared by the Compute Engine and Cloud SQL Admin clients.

    Authentication uses Application Default Credentials (the Cloud Run service
    account in production). Every failure is converted to ControlPlaneError.
    """

    kind: ResourceKind
    service_name = "Google Cloud"
    default_base_url = ""

    def __init__(
        self,
        timeout_s: float,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.timeout_s = timeout_s
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self._session = session

    def _get_session(self) -> requests.Session:
        """
        Returns the existing session or creates an authorized one.
        """
        if self._session is not None:
            return self._session

        try:
            credentials, _ = google.auth.default(scopes=SCOPES)
        except auth_exceptions.DefaultCredentialsError as e:
            raise ControlPlaneError(
                f"{self.service_name} credentials unavailable: {e}",
                reason="credentials",
            ) from e

        self._session = AuthorizedSession(credentials)
        self.logger.debug(f"New authorized session for {self.service_name}")
        return self._session

    def _check_ref(self, ref: ResourceRef) -> None:
        if ref.kind != self.kind:
            raise ValueError(f"{self.__class__.__name__} cannot handle {ref.kind} resources")

    def _request(self, method: str, url: str, payload: Optional[dict] = None) -> dict:
        session = self._get_session()
        self.logger.debug(f"{method} → {url}")

        try:
            resp = session.request(method, url, json=payload, timeout=self.timeout_s)
        except auth_exceptions.GoogleAuthError as e:
            raise ControlPlaneError(
                f"{self.service_name} authentication failed: {e}",
                reason="auth",
            ) from e
        except requests.RequestException as e:
            raise ControlPlaneError(
                f"{self.service_name} {method} request failed ({e.__class__.__name__})",
                reason="network",
            ) from e

        if not resp.ok:
            raise self._api_error(method, resp)

        try:
            data = resp.json()
        except ValueError as e:
            raise ControlPlaneError(
                f"{self.service_name} {method} succeeded but response was not valid JSON",
                status=resp.status_code,
                reason="invalidResponse",
            ) from e

        self.logger.debug(f"{method} JSON response:\n{json.dumps(data, indent=2)}")
        return data

    def _api_error(self, method: str, resp: requests.Response) -> ControlPlaneError:
        """
        Build a ControlPlaneError from a Google API error envelope:
        {"error": {"code": 409, "message": "...", "errors": [{"reason": "..."}], "status": "..."}}
        """
        reason = None
        message = resp.reason or ""
        try:
            error = resp.json().get("error") or {}
        except ValueError:
            error = {}

        if isinstance(error, dict):
            message = error.get("message") or message
            details = error.get("errors") or []
            if details and isinstance(details[0], dict):
                reason = details[0].get("reason")
            reason = reason or error.get("status")

        return ControlPlaneError(
            f"{self.service_name} {method} failed with HTTP {resp.status_code}: {message}",
            status=resp.status_code,
            reason=reason,
        )

    @staticmethod
    def _operation(data: dict) -> Operation:
        return Operation(
            operation_id=data.get("name") or data.get("id"),
            done=data.get("status") == "DONE",
        )


class ComputeInstancesClient(GoogleRestClient):
    """
    Compute Engine v1 instances: get / start / stop / suspend / resume.
    """

    kind = ResourceKind.COMPUTE_INSTANCE
    service_name = "Compute Engine"
    default_base_url = COMPUTE_API_BASE_URL

    ACTIONS = {
        DesiredChange.START: "start",
        DesiredChange.STOP: "stop",
        DesiredChange.SUSPEND: "suspend",
        DesiredChange.RESUME: "resume",
    }

    def _instance_url(self, ref: ResourceRef) -> str:
        return (
            f"{self.base_url}/projects/{ref.project}"
            f"/zones/{ref.location}/instances/{ref.resource_id}"
        )

    def get(self, ref: ResourceRef) -> ResourceSnapshot:
        self._check_ref(ref)
        data = self._request("GET", self._instance_url(ref))
        return ResourceSnapshot(status=data.get("status"))

    def mutate(self, ref: ResourceRef, change: DesiredChange) -> Operation:
        self._check_ref(ref)
        action = self.ACTIONS.get(change)
        if action is None:
            raise ValueError(f"{change} is not a Compute Engine instance action")

        data = self._request("POST", f"{self._instance_url(ref)}/{action}")
        return self._operation(data)


class SqlInstancesClient(GoogleRestClient):
    """
    Cloud SQL Admin v1 instances: get / patch settings.activationPolicy.

    A Cloud SQL instance is started and stopped by flipping its activation
    policy. The PATCH body names only `settings.activationPolicy`, so the
    update is scoped to that single field and cannot clobber concurrent
    changes to other settings.
    """

    kind = ResourceKind.MANAGED_DATABASE
    service_name = "Cloud SQL Admin"
    default_base_url = SQLADMIN_API_BASE_URL

    POLICIES = {
        DesiredChange.ACTIVATION_ALWAYS: "ALWAYS",
        DesiredChange.ACTIVATION_NEVER: "NEVER",
    }

    def _instance_url(self, ref: ResourceRef) -> str:
        return f"{self.base_url}/projects/{ref.project}/instances/{ref.resource_id}"

    def get(self, ref: ResourceRef) -> ResourceSnapshot:
        self._check_ref(ref)
        data = self._request("GET", self._instance_url(ref))
        settings = data.get("settings") or {}
        return ResourceSnapshot(
            status=data.get("state"),
            activation_policy=settings.get("activationPolicy"),
        )

    def mutate(self, ref: ResourceRef, change: DesiredChange) -> Operation:
        self._check_ref(ref)
        policy = self.POLICIES.get(change)
        if policy is None:
            raise ValueError(f"{change} is not a Cloud SQL activation policy change")

        body = {"settings": {"activationPolicy": policy}}
        data = self._request("PATCH", self._instance_url(ref), payload=body)
        return self._operation(data)


def control_plane_for(
    kind: ResourceKind,
    timeout_s: float,
    session: Optional[requests.Session] = None,
) -> GoogleRestClient:
    """
    Pick the REST client matching the configured resource kind.
    """
    if kind == ResourceKind.COMPUTE_INSTANCE:
        return ComputeInstancesClient(timeout_s, session=session)
    return SqlInstancesClient(timeout_s, session=session)
