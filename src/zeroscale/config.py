# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import os
from dataclasses import dataclass
from typing import Mapping, Optional

# ─── Third-party imports ───
from dotenv import load_dotenv

# ─── Project imports ───
from .errors import ConfigurationError
from .resources import ResourceKind, ResourceRef


# ─── Environment variable names ───
ENV_PROJECT_ID = "PROJECT_ID"
ENV_RESOURCE_KIND = "RESOURCE_KIND"
ENV_ZONE = "GCE_ZONE"
ENV_INSTANCE_ID = "WORDPRESS_DB_INSTANCE_ID"
ENV_DB_HOST = "WORDPRESS_DB_HOST"
ENV_DB_NAME = "WORDPRESS_DB_NAME"
ENV_DB_USER = "WORDPRESS_DB_USER"
ENV_DB_PASSWORD = "WORDPRESS_DB_PASSWORD"

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class DatabaseCredentials:
    host: str
    name: str
    user: str
    password: str

    def __repr__(self) -> str:
        # Never leak the password into logs or tracebacks
        return (
            f"DatabaseCredentials(host={self.host!r}, name={self.name!r}, "
            f"user={self.user!r}, password='***')"
        )


@dataclass(frozen=True)
class Settings:
    """
    Every tunable of the controller, resolved once at process start.

    Required values are kept Optional here and checked by the accessor of the
    operation that needs them, so the stop handler does not fail because DB
    credentials (which it never uses) are absent.
    """

    # ─── Resource identity ───
    project_id: Optional[str] = None
    resource_kind: ResourceKind = ResourceKind.COMPUTE_INSTANCE
    zone: Optional[str] = None
    instance_id: Optional[str] = None

    # ─── Database credentials ───
    db_host: Optional[str] = None
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None

    # ─── Network Policy ───
    db_connect_timeout_s: float = 3.0
    api_timeout_s: float = 8.0

    # ─── Lifecycle Policy ───
    suspend_on_stop: bool = False
    resume_suspended: bool = False

    # ─── Blocking-wait Policy ───
    max_wait_s: float = 180.0
    poll_interval_s: float = 15.0

    # ─── Observability / Serving ───
    log_level: str = "INFO"
    port: int = 8080

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build Settings from the process environment (plus `.env` if present).

        Raises:
            ConfigurationError: a tunable is present but cannot be parsed.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        def text(name: str) -> Optional[str]:
            value = environ.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        return cls(
            project_id=text(ENV_PROJECT_ID),
            resource_kind=_parse_kind(text(ENV_RESOURCE_KIND)),
            zone=text(ENV_ZONE),
            instance_id=text(ENV_INSTANCE_ID),
            db_host=text(ENV_DB_HOST),
            db_name=text(ENV_DB_NAME),
            db_user=text(ENV_DB_USER),
            db_password=environ.get(ENV_DB_PASSWORD) or None,
            db_connect_timeout_s=_parse_positive(
                "DB_CONNECT_TIMEOUT_SECONDS", text("DB_CONNECT_TIMEOUT_SECONDS"), 3.0
            ),
            api_timeout_s=_parse_positive("API_TIMEOUT", text("API_TIMEOUT"), 8.0),
            suspend_on_stop=_parse_bool("SUSPEND_ON_STOP", text("SUSPEND_ON_STOP"), False),
            resume_suspended=_parse_bool("RESUME_SUSPENDED", text("RESUME_SUSPENDED"), False),
            max_wait_s=_parse_positive(
                "MAX_WAIT_SECONDS_FOR_STARTUP", text("MAX_WAIT_SECONDS_FOR_STARTUP"), 180.0
            ),
            poll_interval_s=_parse_positive(
                "STARTUP_POLL_INTERVAL_SECONDS", text("STARTUP_POLL_INTERVAL_SECONDS"), 15.0
            ),
            log_level=text("LOG_LEVEL") or "INFO",
            port=_parse_port(text("PORT")),
        )

    # ─── Accessors (validate on use) ───

    def resource_ref(self) -> ResourceRef:
        """
        Return the fully resolved ResourceRef or raise ConfigurationError.
        """
        required = {ENV_PROJECT_ID: self.project_id, ENV_INSTANCE_ID: self.instance_id}
        if self.resource_kind == ResourceKind.COMPUTE_INSTANCE:
            required[ENV_ZONE] = self.zone

        _require(required)

        return ResourceRef(
            project=self.project_id,
            resource_id=self.instance_id,
            kind=self.resource_kind,
            location=self.zone if self.resource_kind == ResourceKind.COMPUTE_INSTANCE else None,
        )

    def database_credentials(self) -> DatabaseCredentials:
        """
        Return the MySQL credentials or raise ConfigurationError.
        """
        _require({
            ENV_DB_HOST: self.db_host,
            ENV_DB_NAME: self.db_name,
            ENV_DB_USER: self.db_user,
            ENV_DB_PASSWORD: self.db_password,
        })
        return DatabaseCredentials(
            host=self.db_host,
            name=self.db_name,
            user=self.db_user,
            password=self.db_password,
        )

    def probe_inputs(self) -> tuple[ResourceRef, DatabaseCredentials]:
        """
        Everything a readiness probe needs, validated together so the 500
        body names every missing variable at once.
        """
        missing: list[str] = []
        for accessor in (self.resource_ref, self.database_credentials):
            try:
                accessor()
            except ConfigurationError as e:
                missing.extend(e.missing)

        if missing:
            _require({name: None for name in missing})

        return self.resource_ref(), self.database_credentials()

    def summary(self) -> dict[str, object]:
        """
        Non-sensitive view of the effective configuration for startup logs.
        """
        return {
            "project_id": self.project_id,
            "resource_kind": self.resource_kind.value,
            "zone": self.zone,
            "instance_id": self.instance_id,
            "db_host": self.db_host,
            "db_name": self.db_name,
            "db_connect_timeout_s": self.db_connect_timeout_s,
            "api_timeout_s": self.api_timeout_s,
            "suspend_on_stop": self.suspend_on_stop,
            "resume_suspended": self.resume_suspended,
            "max_wait_s": self.max_wait_s,
            "poll_interval_s": self.poll_interval_s,
        }


# ─── Parsing helpers ───

def _require(values: dict[str, Optional[str]]) -> None:
    missing = tuple(name for name, value in values.items() if not value)
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing,
        )

def _parse_kind(raw: Optional[str]) -> ResourceKind:
    if raw is None:
        return ResourceKind.COMPUTE_INSTANCE
    try:
        return ResourceKind(raw.lower())
    except ValueError:
        allowed = ", ".join(k.value for k in ResourceKind)
        raise ConfigurationError(
            f"{ENV_RESOURCE_KIND}={raw!r} is not one of: {allowed}"
        ) from None

def _parse_bool(name: str, raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name}={raw!r} is not a boolean")

def _parse_port(raw: Optional[str]) -> int:
    if raw is None:
        return 8080
    try:
        port = int(raw)
    except ValueError:
        raise ConfigurationError(f"PORT={raw!r} is not an integer") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT must be between 1 and 65535, got {raw!r}")
    return port

def _parse_positive(name: str, raw: Optional[str], default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name}={raw!r} is not a number") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value
