# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import time
from dataclasses import dataclass
from typing import Any, Callable

# ─── Third-party imports ───
import pymysql

# ─── Project imports ───
from .telemetry import tlog
from .logger import get_logger
from .config import DatabaseCredentials
from .errors import ConfigurationError


logger = get_logger("connectivity")


@dataclass(frozen=True)
class ConnectivityResult:
    """
    Outcome of a single bounded connect + liveness query.

    `detail` is safe to show to the orchestrator (no credentials).
    """
    ready: bool
    detail: str
    elapsed_ms: float = 0.0


def parse_db_host(host: str) -> dict[str, Any]:
    """
    Split a WordPress-style DB_HOST into PyMySQL connect kwargs.

    Accepted forms:
      - "10.0.0.5"                       → host
      - "10.0.0.5:3307"                  → host + port
      - "localhost:/cloudsql/p:r:i"      → unix socket (Cloud SQL connector)
    """
    if ":" not in host:
        return {"host": host}

    hostname, _, rest = host.partition(":")
    if rest.startswith("/"):
        return {"host": hostname or "localhost", "unix_socket": rest}

    if rest.isdigit():
        return {"host": hostname, "port": int(rest)}

    raise ConfigurationError(f"Unparseable database host {host!r}")


def describe_db_error(exc: BaseException) -> str:
    """
    Render a driver error as "code: message" when the driver gives both.
    """
    args = getattr(exc, "args", ())
    if len(args) == 2 and isinstance(args[0], int):
        return f"{args[0]}: {args[1]}"
    return f"{exc.__class__.__name__}: {exc}"


class ConnectivityProber:
    """
    Cheap readiness check against the downstream MySQL database.

    • Explicit connect timeout, well below the orchestrator's probe timeout
    • A connection only counts if `SELECT 1` returns exactly the integer 1
    • Driver failures become an unreachable result, never an exception
    """

    LIVENESS_QUERY = "SELECT 1"
    EXPECTED_SCALAR = 1

    def __init__(
        self,
        credentials: DatabaseCredentials,
        timeout_s: float,
        connect: Callable[..., Any] = pymysql.connect,
    ):
        self.credentials = credentials
        self.timeout_s = timeout_s
        self._connect = connect

    def probe(self) -> ConnectivityResult:
        """
        Connect, run the liveness query and close.

        Raises:
            ConfigurationError: the driver client could not be initialized
                                (local problem, retrying will not help).
        """
        start = time.monotonic()
        target = f"{self.credentials.host}/{self.credentials.name}"

        try:
            conn = self._connect(
                **parse_db_host(self.credentials.host),
                user=self.credentials.user,
                password=self.credentials.password,
                database=self.credentials.name,
                connect_timeout=self.timeout_s,
                read_timeout=self.timeout_s,
                write_timeout=self.timeout_s,
                defer_connect=True,
            )
        except (TypeError, ValueError) as e:
            logger.critical(f"MySQL client initialization failed: {e}")
            raise ConfigurationError("Failed to initialize MySQL client") from e

        logger.info(
            f"Attempting DB connection to '{target}' "
            f"with timeout {self.timeout_s:g}s"
        )

        # PyMySQL also raises RuntimeError (auth plugin support missing) and
        # struct/index errors on truncated packets; all of them mean unreachable.
        try:
            conn.connect()
        except Exception as e:
            return self._unreachable(start, target, f"connect failed ({describe_db_error(e)})")

        try:
            with conn.cursor() as cursor:
                cursor.execute(self.LIVENESS_QUERY)
                row = cursor.fetchone()
        except Exception as e:
            return self._unreachable(
                start, target, f"liveness query failed ({describe_db_error(e)})"
            )
        finally:
            self._close(conn)

        value = row[0] if row else None
        if type(value) is not int or value != self.EXPECTED_SCALAR:
            return self._unreachable(
                start, target, f"liveness query returned {value!r}, expected 1"
            )

        elapsed_ms = (time.monotonic() - start) * 1000
        tlog(logger, "💚", "PROBE", "READY", primary=target, meta=f"{elapsed_ms:.0f} ms")
        return ConnectivityResult(ready=True, detail="OK", elapsed_ms=elapsed_ms)

    def _unreachable(self, start: float, target: str, detail: str) -> ConnectivityResult:
        elapsed_ms = (time.monotonic() - start) * 1000
        tlog(logger, "🔴", "PROBE", "UNREACHABLE", primary=target, meta=detail)
        return ConnectivityResult(ready=False, detail=detail, elapsed_ms=elapsed_ms)

    @staticmethod
    def _close(conn: Any) -> None:
        try:
            conn.close()
        except pymysql.err.Error as e:
            logger.debug(f"Ignoring error while closing MySQL connection: {e}")
