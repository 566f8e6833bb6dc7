import pytest
import pymysql

from fakes import FakeConnect, FakeConnection

from zeroscale.config import DatabaseCredentials
from zeroscale.errors import ConfigurationError
from zeroscale.connectivity import ConnectivityProber, describe_db_error, parse_db_host

CREDENTIALS = DatabaseCredentials(host="10.0.0.5:3307", name="wordpress", user="wp", password="s3cret")


def make_prober(connect):
    return ConnectivityProber(CREDENTIALS, timeout_s=3, connect=connect)


def test_probe_ready():
    """Happy path: connect, SELECT 1 returns 1, connection closed"""
    connection = FakeConnection(row=(1,))
    connect = FakeConnect(connection)

    result = make_prober(connect).probe()

    assert result.ready is True
    assert result.detail == "OK"
    assert connection.closed is True
    assert connection.cursors[0].executed == ["SELECT 1"]


def test_probe_passes_explicit_timeouts():
    """The driver gets our short timeout, not its own default"""
    connect = FakeConnect()

    make_prober(connect).probe()

    kwargs = connect.calls[0]
    assert kwargs["host"] == "10.0.0.5"
    assert kwargs["port"] == 3307
    assert kwargs["database"] == "wordpress"
    assert kwargs["connect_timeout"] == 3
    assert kwargs["read_timeout"] == 3
    assert kwargs["defer_connect"] is True


@pytest.mark.parametrize(
    "row",
    [
        (None,),     # ❌ NULL
        ("1",),      # ❌ wrong type
        (True,),     # ❌ bool is not the integer 1
        (1.0,),      # ❌ float is not the integer 1
        (2,),        # ❌ wrong value
        (),          # ❌ empty row
        None,        # ❌ no row at all
    ],
)
def test_probe_rejects_anything_but_literal_one(row):
    """Only the exact scalar 1 counts as ready"""
    connection = FakeConnection(row=row)

    result = make_prober(FakeConnect(connection)).probe()

    assert result.ready is False
    assert "expected 1" in result.detail
    assert connection.closed is True


@pytest.mark.parametrize(
    "error, expected_detail",
    [
        # ⏱️ Driver connect timeout
        (pymysql.err.OperationalError(2003, "Can't connect to MySQL server (timed out)"), "2003"),
        # 🔒 Access denied
        (pymysql.err.OperationalError(1045, "Access denied for user 'wp'"), "1045"),
        # 🌐 Socket level failure
        (ConnectionRefusedError("Connection refused"), "ConnectionRefusedError"),
        # 🔐 caching_sha2_password full login without the rsa extra
        (RuntimeError("'cryptography' package is required for sha256_password or caching_sha2_password auth methods"), "RuntimeError"),
    ],
)
def test_probe_connect_failure_is_unreachable(error, expected_detail):
    """Driver errors never escape the prober"""
    connection = FakeConnection(connect_error=error)

    result = make_prober(FakeConnect(connection)).probe()

    assert result.ready is False
    assert result.detail.startswith("connect failed")
    assert expected_detail in result.detail


def test_probe_unexpected_query_error_is_unreachable():
    """Errors outside pymysql.err never escape the prober either"""
    connection = FakeConnection(query_error=IndexError("index out of range"))

    result = make_prober(FakeConnect(connection)).probe()

    assert result.ready is False
    assert "IndexError" in result.detail
    assert connection.closed is True


def test_probe_query_failure_is_unreachable():
    """A connection that cannot serve a query is not usable"""
    connection = FakeConnection(query_error=pymysql.err.OperationalError(2013, "Lost connection"))

    result = make_prober(FakeConnect(connection)).probe()

    assert result.ready is False
    assert "liveness query failed" in result.detail
    assert connection.closed is True


def test_probe_never_leaks_password():
    connection = FakeConnection(connect_error=pymysql.err.OperationalError(1045, "Access denied"))

    result = make_prober(FakeConnect(connection)).probe()

    assert "s3cret" not in result.detail
    assert "s3cret" not in repr(CREDENTIALS)


def test_probe_client_init_failure_is_fatal():
    """A client that cannot even be built is a configuration problem"""
    connect = FakeConnect(init_error=TypeError("unexpected keyword argument"))

    with pytest.raises(ConfigurationError):
        make_prober(connect).probe()


@pytest.mark.parametrize(
    "host, expected, should_raise_error",
    [
        ("10.0.0.5", {"host": "10.0.0.5"}, False),
        ("db.internal:3307", {"host": "db.internal", "port": 3307}, False),
        ("localhost:/cloudsql/starbase:us-central1:wp-sql", {"host": "localhost", "unix_socket": "/cloudsql/starbase:us-central1:wp-sql"}, False),
        (":/var/run/mysqld/mysqld.sock", {"host": "localhost", "unix_socket": "/var/run/mysqld/mysqld.sock"}, False),
        ("db.internal:mysql", None, True),
    ],
)
def test_parse_db_host(host, expected, should_raise_error):
    if should_raise_error:
        with pytest.raises(ConfigurationError):
            parse_db_host(host)
    else:
        assert parse_db_host(host) == expected


def test_describe_db_error():
    assert describe_db_error(pymysql.err.OperationalError(2003, "timed out")) == "2003: timed out"
    assert describe_db_error(OSError("boom")) == "OSError: boom"
