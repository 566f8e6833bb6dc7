import os

import pytest

from unittest.mock import patch

from zeroscale.config import DatabaseCredentials, Settings
from zeroscale.errors import ConfigurationError
from zeroscale.resources import ResourceKind, ResourceRef

FULL_ENV = {
    "PROJECT_ID": "starbase",
    "GCE_ZONE": "us-central1-a",
    "WORDPRESS_DB_INSTANCE_ID": "wp-mysql",
    "WORDPRESS_DB_HOST": "10.0.0.5",
    "WORDPRESS_DB_NAME": "wordpress",
    "WORDPRESS_DB_USER": "wp",
    "WORDPRESS_DB_PASSWORD": "s3cret",
}


def test_from_env_defaults():
    settings = Settings.from_env(FULL_ENV)

    assert settings.resource_kind == ResourceKind.COMPUTE_INSTANCE
    assert settings.db_connect_timeout_s == 3.0
    assert settings.api_timeout_s == 8.0
    assert settings.suspend_on_stop is False
    assert settings.resume_suspended is False
    assert settings.max_wait_s == 180.0
    assert settings.poll_interval_s == 15.0
    assert settings.port == 8080


@patch.dict(os.environ, {
    **FULL_ENV,
    "RESOURCE_KIND": "Database",
    "SUSPEND_ON_STOP": "yes",
    "DB_CONNECT_TIMEOUT_SECONDS": "5",
    "MAX_WAIT_SECONDS_FOR_STARTUP": "240",
    "PORT": "9090",
    "LOG_LEVEL": "debug",
})
def test_from_env_reads_process_environment():
    """Overrides come from os.environ when no mapping is passed"""
    settings = Settings.from_env()

    assert settings.resource_kind == ResourceKind.MANAGED_DATABASE
    assert settings.suspend_on_stop is True
    assert settings.db_connect_timeout_s == 5.0
    assert settings.max_wait_s == 240.0
    assert settings.port == 9090
    assert settings.log_level == "debug"


@pytest.mark.parametrize(
    "name, value",
    [
        ("RESOURCE_KIND", "kubernetes"),
        ("SUSPEND_ON_STOP", "maybe"),
        ("DB_CONNECT_TIMEOUT_SECONDS", "three"),
        ("API_TIMEOUT", "0"),
        ("STARTUP_POLL_INTERVAL_SECONDS", "-5"),
        ("PORT", "8080.9"),
        ("PORT", "http"),
        ("PORT", "0"),
        ("PORT", "70000"),
    ],
)
def test_from_env_rejects_unparseable_values(name, value):
    with pytest.raises(ConfigurationError) as excinfo:
        Settings.from_env({**FULL_ENV, name: value})

    assert name in str(excinfo.value)


def test_blank_values_count_as_missing():
    settings = Settings.from_env({**FULL_ENV, "PROJECT_ID": "   "})

    with pytest.raises(ConfigurationError) as excinfo:
        settings.resource_ref()

    assert excinfo.value.missing == ("PROJECT_ID",)


def test_compute_resource_ref():
    ref = Settings.from_env(FULL_ENV).resource_ref()

    assert ref == ResourceRef("starbase", "wp-mysql", ResourceKind.COMPUTE_INSTANCE, "us-central1-a")
    assert ref.is_complete
    assert str(ref) == "starbase/us-central1-a/wp-mysql"


def test_database_resource_ref_has_no_location():
    """Cloud SQL needs no zone, even when one is set"""
    env = {**FULL_ENV, "RESOURCE_KIND": "database"}
    env.pop("GCE_ZONE")

    ref = Settings.from_env(env).resource_ref()

    assert ref.location is None
    assert ref.is_complete
    assert str(ref) == "starbase/wp-mysql"


def test_probe_inputs_names_every_missing_variable():
    env = {k: v for k, v in FULL_ENV.items() if k not in ("GCE_ZONE", "WORDPRESS_DB_PASSWORD")}

    with pytest.raises(ConfigurationError) as excinfo:
        Settings.from_env(env).probe_inputs()

    assert excinfo.value.missing == ("GCE_ZONE", "WORDPRESS_DB_PASSWORD")
    assert "GCE_ZONE, WORDPRESS_DB_PASSWORD" in str(excinfo.value)


def test_credentials_repr_masks_password():
    credentials = Settings.from_env(FULL_ENV).database_credentials()

    assert credentials == DatabaseCredentials("10.0.0.5", "wordpress", "wp", "s3cret")
    assert "s3cret" not in repr(credentials)


def test_summary_is_non_sensitive():
    summary = Settings.from_env(FULL_ENV).summary()

    assert summary["resource_kind"] == "compute"
    assert "s3cret" not in str(summary)
    assert "db_user" not in summary
