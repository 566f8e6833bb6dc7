import logging

import pytest

from zeroscale.config import Settings
from zeroscale.resources import ResourceKind


DB_CREDENTIALS = {
    "db_host": "10.0.0.5",
    "db_name": "wordpress",
    "db_user": "wp",
    "db_password": "s3cret",
}


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def compute_settings():
    """Fully configured Compute Engine deployment."""
    return Settings(
        project_id="starbase",
        resource_kind=ResourceKind.COMPUTE_INSTANCE,
        zone="us-central1-a",
        instance_id="wp-mysql",
        **DB_CREDENTIALS,
    )


@pytest.fixture
def database_settings():
    """Fully configured Cloud SQL deployment."""
    return Settings(
        project_id="starbase",
        resource_kind=ResourceKind.MANAGED_DATABASE,
        instance_id="wp-sql",
        **DB_CREDENTIALS,
    )
