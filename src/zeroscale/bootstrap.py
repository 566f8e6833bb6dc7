# ─── Standard library imports ───
from typing import Optional

# ─── Project imports ───
from .config import Settings
from .logger import get_logger
from .errors import ConfigurationError
from .resources import ResourceKind


logger = get_logger("bootstrap")


def bootstrap(settings: Optional[Settings] = None) -> tuple[Optional[Settings], Optional[ConfigurationError]]:
    """
    Resolve configuration once at process start and check its invariants.

    An unparseable environment is not raised: the service still has to come
    up and answer every probe with a 500 so the operator sees why.

    Returns:
        (settings, None) on success, (None, error) if configuration is unusable.
    """
    if settings is None:
        try:
            settings = Settings.from_env()
        except ConfigurationError as e:
            logger.critical(f"Configuration invalid: {e}")
            return None, e

    _warn_on_soft_invariants(settings)
    print_summary(settings)
    return settings, None

def _warn_on_soft_invariants(settings: Settings) -> None:
    """
    Combinations that are legal but almost certainly not what the operator wants.
    """
    if (
        settings.resource_kind == ResourceKind.COMPUTE_INSTANCE
        and settings.suspend_on_stop
        and not settings.resume_suspended
    ):
        logger.warning(
            "SUSPEND_ON_STOP=true but RESUME_SUSPENDED=false; "
            "a suspended instance will never be woken by the startup probe"
        )

    if settings.poll_interval_s > settings.max_wait_s:
        logger.warning(
            f"STARTUP_POLL_INTERVAL_SECONDS ({settings.poll_interval_s:g}s) exceeds "
            f"MAX_WAIT_SECONDS_FOR_STARTUP ({settings.max_wait_s:g}s); "
            f"the blocking wait will re-check at most once"
        )

    for missing in _missing_required(settings):
        logger.warning(f"{missing} is not set; affected endpoints will answer 500")

def _missing_required(settings: Settings) -> tuple[str, ...]:
    try:
        settings.probe_inputs()
    except ConfigurationError as e:
        return e.missing
    return ()

def print_summary(settings: Settings) -> None:
    logger.info("===== Runtime Summary =====")
    for key, value in settings.summary().items():
        logger.info(f"{key + ':':<24} {value}")
    logger.info("===========================")
