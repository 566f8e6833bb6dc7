# --- Standard library imports ---
import sys

# --- Third-party imports ---
import uvicorn

# --- Project imports ---
from .config import Settings
from .app import create_app
from .errors import ConfigurationError
from .logger import get_logger, resolve_level, setup_logging


def main():
    """
    Entry point for the probe / scale-down service.

    Resolves configuration once, configures logging and serves the app on
    $PORT, the way Cloud Run expects. A broken configuration still serves,
    so every probe can answer 500 with the reason.
    """

    try:
        settings = Settings.from_env()
    except ConfigurationError:
        settings = None   # create_app() logs the reason once logging is up

    # Setup logging policy
    setup_logging(level=resolve_level(settings.log_level if settings else None))
    logger = get_logger("main")
    logger.info("🚀 Starting zeroscale startup probe")
    logger.debug(f"Python version: {sys.version}")

    app = create_app(settings)
    port = settings.port if settings is not None else 8080

    uvicorn.run(app, host="0.0.0.0", port=port, log_config=None)

if __name__ == "__main__":
    main()
