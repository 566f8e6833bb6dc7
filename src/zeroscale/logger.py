# --- Standard library imports ---
import sys
import logging


# --- Custom log levels ---
SUCCESS = 25   # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS, "SUCCESS")

def success(self, message, *args, **kwargs):
    """Add `success` method to Logger for probe-succeeded lines."""
    if self.isEnabledFor(SUCCESS):
        self._log(SUCCESS, message, args, stacklevel=2, **kwargs)

logging.Logger.success = success

# --- Format configuration constants ---
LOG_LEVEL_EMOJIS = {
    logging.DEBUG: "🧱",
    logging.INFO: "🟢",
    SUCCESS: "💚",
    logging.WARNING: "⚠️ ",
    logging.ERROR: "❌",
    logging.CRITICAL: "🔥",
}

LEVEL_NAME_MAP = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
}

# --- Formatters ---
class EmojiFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        """
        Formatter that prepends an emoji per
        log level and shortens log level names.
        """
        record.levelemoji = LOG_LEVEL_EMOJIS.get(record.levelno, "")
        record.levelname = LEVEL_NAME_MAP.get(record.levelname, record.levelname)
        return super().format(record)

# --- Public logging setup API ---
def resolve_level(name: str | None) -> int:
    """
    Map a level name (e.g. "INFO", "success") to its numeric value.

    Unknown names fall back to INFO so a typo never silences the probe.
    """
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO

def setup_logging(level=logging.INFO) -> None:
    """
    Configure global logging with emoji decorations on stdout.

    Cloud Run collects stdout, so a single stream handler is all we need.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = EmojiFormatter(
        fmt="%(asctime)s %(levelemoji)s %(name)s:%(funcName)s → %(message)s",
        datefmt="%H:%M:%S",
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)

def get_logger(name: str) -> logging.Logger:
    """
    Return a namespaced logger for any module.
    """
    return logging.getLogger(f"zeroscale.{name}")
