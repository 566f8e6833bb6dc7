# --- Standard library imports ---
import logging
from typing import Mapping, Union

Meta = Union[str, Mapping[str, object], None]

# Column widths of the operator view
SUBSYSTEM_WIDTH = 10
STATE_WIDTH = 18
PRIMARY_WIDTH = 16


def format_meta(meta: Meta) -> str:
    """
    Render telemetry metadata: strings pass through, mappings become
    "key=value" pairs joined by " | ". Empty values are skipped.
    """
    if not meta:
        return ""
    if isinstance(meta, str):
        return meta
    return " | ".join(
        f"{key}={value}" for key, value in meta.items() if value not in (None, "")
    )


def tlog(
    logger: logging.Logger,
    emoji: str,
    subsystem: str,
    state: str,
    primary: str = "-",
    meta: Meta = None,
    level: int = logging.INFO,
) -> None:
    """
    Emit one aligned telemetry line for the operator view:

        🚀 DISPATCH   ACCEPTED           START            | resource=wp-mysql | operation=op-1

    Subsystems: PROBE, CLASSIFY, DECIDE, DISPATCH, STOP.
    """
    line = (
        f"{emoji} {subsystem:<{SUBSYSTEM_WIDTH}} "
        f"{state:<{STATE_WIDTH}} {primary:<{PRIMARY_WIDTH}}"
    )
    rendered = format_meta(meta)
    if rendered:
        line += f" | {rendered}"

    # stacklevel=2 so funcName points at the caller, not tlog()
    logger.log(level, line, stacklevel=2)
