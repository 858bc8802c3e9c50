"""Elevation checks. Every action touching the firewall, registry or task store needs admin."""

import sys

from ..errors import ElevationRequiredError
from .logging import get_logger

logger = get_logger("utils.privileges")


def is_admin() -> bool:
    """Return True when running elevated (Administrator or SYSTEM)."""
    if sys.platform != "win32":
        return False
    try:
        import ctypes
        return ctypes.windll.shell32.IsUserAnAdmin() != 0
    except (ImportError, AttributeError, OSError):
        return False


def require_admin() -> bool:
    """Raise ElevationRequiredError unless the process is elevated."""
    if not is_admin():
        logger.error("elevation_required")
        raise ElevationRequiredError("this action must run from an elevated shell")
    return True
