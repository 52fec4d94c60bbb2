import logging
from importlib.metadata import PackageNotFoundError, version

logger = logging.getLogger(__name__)

DISTRIBUTION = "taverntally"
UNKNOWN_VERSION = "0+unknown"


def get_version() -> str:
    """Version of the installed distribution (pyproject.toml is the single source)."""
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        logger.debug(f"{DISTRIBUTION} is not installed; running from a source tree")
        return UNKNOWN_VERSION
