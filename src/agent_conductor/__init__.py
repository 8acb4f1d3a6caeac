from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("agent-conductor")
except PackageNotFoundError:
    # Package not installed (e.g. running from source without pip install)
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]

import logging

# Library package: attach a NullHandler so that logging calls inside
# agent_conductor are discarded unless the application (CLI, test harness)
# configures handlers.
logging.getLogger(__name__).addHandler(logging.NullHandler())
