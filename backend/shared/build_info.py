"""Build metadata reported by /health and /status.

APP_VERSION defaults to the installed distribution version; GIT_COMMIT is
set by the deploy environment.
"""

import os
from importlib.metadata import PackageNotFoundError, version


def _installed_version() -> str:
    try:
        return version("hint-party")
    except PackageNotFoundError:
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
GIT_COMMIT: str = os.environ.get("GIT_COMMIT", "dev")
