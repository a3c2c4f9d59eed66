from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version

from ..config import settings

DISTRIBUTION_NAME = "ballotbox"


def package_version(distribution: str = DISTRIBUTION_NAME) -> str:
    try:
        return version(distribution)
    except PackageNotFoundError:
        # Running from a source checkout that was never installed.
        return "0+unknown"


@lru_cache
def get_version_info() -> dict[str, str]:
    """What is running where: the installed ballotbox release and its deployment."""
    return {
        "name": DISTRIBUTION_NAME,
        "version": package_version(),
        "gitSha": settings.git_sha or "unknown",
        "environment": settings.environment,
    }
