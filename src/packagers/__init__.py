"""Package manager backends, keyed by their configuration name."""

from __future__ import annotations

from typing import Dict, Optional, Type, Union

from constants import PackagerType
from options import parse_packager

from .base import PackagerBackend
from .npm import NpmPackager
from .yarn import YarnPackager
from .yarn_workspace import YarnWorkspacePackager

PACKAGERS: Dict[PackagerType, Type[PackagerBackend]] = {
    PackagerType.NPM: NpmPackager,
    PackagerType.YARN: YarnPackager,
    PackagerType.YARN_WORKSPACE: YarnWorkspacePackager,
}


def get_packager(key: Union[str, PackagerType], cwd: Optional[str] = None) -> PackagerBackend:
    """Instantiate the backend registered under ``key``.

    Raises:
        ConfigError: ``key`` names no known packager.
    """
    packager_type = key if isinstance(key, PackagerType) else parse_packager(key)
    return PACKAGERS[packager_type](cwd=cwd)


__all__ = [
    "PACKAGERS",
    "PackagerBackend",
    "NpmPackager",
    "YarnPackager",
    "YarnWorkspacePackager",
    "get_packager",
]
