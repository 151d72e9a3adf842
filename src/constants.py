"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONFIG_ERROR = 2
    DEPENDENCY_ERROR = 3
    SPAWN_ERROR = 4


class PackagerType(Enum):
    """Package managers that can install the externals.

    Args:
        Enum (string): Packager keys accepted in the configuration.
    """

    NPM = "npm"
    YARN = "yarn"
    YARN_WORKSPACE = "yarn-workspace"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    SUPPORTED_PACKAGERS = [
        PackagerType.NPM.value,
        PackagerType.YARN.value,
        PackagerType.YARN_WORKSPACE.value,
    ]
    DEFAULT_PACKAGER = PackagerType.NPM.value
    PACKAGE_JSON_FILE = "package.json"
    PACKAGE_LOCK_FILE = "package-lock.json"
    YARN_LOCK_FILE = "yarn.lock"
    YARNRC_FILE = ".yarnrc.yml"
    NODE_MODULES_DIR = "node_modules"
    DEFAULT_PACKAGE_PATH = "./package.json"
    STAGING_DIR_NAME = "dependencies"
    COMPOSITE_VERSION = "1.0.0"
    COMPOSITE_DESCRIPTION = "Packaged externals for {id}"
    WORKSPACE_DESCRIPTION = "Packaged workspace externals for {id}"
    CONFIG_SECTION = "extpack"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "EXTPACK_LOG_LEVEL"
    ENV_LOG_FORMAT = "EXTPACK_LOG_FORMAT"

    # Provided by the execution environment; tolerated in devDependencies.
    ALWAYS_AVAILABLE_DEPENDENCIES = ["aws-sdk"]

    # Dependency graph depth requested from the package manager.
    DEPENDENCY_GRAPH_DEPTH = 1

    # Protocol prefixes understood in manifests and lockfiles.
    FILE_PROTOCOL = "file:"
    WORKSPACE_PROTOCOL = "workspace:"
    NPM_PROTOCOL = "npm:"
    NODE_PROTOCOL = "node:"
