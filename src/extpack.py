"""extpack - Package the externalized dependencies of a compiled artifact.

    Returns:
        int: Exit code
"""
import logging
import os
import sys

from args import parse_args
from cli_config import apply_cli_overrides
from common.errors import (
    ConfigError,
    ExtpackError,
    LockfileError,
    RuntimeDependencyMisplaced,
    SpawnError,
    WorkspaceInvariantViolation,
)
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from options import load_options
from packagers import get_packager
from resolution.models import load_compile_stats
from staging.packager import StagingPackager

logger = logging.getLogger(__name__)


def _setup_logging(args) -> None:
    """Honor CLI --loglevel and --logfile over the environment."""
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()
    configure_logging(getattr(args, "LOG_FILE", None))
    level_name = str(getattr(args, "LOG_LEVEL", "INFO") or "INFO").upper()
    logging.getLogger().setLevel(getattr(logging, level_name, logging.INFO))


def run(args) -> int:
    """Load inputs, package the externals and map failures to exit codes."""
    cwd = os.path.abspath(args.CWD or os.getcwd())
    try:
        options = apply_cli_overrides(load_options(args.CONFIG), args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return ExitCodes.CONFIG_ERROR.value

    try:
        stats = load_compile_stats(args.STATS)
    except (OSError, ValueError) as e:
        logger.error("Could not load compile stats %s: %s", args.STATS, e)
        return ExitCodes.FILE_ERROR.value

    package_root = cwd
    if options.include_modules is not None:
        package_root = os.path.dirname(os.path.abspath(os.path.join(cwd, options.include_modules.package_path)))

    backend = get_packager(options.packager, cwd=package_root)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(
                event="function_entry",
                component="cli",
                action="run",
                packager=backend.name,
                build_id=args.BUILD_ID,
            ),
        )

    try:
        result = StagingPackager(options, backend, cwd=cwd).pack(stats, args.BUILD_ID, args.BUILD_PATH)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return ExitCodes.CONFIG_ERROR.value
    except RuntimeDependencyMisplaced as e:
        logger.error("%s", e)
        return ExitCodes.DEPENDENCY_ERROR.value
    except SpawnError as e:
        logger.error("%s", e)
        return ExitCodes.SPAWN_ERROR.value
    except WorkspaceInvariantViolation as e:
        logger.error("Workspace install failed: %s", e)
        return ExitCodes.DEPENDENCY_ERROR.value
    except (OSError, ValueError, LockfileError) as e:
        logger.error("File error: %s", e)
        return ExitCodes.FILE_ERROR.value
    except ExtpackError as e:
        logger.error("Packaging failed: %s", e)
        return ExitCodes.DEPENDENCY_ERROR.value

    if result.skipped:
        logger.info("Nothing packaged for %s", args.BUILD_ID)
    else:
        logger.info("Packaged %d modules into %s", len(result.manifest.get("dependencies") or {}), result.build_path)
    return ExitCodes.SUCCESS.value


def main(argv=None) -> int:
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)
    logger.info("Arguments parsed.")
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
