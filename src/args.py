"""Argument parsing functionality for extpack."""

import argparse
from constants import Constants

def parse_args(argv=None):
    """Parses the arguments passed to the program.

    Args:
        argv (list, optional): Arguments to parse instead of ``sys.argv``.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="extpack",
        description=(
            "extpack - Package the external dependencies of a compiled bundle"
        ),
        add_help=True,
    )

    parser.add_argument("-s", "--stats",
                        dest="STATS",
                        help="Compile stats JSON with outputPath and externalModules",
                        action="store", type=str,
                        required=True)
    parser.add_argument("-i", "--id",
                        dest="BUILD_ID",
                        help="Build identifier, used as the synthetic package name",
                        action="store", type=str,
                        required=True)
    parser.add_argument("-b", "--build-path",
                        dest="BUILD_PATH",
                        help="Directory receiving the modules (default: outputPath from the stats)",
                        action="store", type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("-p", "--packager",
                        dest="PACKAGER",
                        help="Package manager used to install the externals",
                        action="store", type=str,
                        choices=Constants.SUPPORTED_PACKAGERS)
    parser.add_argument("--cwd",
                        dest="CWD",
                        help="Project directory (default: current directory)",
                        action="store", type=str)

    parser.add_argument("--force-include",
                        dest="FORCE_INCLUDE",
                        help="Always package this module (can be used multiple times)",
                        action="append", type=str,
                        default=[])
    parser.add_argument("--force-exclude",
                        dest="FORCE_EXCLUDE",
                        help="Never package this module (can be used multiple times)",
                        action="append", type=str,
                        default=[])
    parser.add_argument("--no-install",
                        dest="NO_INSTALL",
                        help="Write manifests without running the package manager install",
                        action="store_true")
    parser.add_argument("--ignore-scripts",
                        dest="IGNORE_SCRIPTS",
                        help="Skip lifecycle scripts of installed packages",
                        action="store_true")

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
