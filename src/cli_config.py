"""CLI configuration overrides for packaging options.

Extracted from the entrypoint to keep it slim. CLI flags have the highest
precedence over the configuration file and the defaults.
"""

from __future__ import annotations

import logging

from options import IncludeModules, PackOptions, parse_packager

logger = logging.getLogger(__name__)


def apply_cli_overrides(options: PackOptions, args) -> PackOptions:
    """Apply CLI flags on top of loaded options, in place.

    Raises:
        ConfigError: ``--packager`` names no known packager.
    """
    if getattr(args, "PACKAGER", None):
        options.packager = parse_packager(args.PACKAGER)

    force_include = list(getattr(args, "FORCE_INCLUDE", None) or [])
    force_exclude = list(getattr(args, "FORCE_EXCLUDE", None) or [])
    if force_include or force_exclude:
        if options.include_modules is None:
            logger.info("Enabling module packaging for command line include/exclude")
            options.include_modules = IncludeModules()
        for name in force_include:
            if name not in options.include_modules.force_include:
                options.include_modules.force_include.append(name)
        for name in force_exclude:
            if name not in options.include_modules.force_exclude:
                options.include_modules.force_exclude.append(name)

    if getattr(args, "NO_INSTALL", False):
        options.options.no_install = True
    if getattr(args, "IGNORE_SCRIPTS", False):
        options.options.ignore_scripts = True

    logger.debug("Effective packaging options: %s", options)
    return options
