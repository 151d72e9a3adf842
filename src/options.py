"""Packaging configuration: which packager to use and how to pick modules.

The accepted document mirrors the camelCase surface users already know::

    packager: yarn
    includeModules:
      packagePath: ./package.json
      forceInclude: [pg]
      forceExclude: [aws-sdk]
      nodeModulesRelativeDir: ../../
    options:
      noFrozenLockfile: true
      networkConcurrency: 8
    scripts:
      - rm -rf node_modules/aws-sdk

Settings may also be nested under a top-level ``extpack`` key.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from common.errors import ConfigError
from constants import Constants, PackagerType
from schema_validate import validate

logger = logging.getLogger(__name__)

OPTIONS_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "packager": {"type": "string", "enum": Constants.SUPPORTED_PACKAGERS},
        "includeModules": {
            "anyOf": [
                {"type": "boolean"},
                {"type": "null"},
                {
                    "type": "object",
                    "properties": {
                        "packagePath": {"type": "string", "minLength": 1},
                        "forceInclude": {"type": "array", "items": {"type": "string"}},
                        "forceExclude": {"type": "array", "items": {"type": "string"}},
                        "nodeModulesRelativeDir": {"type": "string"},
                    },
                    "additionalProperties": False,
                },
            ]
        },
        "options": {
            "type": "object",
            "properties": {
                "noInstall": {"type": "boolean"},
                "noFrozenLockfile": {"type": "boolean"},
                "ignoreScripts": {"type": "boolean"},
                "networkConcurrency": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "scripts": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": False,
}


@dataclass
class PackagerOptions:
    """Flags forwarded to the package manager invocations."""
    no_install: bool = False
    no_frozen_lockfile: bool = False
    ignore_scripts: bool = False
    network_concurrency: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PackagerOptions":
        data = data or {}
        return cls(
            no_install=bool(data.get("noInstall", False)),
            no_frozen_lockfile=bool(data.get("noFrozenLockfile", False)),
            ignore_scripts=bool(data.get("ignoreScripts", False)),
            network_concurrency=data.get("networkConcurrency"),
        )


@dataclass
class IncludeModules:
    """Module selection settings."""
    package_path: str = Constants.DEFAULT_PACKAGE_PATH
    force_include: List[str] = field(default_factory=list)
    force_exclude: List[str] = field(default_factory=list)
    node_modules_relative_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "IncludeModules":
        data = data or {}
        return cls(
            package_path=data.get("packagePath") or Constants.DEFAULT_PACKAGE_PATH,
            force_include=list(data.get("forceInclude") or []),
            force_exclude=list(data.get("forceExclude") or []),
            node_modules_relative_dir=data.get("nodeModulesRelativeDir") or None,
        )


@dataclass
class PackOptions:
    """Complete packaging configuration for one build."""
    packager: PackagerType = PackagerType.NPM
    include_modules: Optional[IncludeModules] = field(default_factory=IncludeModules)
    options: PackagerOptions = field(default_factory=PackagerOptions)
    scripts: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PackOptions":
        """Validate and convert a configuration mapping.

        Raises:
            ConfigError: on schema violations, including unknown packagers.
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")
        if Constants.CONFIG_SECTION in data and isinstance(data[Constants.CONFIG_SECTION], dict):
            data = data[Constants.CONFIG_SECTION]
        validate(OPTIONS_SCHEMA, data)

        raw_include = data.get("includeModules", True)
        if raw_include is True:
            include_modules: Optional[IncludeModules] = IncludeModules()
        elif isinstance(raw_include, dict):
            include_modules = IncludeModules.from_dict(raw_include)
        else:
            include_modules = None

        return cls(
            packager=parse_packager(data.get("packager", Constants.DEFAULT_PACKAGER)),
            include_modules=include_modules,
            options=PackagerOptions.from_dict(data.get("options")),
            scripts=list(data.get("scripts") or []),
        )


def parse_packager(value: str) -> PackagerType:
    """Map a packager key to its type, failing fast on unknown keys."""
    try:
        return PackagerType(str(value).lower())
    except ValueError as exc:
        raise ConfigError(
            f"Could not find packager '{value}'. "
            f"Supported packagers: {', '.join(Constants.SUPPORTED_PACKAGERS)}"
        ) from exc


def load_options(config_path: Optional[str]) -> PackOptions:
    """Load configuration from a YAML or JSON file.

    A missing path yields the defaults; a path that does not exist or cannot be
    parsed is a :class:`ConfigError`.
    """
    if not config_path:
        return PackOptions()

    if not os.path.isfile(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}") from e

    logger.info("Loaded packaging config from: %s", config_path)
    return PackOptions.from_dict(data or {})
