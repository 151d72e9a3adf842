"""Synthetic manifest written next to the compiled artifact."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import semantic_version

from constants import Constants
from resolution.models import split_module

logger = logging.getLogger(__name__)

_RELATIVE_REFERENCE = re.compile(r"^(?:file:[^/]{2}|\./|\.\./)")
_RANGE_OPERATORS = "^~=v<> "


def rebase_file_reference(path_to_package_root: str, module_version: str) -> str:
    """Rebase a relative version so it resolves from the written manifest.

    ``file:`` references keep their protocol; bare ``./`` and ``../`` paths
    are prefixed as they are.
    """
    if not _RELATIVE_REFERENCE.match(module_version):
        return module_version
    is_file = module_version.startswith(Constants.FILE_PROTOCOL)
    file_path = module_version[len(Constants.FILE_PROTOCOL):] if is_file else module_version
    prefix = Constants.FILE_PROTOCOL if is_file else ""
    return f"{prefix}{path_to_package_root}/{file_path}".replace("\\", "/")


def _sort_key(version: str) -> Optional[semantic_version.Version]:
    try:
        return semantic_version.Version.coerce(version.lstrip(_RANGE_OPERATORS))
    except ValueError:
        return None


def collapse_pins(modules: Iterable[str]) -> Dict[str, str]:
    """Map module names to one version each.

    A name pinned more than once keeps its highest version; pins that are not
    versions at all (tags, paths) keep the first one seen.
    """
    pins: Dict[str, str] = {}
    for module in modules:
        name, version = split_module(module)
        version = version or ""
        current = pins.get(name)
        if current is None:
            pins[name] = version
            continue
        if current == version:
            continue
        current_key, new_key = _sort_key(current), _sort_key(version)
        chosen = current
        if current_key is not None and new_key is not None and new_key > current_key:
            chosen = version
        elif not current and version:
            chosen = version
        logger.warning("Module %s is pinned at %s and %s; using %s", name, current, version, chosen)
        pins[name] = chosen
    return pins


def package_sections(root_manifest: Mapping[str, Any], section_names: Sequence[str]) -> Dict[str, Any]:
    """Pick the non-empty root manifest sections that must be carried over."""
    sections = {name: root_manifest[name] for name in section_names if root_manifest.get(name)}
    if sections:
        logger.info("Using package.json sections %s", ", ".join(sections))
    return sections


def script_map(scripts: Sequence[str]) -> Dict[str, str]:
    """Key configured commands positionally: ``script0``, ``script1``..."""
    return {f"script{index}": script for index, script in enumerate(scripts)}


def build_composite_manifest(
    build_id: str,
    modules: Iterable[str],
    path_to_package_root: str,
    sections: Optional[Mapping[str, Any]] = None,
    scripts: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Build the manifest declaring exactly ``modules``.

    Args:
        build_id: Name of the synthetic package.
        modules: ``name@version`` strings.
        path_to_package_root: Relative path from the manifest's directory back
            to the project, used to rebase relative references.
        sections: Root manifest sections to carry over verbatim.
        scripts: Lifecycle scripts by name.

    Returns:
        dict: The manifest, ready to serialize.
    """
    manifest: Dict[str, Any] = {
        "name": build_id,
        "version": Constants.COMPOSITE_VERSION,
        "description": Constants.COMPOSITE_DESCRIPTION.format(id=build_id),
        "private": True,
        "scripts": dict(scripts or {}),
    }
    for name, value in (sections or {}).items():
        manifest.setdefault(name, value)
    manifest["dependencies"] = {
        name: rebase_file_reference(path_to_package_root, version)
        for name, version in collapse_pins(modules).items()
    }
    return manifest


def write_manifest(path: str, manifest: Mapping[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
        f.write("\n")


def read_manifest(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data

