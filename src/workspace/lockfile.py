"""Yarn Berry (v2+) lockfile model.

The Berry lockfile is a YAML document: a ``__metadata`` block followed by one
entry per resolution, keyed by the comma separated list of descriptors
(``name@range``) that resolve to it::

    "lodash@npm:^4.17.20, lodash@npm:^4.17.21":
      version: 4.17.21
      resolution: "lodash@npm:4.17.21"
      dependencies:
        foo: ^1.0.0

Descriptor ranges without a protocol are implicitly ``npm:`` ranges.
"""

from __future__ import annotations

import copy
import logging
import re
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from common.errors import LockfileError
from constants import Constants

logger = logging.getLogger(__name__)

METADATA_KEY = "__metadata"
LOCKFILE_HEADER = (
    "# This file is generated by running \"yarn install\" inside your project.\n"
    "# Manual changes might be lost - proceed with caution!\n\n"
)

_PROTOCOL = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)

RangeRewriter = Callable[[str, str], str]


def parse_descriptor(descriptor: str) -> Tuple[str, str]:
    """Split ``name@range`` (scope aware) into (name, range)."""
    descriptor = descriptor.strip()
    index = descriptor.find("@", 1)
    if index == -1:
        return descriptor, ""
    return descriptor[:index], descriptor[index + 1:]


def normalize_range(range_: str) -> str:
    """Give protocol-less ranges the implicit ``npm:`` protocol."""
    if not range_ or _PROTOCOL.match(range_):
        return range_
    return f"{Constants.NPM_PROTOCOL}{range_}"


def make_descriptor(name: str, range_: str) -> str:
    return f"{name}@{normalize_range(range_)}"


class BerryLockfile:
    """Parsed Berry lockfile with a descriptor index."""

    def __init__(self, metadata: Optional[Dict[str, Any]] = None, entries: Optional[Dict[str, Dict[str, Any]]] = None):
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.entries: Dict[str, Dict[str, Any]] = dict(entries or {})
        self._index: Dict[str, str] = {}
        for key in self.entries:
            for descriptor in key.split(","):
                name, range_ = parse_descriptor(descriptor)
                self._index[make_descriptor(name, range_)] = key

    @classmethod
    def loads(cls, text: str) -> "BerryLockfile":
        try:
            # BaseLoader keeps every scalar a string, so versions like 1.10 survive
            data = yaml.load(text, Loader=yaml.BaseLoader) or {}  # noqa: S506
        except yaml.YAMLError as e:
            raise LockfileError(f"Could not parse {Constants.YARN_LOCK_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise LockfileError(f"{Constants.YARN_LOCK_FILE} is not a mapping")
        metadata = data.pop(METADATA_KEY, {}) or {}
        entries = {str(k): v for k, v in data.items() if isinstance(v, dict)}
        return cls(metadata, entries)

    @classmethod
    def load(cls, path: str) -> "BerryLockfile":
        with open(path, "r", encoding="utf-8") as f:
            return cls.loads(f.read())

    def dumps(self) -> str:
        document: Dict[str, Any] = {}
        if self.metadata:
            document[METADATA_KEY] = self.metadata
        for key in sorted(self.entries):
            document[key] = self.entries[key]
        body = yaml.safe_dump(document, sort_keys=False, default_flow_style=False, width=4096)
        return LOCKFILE_HEADER + body

    def lookup(self, name: str, range_: str) -> Optional[Dict[str, Any]]:
        """Return the entry a dependency descriptor resolves to."""
        key = self._index.get(make_descriptor(name, range_))
        return self.entries.get(key) if key else None

    def rewritten(self, rewrite: RangeRewriter) -> "BerryLockfile":
        """Return a copy with every descriptor, resolution and dependency
        range passed through ``rewrite(name, range)``."""
        entries: Dict[str, Dict[str, Any]] = {}
        for key, entry in self.entries.items():
            descriptors = []
            for descriptor in key.split(","):
                name, range_ = parse_descriptor(descriptor)
                descriptors.append(f"{name}@{rewrite(name, range_)}")
            new_entry = copy.deepcopy(entry)

            resolution = new_entry.get("resolution")
            if isinstance(resolution, str):
                name, reference = parse_descriptor(resolution)
                new_entry["resolution"] = f"{name}@{rewrite(name, reference)}"

            dependencies = new_entry.get("dependencies")
            if isinstance(dependencies, dict):
                new_entry["dependencies"] = {
                    dep: rewrite(dep, str(dep_range)) for dep, dep_range in dependencies.items()
                }
            entries[", ".join(dict.fromkeys(descriptors))] = new_entry
        return BerryLockfile(copy.deepcopy(self.metadata), entries)

    def subset(
        self,
        roots: Iterable[Tuple[str, str]],
        dependency_overrides: Optional[Dict[str, Mapping[str, str]]] = None,
    ) -> "BerryLockfile":
        """Return a lockfile holding only entries reachable from ``roots``.

        Args:
            roots: ``(name, range)`` pairs to start from.
            dependency_overrides: Dependencies to use instead of an entry's own,
                keyed by any descriptor of that entry. Overridden entries are
                written with these dependencies.
        """
        overrides: Dict[str, Dict[str, str]] = {}
        for descriptor, dependencies in (dependency_overrides or {}).items():
            key = self._index.get(make_descriptor(*parse_descriptor(descriptor)))
            if key is not None:
                overrides[key] = {dep: normalize_range(str(r)) for dep, r in dependencies.items()}

        keep: Dict[str, None] = {}
        queue = deque(roots)
        seen = set()
        while queue:
            name, range_ = queue.popleft()
            descriptor = make_descriptor(name, range_)
            if descriptor in seen:
                continue
            seen.add(descriptor)
            key = self._index.get(descriptor)
            if key is None:
                logger.debug("No lockfile entry for %s", descriptor)
                continue
            keep[key] = None
            dependencies = overrides[key] if key in overrides else self.entries[key].get("dependencies")
            for dep, dep_range in (dependencies or {}).items():
                queue.append((dep, str(dep_range)))

        entries: Dict[str, Dict[str, Any]] = {}
        for key in keep:
            entry = copy.deepcopy(self.entries[key])
            if key in overrides:
                if overrides[key]:
                    entry["dependencies"] = dict(overrides[key])
                else:
                    entry.pop("dependencies", None)
            entries[key] = entry
        return BerryLockfile(copy.deepcopy(self.metadata), entries)

    def keys(self) -> List[str]:
        return list(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
