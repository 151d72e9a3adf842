"""Staging and promotion of externals into the build directory."""

from .manifest import build_composite_manifest, collapse_pins, rebase_file_reference
from .packager import PackResult, StagingPackager

__all__ = [
    "build_composite_manifest",
    "collapse_pins",
    "rebase_file_reference",
    "PackResult",
    "StagingPackager",
]
