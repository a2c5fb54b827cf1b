"""Manifest module: graph manifest parsing and import resolution."""

from supermanifest.manifest.model import (
    Import,
    LocalImport,
    ManifestDocument,
    ManifestProject,
    ResolvedProject,
)
from supermanifest.manifest.parser import ManifestParseError, parse_manifest
from supermanifest.manifest.resolver import ManifestGraphResolver

__all__ = [
    "Import",
    "LocalImport",
    "ManifestDocument",
    "ManifestProject",
    "ResolvedProject",
    "ManifestParseError",
    "parse_manifest",
    "ManifestGraphResolver",
]
