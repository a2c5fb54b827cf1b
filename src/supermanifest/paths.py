"""Store and identity resolution.

Resolves the repository store, rule document and service identity. Uses
environment variables when available, falls back to conventional defaults.

Environment variables:
    SUPERMANIFEST_STORE_DIR: directory of bare repositories (default: ~/supermanifest/repos)
    SUPERMANIFEST_RULES: rule document (default: <store>/supermanifest.yaml)
    SUPERMANIFEST_CANONICAL_URL: canonical web URL of the host (default: http://localhost/)
    SUPERMANIFEST_IDENT_NAME / SUPERMANIFEST_IDENT_EMAIL: author of synthesized commits
"""

from __future__ import annotations

import os
from pathlib import Path

_DEFAULT_STORE = Path.home() / "supermanifest" / "repos"
_DEFAULT_RULES_NAME = "supermanifest.yaml"
_DEFAULT_CANONICAL_URL = "http://localhost/"
_DEFAULT_IDENT_NAME = "Superproject Bot"
_DEFAULT_IDENT_EMAIL = "supermanifest@localhost"


def store_dir() -> Path:
    """Return the directory holding the bare repositories."""
    return Path(os.environ.get("SUPERMANIFEST_STORE_DIR", str(_DEFAULT_STORE)))


def rules_path() -> Path:
    """Return the path to the rule document."""
    env = os.environ.get("SUPERMANIFEST_RULES")
    if env:
        return Path(env)
    return store_dir() / _DEFAULT_RULES_NAME


def canonical_url() -> str:
    """Return the canonical web URL, always with a trailing slash."""
    url = os.environ.get("SUPERMANIFEST_CANONICAL_URL", _DEFAULT_CANONICAL_URL)
    return url if url.endswith("/") else url + "/"


def service_identity() -> bytes:
    """Return the ``Name <email>`` identity used for synthesized commits."""
    name = os.environ.get("SUPERMANIFEST_IDENT_NAME", _DEFAULT_IDENT_NAME)
    email = os.environ.get("SUPERMANIFEST_IDENT_EMAIL", _DEFAULT_IDENT_EMAIL)
    return f"{name} <{email}>".encode()
