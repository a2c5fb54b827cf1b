"""Mapping rules: one source manifest bound to one destination branch.

A rule document entry looks like::

    superproject:
      "superproject:refs/heads/nyc":
        srcRepo: platform/manifest
        srcRef: refs/heads/nyc
        srcPath: default.xml
        toolType: graph

The key names the destination repository and branch; ``refs/heads/*`` (or a
partial pattern such as ``refs/heads/nyc-*``) maps every matching source branch
to the destination branch of the same name.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field

from supermanifest.errors import ConfigurationError
from supermanifest.rules.glob import matches, matches_any

logger = logging.getLogger(__name__)

SECTION_NAME = "superproject"
REFS_HEADS = "refs/heads/"

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0", ""}
_BAD_REF_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")


class ToolKind(enum.Enum):
    """How the manifest at ``srcPath`` is interpreted."""

    LEGACY = "legacy"
    GRAPH = "graph"


_TOOL_TYPES = {
    "": ToolKind.LEGACY,
    "legacy": ToolKind.LEGACY,
    "repo": ToolKind.LEGACY,
    "graph": ToolKind.GRAPH,
    "jiri": ToolKind.GRAPH,
}


def is_valid_ref_name(name: str | None) -> bool:
    """Check a full ref name against git's ref naming rules.

    The name needs at least two slash-separated components; no component may be
    empty, start with a dot or end in ``.lock``; ``..``, ``@{``, control
    characters, spaces and ``~^:?*[\\`` are rejected anywhere.
    """
    if not name or name == "@":
        return False
    if name.startswith("/") or name.endswith("/") or name.endswith("."):
        return False
    if ".." in name or "@{" in name or _BAD_REF_CHARS.search(name):
        return False
    components = name.split("/")
    if len(components) < 2:
        return False
    for component in components:
        if not component or component.startswith(".") or component.endswith(".lock"):
            return False
    return True


def _as_bool(fields: dict, name: str, default: bool) -> bool:
    value = fields.get(name)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"field {name} has invalid boolean value '{value}'")


def _as_str(fields: dict, name: str) -> str | None:
    value = fields.get(name)
    return None if value is None else str(value)


@dataclass(frozen=True, eq=False)
class MappingRule:
    """One source→destination binding.

    Identity is the destination: two rules writing the same destination repo
    and branch spec are the same rule.
    """

    src_repo: str
    src_ref: str
    manifest_path: str
    dest_repo: str
    dest_branch: str
    excluded_refs: frozenset[str] = field(default_factory=frozenset)
    tool_kind: ToolKind = ToolKind.LEGACY
    record_submodule_labels: bool = False
    ignore_remote_failures: bool = False
    record_remote_branch: bool = True
    groups: str = ""

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.dest_branch

    @property
    def is_pure_wildcard(self) -> bool:
        return self.dest_branch == "*"

    @property
    def base_uri(self) -> str:
        """Directory of the source repo (``platform/manifest`` → ``platform/``)."""
        head, sep, _ = self.src_repo.rpartition("/")
        return head + sep

    @property
    def dest_key(self) -> tuple[str, str]:
        return (self.dest_repo, self.dest_branch)

    def src(self) -> str:
        src = self.dest_branch if self.is_wildcard else self.src_ref
        return f"{self.src_repo}:{src}:{self.manifest_path}"

    def dest(self) -> str:
        return f"{self.dest_repo}:{self.dest_branch}"

    def __str__(self) -> str:
        return f"{self.src()} ({self.tool_kind.value}) => {self.dest()}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MappingRule):
            return NotImplemented
        return self.dest_key == other.dest_key

    def __hash__(self) -> int:
        return hash(self.dest_key)

    def actual_dest_branch(self, updated_ref: str) -> str:
        """Short destination branch for a source ref this rule matched."""
        if self.is_wildcard:
            return updated_ref[len(REFS_HEADS):]
        return self.dest_branch

    def target_ref(self, updated_ref: str) -> str:
        return REFS_HEADS + self.actual_dest_branch(updated_ref)

    def excludes(self, ref_name: str) -> bool:
        return matches_any(self.excluded_refs, ref_name)

    def matches_source(self, repo: str, ref_name: str) -> bool:
        """Decide whether an update of ``ref_name`` in ``repo`` triggers this rule."""
        if self.src_repo != repo:
            return False

        if self.is_wildcard:
            if not ref_name.startswith(REFS_HEADS):
                return False
            if not matches(self.dest_branch, ref_name[len(REFS_HEADS):]):
                return False
        elif self.src_ref != ref_name:
            return False

        if self.excludes(ref_name):
            logger.info("Skipping %s: it matches exclude conditions.", ref_name)
            return False
        return True


def parse_entry(name: str, fields: dict | None) -> MappingRule:
    """Build a MappingRule from one rule document entry.

    Args:
        name: Entry key, ``<destRepo>:<destBranchSpec>``.
        fields: Entry body.

    Returns:
        The validated rule.

    Raises:
        ConfigurationError: If the entry is malformed.
    """
    fields = fields or {}
    if not isinstance(fields, dict):
        raise ConfigurationError(f"entry {name} is not a mapping")

    parts = name.split(":")
    if len(parts) != 2:
        raise ConfigurationError(f"entry name '{name}' must have form REPO:BRANCH")
    dest_repo, dest_ref = parts

    if not dest_ref.startswith(REFS_HEADS):
        raise ConfigurationError(f"invalid destination '{dest_ref}'. Must specify refs/heads/")
    if dest_ref.count("*") > 1:
        raise ConfigurationError(f"invalid destination '{dest_ref}' has more than one '*'")

    src_repo = _as_str(fields, "srcRepo")
    if not src_repo:
        raise ConfigurationError(f"entry {name} did not specify srcRepo")

    tool_type = (_as_str(fields, "toolType") or "").strip().lower()
    if tool_type not in _TOOL_TYPES:
        raise ConfigurationError(f"entry {name} has invalid toolType: {tool_type}")

    if "*" in dest_ref:
        src_ref = ""
    else:
        if not is_valid_ref_name(dest_ref):
            raise ConfigurationError(f"destination branch '{dest_ref}' invalid")
        src_ref = _as_str(fields, "srcRef")
        if src_ref is None:
            raise ConfigurationError(f"entry {name} did not specify srcRef")
        if not is_valid_ref_name(src_ref):
            raise ConfigurationError(f"source ref '{src_ref}' invalid")

    excluded = frozenset(
        s.strip() for s in (_as_str(fields, "exclude") or "").split(",") if s.strip()
    )
    for pattern in excluded:
        if pattern.count("*") > 1:
            raise ConfigurationError(f"exclude pattern '{pattern}' has more than one '*'")

    manifest_path = _as_str(fields, "srcPath")
    if manifest_path is None:
        raise ConfigurationError(f"entry {name} did not specify srcPath")

    return MappingRule(
        src_repo=src_repo,
        src_ref=src_ref,
        manifest_path=manifest_path,
        dest_repo=dest_repo,
        dest_branch=dest_ref[len(REFS_HEADS):],
        excluded_refs=excluded,
        tool_kind=_TOOL_TYPES[tool_type],
        record_submodule_labels=_as_bool(fields, "recordSubmoduleLabels", False),
        ignore_remote_failures=_as_bool(fields, "ignoreRemoteFailures", False),
        record_remote_branch=_as_bool(fields, "recordRemoteBranch", True),
        groups=_as_str(fields, "groups") or "",
    )
