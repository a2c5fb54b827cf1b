"""Graph manifest data model.

A manifest lists projects (sub-repositories checked out at a path) and may
import other manifests, either from the same repository (``localimport``) or
from another repository at a branch or pinned revision (``import``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from urllib.parse import urlsplit

DEFAULT_REMOTE_BRANCH = "master"


@dataclass(frozen=True, eq=False)
class ManifestProject:
    """A sub-repository entry.

    Keyed by ``name=remote``: the same key anywhere in an import graph must
    describe the same project.
    """

    name: str
    path: str
    remote: str
    remote_branch: str = ""
    revision: str = ""
    history_depth: int = 0

    @property
    def key(self) -> str:
        return f"{self.name}={self.remote}"

    @property
    def ref(self) -> str:
        """Revision if pinned, remote branch otherwise."""
        return self.revision or self.remote_branch

    def with_defaults(self) -> ManifestProject:
        if self.remote_branch:
            return self
        return replace(self, remote_branch=DEFAULT_REMOTE_BRANCH)

    def pinned_to(self, revision: str) -> ManifestProject:
        return replace(self, revision=revision)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ManifestProject):
            return NotImplemented
        if (self.name, self.path, self.remote, self.revision) != (
            other.name, other.path, other.remote, other.revision
        ):
            return False
        # An empty remote branch means master.
        branches = {self.remote_branch or DEFAULT_REMOTE_BRANCH,
                    other.remote_branch or DEFAULT_REMOTE_BRANCH}
        return len(branches) == 1

    def __hash__(self) -> int:
        return hash(self.key)

    def describe(self) -> str:
        return (
            f"project:\n\tname: {self.name}\n\tpath: {self.path}\n\tremote: {self.remote}"
            f"\n\tremotebranch: {self.remote_branch}\n\trevision: {self.revision}"
        )


# The resolver output: the same entries once defaults and pinning are applied.
ResolvedProject = ManifestProject


@dataclass(frozen=True)
class Import:
    """A manifest imported from another repository."""

    name: str
    remote: str
    manifest: str
    revision: str = ""
    remote_branch: str = ""

    @property
    def key(self) -> str:
        return f"{self.name}={self.remote.strip('/')}"

    @property
    def repo_name(self) -> str:
        """Repository name taken from the remote URL path."""
        return urlsplit(self.remote).path.strip("/")

    def with_defaults(self) -> Import:
        if self.remote_branch:
            return self
        return replace(self, remote_branch=DEFAULT_REMOTE_BRANCH)


@dataclass(frozen=True)
class LocalImport:
    """A manifest file in the same repository, relative to the importing one."""

    file: str


@dataclass(frozen=True)
class ManifestDocument:
    imports: tuple[Import, ...] = ()
    local_imports: tuple[LocalImport, ...] = ()
    projects: tuple[ManifestProject, ...] = field(default_factory=tuple)
