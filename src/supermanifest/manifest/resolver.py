"""Resolve a graph manifest and its imports into one project list."""

from __future__ import annotations

import logging
import posixpath
from collections import deque
from dataclasses import dataclass

from supermanifest.errors import ConfigurationError, RepositoryNotFound, ResolutionError
from supermanifest.git.store import RepoCache, read_blob
from supermanifest.manifest.model import ManifestProject
from supermanifest.manifest.parser import ManifestParseError, parse_manifest
from supermanifest.rules.entry import REFS_HEADS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _WorkItem:
    repo: str
    manifest: str
    ref: str
    # An import pinned to a revision pins the project with the import's key
    # to that same revision.
    pinning_key: str = ""
    pinned: bool = False


def local_import_path(manifest: str, file: str) -> str:
    """Resolve ``file`` against the directory of ``manifest``.

    >>> local_import_path("a/b/root", "c")
    'a/b/c'
    """
    return posixpath.normpath(posixpath.join(posixpath.dirname(manifest), file))


class ManifestGraphResolver:
    """Walks the import graph breadth first.

    Every manifest is read once per repository; two projects with the same
    key must agree on all attributes.
    """

    def __init__(self, cache: RepoCache):
        self.cache = cache

    def resolve(self, repo: str, ref: str, manifest: str) -> dict[str, ManifestProject]:
        """Resolve the manifest at ``ref:manifest`` in ``repo``.

        Returns:
            Projects keyed by ``name=remote``, with defaults and pinning applied.

        Raises:
            ResolutionError: If a repository, ref or manifest is missing or a
                manifest does not parse.
            ConfigurationError: If two entries with one key disagree.
        """
        self.cache.open_by_name(repo)

        queue = deque([_WorkItem(repo, manifest, ref)])
        processed: dict[str, set[str]] = {}
        projects: dict[str, ManifestProject] = {}

        while queue:
            item = queue.popleft()
            seen = processed.setdefault(item.repo, set())
            if item.manifest in seen:
                continue
            seen.add(item.manifest)

            doc = self._read(item)

            for project in doc.projects:
                project = project.with_defaults()
                if item.pinned and project.key == item.pinning_key:
                    project = project.pinned_to(item.ref)
                known = projects.get(project.key)
                if known is None:
                    projects[project.key] = project
                elif known != project:
                    raise ConfigurationError(
                        f"Duplicate conflicting project {project.key} in manifest "
                        f"{item.manifest}\n{project.describe()}\n{known.describe()}"
                    )

            for local in doc.local_imports:
                queue.append(_WorkItem(
                    item.repo,
                    local_import_path(item.manifest, local.file),
                    item.ref,
                    item.pinning_key,
                    item.pinned,
                ))

            for imp in doc.imports:
                imp = imp.with_defaults()
                imported_repo = imp.repo_name
                if not imported_repo:
                    raise ResolutionError(
                        f"import {imp.name} has no repository in remote '{imp.remote}'",
                        repo=item.repo, path=item.manifest, ref=item.ref,
                    )
                try:
                    self.cache.open_by_name(imported_repo)
                except RepositoryNotFound as e:
                    raise RepositoryNotFound(
                        f"imported repository '{imported_repo}' not found",
                        repo=item.repo, path=item.manifest, ref=item.ref,
                    ) from e
                if imp.revision:
                    queue.append(_WorkItem(
                        imported_repo, imp.manifest, imp.revision, imp.key, True
                    ))
                else:
                    queue.append(_WorkItem(
                        imported_repo, imp.manifest, REFS_HEADS + imp.remote_branch, imp.key
                    ))

        logger.debug("resolved %d projects from %s:%s:%s", len(projects), repo, ref, manifest)
        return projects

    def _read(self, item: _WorkItem):
        handle = self.cache.open_by_name(item.repo)
        data = read_blob(handle, f"{item.ref}:{item.manifest}")
        try:
            return parse_manifest(data)
        except ManifestParseError as e:
            raise ResolutionError(
                "XML parse error", repo=item.repo, path=item.manifest, ref=item.ref
            ) from e
