"""Turn a resolved project list into a superproject commit.

The new commit holds only gitlinks and ``.gitmodules``; its single parent is
the destination branch's previous tip. The branch is moved with a
compare-and-swap so a concurrent writer is never overwritten.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable

from dulwich.objects import S_IFGITLINK, Blob, Commit, Tree
from dulwich.repo import Repo

from supermanifest.errors import ConflictError, InternalError
from supermanifest.git.gitmodules import GITMODULES_PATH, SubmoduleEntry, render_gitmodules
from supermanifest.git.relative import relativize
from supermanifest.git.store import (
    RefUpdateResult,
    RemoteReader,
    current_tip,
    is_object_id,
    update_ref,
)
from supermanifest.manifest.model import ManifestProject

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = "Added repo manifest.\n"
_FILE_MODE = 0o100644
_TREE_MODE = 0o040000


@dataclass
class SubmoduleCommit:
    """Outcome of one synchronization."""

    dest_repo: str
    ref: str
    commit_id: str
    tree_id: str = ""
    previous: str | None = None
    kept: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    result: RefUpdateResult | None = None


def _dir_key(path: str) -> str:
    return path.rstrip("/") + "/"


def is_valid_tree_path(path: str) -> bool:
    """False for empty paths and paths with empty, ``.`` or ``..`` components."""
    return bool(path) and all(part not in ("", ".", "..") for part in path.split("/"))


def sort_by_path(projects: Iterable[ManifestProject]) -> list[ManifestProject]:
    return sorted(projects, key=lambda p: _dir_key(p.path))


def write_tree(repo: Repo, entries: list[tuple[str, int, bytes]]) -> bytes:
    """Store nested trees for ``(path, mode, sha)`` entries and return the root id.

    Raises:
        InternalError: If a path is both a file and a directory.
    """
    files: dict[str, tuple[int, bytes]] = {}
    subdirs: dict[str, list[tuple[str, int, bytes]]] = {}
    for path, mode, sha in entries:
        head, sep, rest = path.partition("/")
        if sep:
            subdirs.setdefault(head, []).append((rest, mode, sha))
        else:
            if head in files:
                raise InternalError(f"duplicate tree entry '{head}'")
            files[head] = (mode, sha)

    tree = Tree()
    for name, (mode, sha) in files.items():
        if name in subdirs:
            raise InternalError(f"tree entry '{name}' is both a file and a directory")
        tree.add(name.encode(), mode, sha)
    for name, children in subdirs.items():
        tree.add(name.encode(), _TREE_MODE, write_tree(repo, children))
    repo.object_store.add_object(tree)
    return tree.id


class SubmoduleSynthesizer:
    """Builds and publishes the superproject commit for a project list."""

    def __init__(
        self,
        reader: RemoteReader,
        identity: bytes,
        message: str = COMMIT_MESSAGE,
    ):
        self.reader = reader
        self.identity = identity
        self.message = message

    def _warn(self, fmt: str, *args) -> None:
        logger.warning("%s : " + fmt, self.reader.canonical_url, *args)

    def submodule_url(self, dest_repo: str, remote: str) -> str:
        """Relative URL for projects on this host, ``remote`` otherwise."""
        if self.reader.is_locally_hosted(remote):
            return relativize(dest_repo + "/", self.reader.repo_name(remote))
        return remote

    def synthesize(
        self,
        repo: Repo,
        dest_repo: str,
        target_ref: str,
        projects: Iterable[ManifestProject],
    ) -> SubmoduleCommit:
        """Write the submodule tree for ``projects`` to ``target_ref``.

        Projects with an invalid path, nested projects and projects whose ref
        cannot be resolved are skipped with a warning.

        Raises:
            ConflictError: If ``target_ref`` moved concurrently.
            InternalError: On any other ref update failure.
        """
        submodules: list[SubmoduleEntry] = []
        gitlinks: list[tuple[str, int, bytes]] = []
        kept: list[str] = []
        skipped: list[str] = []

        parent = None
        for proj in sort_by_path(projects):
            path = proj.path.strip("/")
            if not is_valid_tree_path(path):
                self._warn("Skipping project %s with invalid path '%s'", proj.name, proj.path)
                skipped.append(proj.path)
                continue
            if parent is not None and _dir_key(path).startswith(_dir_key(parent)):
                self._warn(
                    "Skipping project %s(%s) as git doesn't support nested submodules",
                    proj.name, path,
                )
                skipped.append(path)
                continue

            ref = proj.ref
            if is_object_id(ref):
                ref = ref.lower()
                commit_id = ref
            else:
                commit_id = self.reader.resolve_ref(proj.remote, ref)
                if commit_id is None:
                    self._warn("failed to get ref '%s' for '%s', skipping", ref, proj.remote)
                    skipped.append(path)
                    continue

            if proj.history_depth > 1:
                self._warn(
                    "Project %s(%s) has historydepth other than 1. "
                    "Submodule only support shallow of depth 1.",
                    proj.name, path,
                )

            submodules.append(SubmoduleEntry(
                path=path,
                url=self.submodule_url(dest_repo, proj.remote),
                branch=ref,
                shallow=proj.history_depth > 0,
            ))
            gitlinks.append((path, S_IFGITLINK, commit_id.encode("ascii")))
            kept.append(path)
            parent = path

        blob = Blob.from_string(render_gitmodules(submodules))
        repo.object_store.add_object(blob)
        tree_id = write_tree(repo, gitlinks + [(GITMODULES_PATH, _FILE_MODE, blob.id)])

        head = current_tip(repo, target_ref)
        commit = Commit()
        commit.tree = tree_id
        commit.parents = [head.encode("ascii")] if head else []
        commit.author = commit.committer = self.identity
        commit.author_time = commit.commit_time = int(time.time())
        commit.author_timezone = commit.commit_timezone = 0
        commit.encoding = b"UTF-8"
        commit.message = self.message.encode()
        repo.object_store.add_object(commit)
        commit_id = commit.id.decode("ascii")

        result = update_ref(repo, target_ref, head, commit_id)
        if result in (RefUpdateResult.REJECTED, RefUpdateResult.LOCK_FAILURE):
            raise ConflictError(target_ref, result.value)
        if not result.succeeded:
            raise InternalError(
                f"updating ref {target_ref} to {commit_id} failed: {result.value}"
            )

        return SubmoduleCommit(
            dest_repo=dest_repo,
            ref=target_ref,
            commit_id=commit_id,
            tree_id=tree_id.decode("ascii"),
            previous=head,
            kept=kept,
            skipped=skipped,
            result=result,
        )
