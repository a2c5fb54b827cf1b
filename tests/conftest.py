"""Shared test fixtures for supermanifest."""

import time
from pathlib import Path

import pytest
from dulwich.index import commit_tree
from dulwich.objects import Blob, Commit

from supermanifest.git.store import RepositoryStore, current_tip, read_blob

FIXTURES = Path(__file__).parent / "fixtures"
HOST_URL = "https://host.example/"
IDENTITY = b"Test Bot <bot@host.example>"


class GitHost:
    """A directory of bare repositories with helpers to commit files."""

    def __init__(self, root: Path, url: str = HOST_URL):
        self.store = RepositoryStore(root, url)

    def url(self, name: str) -> str:
        return self.store.canonical_url + name

    def create(self, *names: str) -> None:
        for name in names:
            self.store.init_repository(name).close()

    def commit(self, name: str, files: dict, ref: str = "refs/heads/master") -> str:
        """Commit ``files`` (path -> str or bytes) as the full tree of ``ref``."""
        if not self.store.exists(name):
            self.create(name)
        repo = self.store.open_by_name(name)
        try:
            entries = []
            for path, data in files.items():
                blob = Blob.from_string(data.encode() if isinstance(data, str) else data)
                repo.object_store.add_object(blob)
                entries.append((path.encode(), blob.id, 0o100644))
            tree_id = commit_tree(repo.object_store, entries)

            commit = Commit()
            commit.tree = tree_id
            head = current_tip(repo, ref)
            commit.parents = [head.encode()] if head else []
            commit.author = commit.committer = b"Dev <dev@host.example>"
            commit.author_time = commit.commit_time = int(time.time())
            commit.author_timezone = commit.commit_timezone = 0
            commit.message = b"update\n"
            repo.object_store.add_object(commit)
            repo.refs[ref.encode()] = commit.id
            return commit.id.decode()
        finally:
            repo.close()

    def tip(self, name: str, ref: str) -> str | None:
        repo = self.store.open_by_name(name)
        try:
            return current_tip(repo, ref)
        finally:
            repo.close()

    def tree(self, name: str, ref: str) -> dict:
        """Flattened tree of ``ref``: path -> (mode, sha)."""
        repo = self.store.open_by_name(name)
        try:
            commit = repo[current_tip(repo, ref).encode()]
            return {
                entry.path.decode(): (entry.mode, entry.sha.decode())
                for entry in repo.object_store.iter_tree_contents(commit.tree)
            }
        finally:
            repo.close()

    def read(self, name: str, ref: str, path: str) -> bytes:
        repo = self.store.open_by_name(name)
        try:
            return read_blob(repo, f"{ref}:{path}")
        finally:
            repo.close()

    def parents(self, name: str, ref: str) -> list[str]:
        repo = self.store.open_by_name(name)
        try:
            commit = repo[current_tip(repo, ref).encode()]
            return [p.decode() for p in commit.parents]
        finally:
            repo.close()


def project_xml(name, path, remote, revision="", remotebranch="", historydepth=None):
    attrs = f'name="{name}" path="{path}" remote="{remote}"'
    if revision:
        attrs += f' revision="{revision}"'
    if remotebranch:
        attrs += f' remotebranch="{remotebranch}"'
    if historydepth is not None:
        attrs += f' historydepth="{historydepth}"'
    return f"<project {attrs}/>"


def manifest_xml(projects=(), imports=(), local_imports=()):
    """Build a graph manifest document from element strings / file names."""
    lines = ["<manifest>", "  <imports>"]
    lines += [f"    {i}" for i in imports]
    lines += [f'    <localimport file="{f}"/>' for f in local_imports]
    lines += ["  </imports>", "  <projects>"]
    lines += [f"    {p}" for p in projects]
    lines += ["  </projects>", "</manifest>", ""]
    return "\n".join(lines)


@pytest.fixture
def host(tmp_path):
    return GitHost(tmp_path / "repos")
