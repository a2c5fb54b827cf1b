"""Repository access on top of a directory of bare repositories.

Repositories live at ``<root>/<name>.git`` (or ``<root>/<name>``). Handles are
dulwich ``Repo`` objects; everything opened while handling one event goes
through a :class:`RepoCache` and is closed when the event completes.
"""

from __future__ import annotations

import enum
import logging
import posixpath
import re
from pathlib import Path
from urllib.parse import urlsplit

from dulwich.errors import NotGitRepository, NotTreeError
from dulwich.file import FileLocked
from dulwich.object_store import tree_lookup_path
from dulwich.objects import Blob, Commit, Tag
from dulwich.repo import Repo

from supermanifest.errors import BlobNotFound, RepositoryNotFound

logger = logging.getLogger(__name__)

_OBJECT_ID = re.compile(r"^[0-9a-fA-F]{40}$")


def is_object_id(value: str) -> bool:
    """True for a full hex SHA-1, in either case."""
    return bool(_OBJECT_ID.match(value))


class RefUpdateResult(enum.Enum):
    NEW = "created"
    FAST_FORWARD = "fast-forward"
    FORCED = "forced"
    REJECTED = "rejected"
    LOCK_FAILURE = "lock-held"
    IO_FAILURE = "io-failure"

    @property
    def succeeded(self) -> bool:
        return self in (RefUpdateResult.NEW, RefUpdateResult.FAST_FORWARD, RefUpdateResult.FORCED)


class RepositoryStore:
    """Opens repositories by name or by URL on this host."""

    def __init__(self, root: Path | str, canonical_url: str = "http://localhost/"):
        self.root = Path(root)
        self.canonical_url = canonical_url if canonical_url.endswith("/") else canonical_url + "/"

    def repo_path(self, name: str) -> Path:
        bare = self.root / f"{name}.git"
        if bare.is_dir():
            return bare
        return self.root / name

    def exists(self, name: str) -> bool:
        if not name or ".." in name.split("/"):
            return False
        path = self.repo_path(name)
        return (path / "HEAD").is_file() or (path / ".git").exists()

    def open_by_name(self, name: str) -> Repo:
        if not self.exists(name):
            raise RepositoryNotFound("repository not found", repo=name)
        try:
            return Repo(str(self.repo_path(name)))
        except NotGitRepository as e:
            raise RepositoryNotFound(f"not a git repository: {e}", repo=name) from e

    def repo_name_for_uri(self, uri: str) -> str:
        """Repository name for a URL on this host.

        A URL here is ``<canonical_url><name>``. For URLs that look like they
        come from another host, the path is used.
        """
        if uri.startswith(self.canonical_url):
            name = uri[len(self.canonical_url):]
        else:
            logger.warning(
                "%s: taking path from %s that looks from another host", self.canonical_url, uri
            )
            name = urlsplit(uri).path
        return name.strip("/")

    def open_by_uri(self, uri: str) -> Repo:
        return self.open_by_name(self.repo_name_for_uri(uri))

    def init_repository(self, name: str) -> Repo:
        """Create an empty bare repository ``<root>/<name>.git``.

        Repositories are provisioned outside this service; this is used to
        build stores for tests and local setups.
        """
        path = self.root / f"{name}.git"
        path.mkdir(parents=True, exist_ok=True)
        return Repo.init_bare(str(path))


class RepoCache:
    """Per-event cache of open repositories.

    Use as a context manager; every handle is closed on exit, on success and
    on failure alike.
    """

    def __init__(self, store: RepositoryStore):
        self.store = store
        self._repos: dict[str, Repo] = {}

    def __enter__(self) -> RepoCache:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def open_by_name(self, name: str) -> Repo:
        repo = self._repos.get(name)
        if repo is None:
            repo = self.store.open_by_name(name)
            self._repos[name] = repo
        return repo

    def open_by_uri(self, uri: str) -> Repo:
        return self.open_by_name(self.store.repo_name_for_uri(uri))

    def close(self) -> None:
        for repo in self._repos.values():
            repo.close()
        self._repos.clear()

    def __len__(self) -> int:
        return len(self._repos)


# ── Object access ────────────────────────────────────────────────────


def _peel_to_commit(repo: Repo, sha: bytes) -> Commit | None:
    try:
        obj = repo[sha]
        while isinstance(obj, Tag):
            obj = repo[obj.object[1]]
    except KeyError:
        return None
    return obj if isinstance(obj, Commit) else None


def find_ref(repo: Repo, name: str) -> str | None:
    """Resolve a ref name to a commit id.

    Tries the name as given, then under ``refs/heads/`` and ``refs/tags/``.
    Annotated tags are peeled.
    """
    for candidate in (name, "refs/heads/" + name, "refs/tags/" + name):
        try:
            sha = repo.refs[candidate.encode()]
        except KeyError:
            continue
        commit = _peel_to_commit(repo, sha)
        if commit is not None:
            return commit.id.decode("ascii")
    return None


def resolve_commit(repo: Repo, rev: str) -> str | None:
    """Resolve a commit id or ref name to a commit id present in ``repo``."""
    if is_object_id(rev):
        commit = _peel_to_commit(repo, rev.lower().encode("ascii"))
        return commit.id.decode("ascii") if commit is not None else None
    return find_ref(repo, rev)


def read_blob(repo: Repo, spec: str) -> bytes:
    """Read the file at ``<ref>:<path>``.

    Raises:
        BlobNotFound: If the ref or the path does not exist.
    """
    ref, sep, path = spec.partition(":")
    if not sep:
        raise BlobNotFound(f"'{spec}' is not of the form <ref>:<path>")
    repo_label = str(getattr(repo, "path", repo))

    commit_id = resolve_commit(repo, ref)
    if commit_id is None:
        raise BlobNotFound("repo does not have ref", repo=repo_label, path=path, ref=ref)

    path = posixpath.normpath(path.lstrip("/"))
    commit = repo[commit_id.encode("ascii")]
    try:
        _, sha = tree_lookup_path(repo.object_store.__getitem__, commit.tree, path.encode())
        blob = repo[sha]
    except (KeyError, NotTreeError):
        raise BlobNotFound("no such file", repo=repo_label, path=path, ref=ref) from None
    if not isinstance(blob, Blob):
        raise BlobNotFound("not a file", repo=repo_label, path=path, ref=ref)
    return blob.data


def current_tip(repo: Repo, ref: str) -> str | None:
    """The commit ``ref`` points at, or None when it does not exist."""
    try:
        sha = repo.refs[ref.encode()]
    except KeyError:
        return None
    commit = _peel_to_commit(repo, sha)
    return commit.id.decode("ascii") if commit is not None else None


def update_ref(repo: Repo, ref: str, expected_old: str | None, new: str) -> RefUpdateResult:
    """Compare-and-swap ``ref`` from ``expected_old`` (None: must not exist) to ``new``."""
    name = ref.encode()
    new_id = new.encode("ascii")
    try:
        if expected_old is None:
            ok = repo.refs.add_if_new(name, new_id)
            return RefUpdateResult.NEW if ok else RefUpdateResult.REJECTED
        old_id = expected_old.encode("ascii")
        ok = repo.refs.set_if_equals(name, old_id, new_id)
    except FileLocked:
        return RefUpdateResult.LOCK_FAILURE
    except OSError as e:
        logger.warning("updating %s failed: %s", ref, e)
        return RefUpdateResult.IO_FAILURE

    if not ok:
        return RefUpdateResult.REJECTED
    commit = _peel_to_commit(repo, new_id)
    if commit is not None and old_id in commit.parents:
        return RefUpdateResult.FAST_FORWARD
    return RefUpdateResult.FORCED


# ── Remote reader ────────────────────────────────────────────────────


class RemoteReader:
    """Resolves project refs and tells local projects from external ones."""

    def __init__(self, cache: RepoCache, canonical_url: str | None = None):
        self.cache = cache
        self.canonical_url = canonical_url or cache.store.canonical_url

    def resolve_ref(self, uri: str, ref: str) -> str | None:
        """Commit id for ``ref`` in the repository at ``uri``, or None.

        A full hex id is returned as is, without opening anything. ``uri`` may
        also be a bare repository name. Hex ids come back lowercased.
        """
        if is_object_id(ref):
            return ref.lower()

        try:
            if "://" in uri:
                repo = self.cache.open_by_uri(uri)
            else:
                repo = self.cache.open_by_name(uri)
        except RepositoryNotFound as e:
            logger.warning("%s: failed to open repository %s: %s", self.canonical_url, uri, e)
            return None

        commit_id = find_ref(repo, ref)
        if commit_id is None:
            logger.warning(
                "%s: in repo %s: cannot resolve ref %s", self.canonical_url, uri, ref
            )
        return commit_id

    def is_locally_hosted(self, uri: str) -> bool:
        """True when ``uri`` has the same host as the canonical web URL."""
        local = urlsplit(self.canonical_url)
        if local.scheme not in ("http", "https"):
            return False
        remote = urlsplit(uri)
        return bool(remote.hostname) and remote.hostname == local.hostname

    def repo_name(self, uri: str) -> str:
        return self.cache.store.repo_name_for_uri(uri)
