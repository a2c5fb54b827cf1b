"""Git module: repository store, relative URLs and submodule commits."""

from supermanifest.git.relative import relativize
from supermanifest.git.store import (
    RefUpdateResult,
    RemoteReader,
    RepoCache,
    RepositoryStore,
    read_blob,
    update_ref,
)
from supermanifest.git.synthesizer import SubmoduleCommit, SubmoduleSynthesizer

__all__ = [
    "relativize",
    "RefUpdateResult",
    "RemoteReader",
    "RepoCache",
    "RepositoryStore",
    "read_blob",
    "update_ref",
    "SubmoduleCommit",
    "SubmoduleSynthesizer",
]
