"""Error taxonomy for synchronization.

ConfigurationError and ResolutionError abort one event; ConflictError marks a
lost compare-and-swap race so callers can retry the event; InternalError is
fatal for the event.
"""


class SuperManifestError(Exception):
    """Base class for every error raised by supermanifest."""


class ConfigurationError(SuperManifestError):
    """Malformed or overlapping mapping rules, or conflicting manifest projects."""


class ResolutionError(SuperManifestError):
    """A manifest could not be read or parsed, or an import is unreachable."""

    def __init__(self, message: str, repo: str = "", path: str = "", ref: str = ""):
        self.repo = repo
        self.path = path
        self.ref = ref
        if repo or path or ref:
            message = f"{message} (repo={repo!r} path={path!r} ref={ref!r})"
        super().__init__(message)


class RepositoryNotFound(ResolutionError):
    """No repository with the requested name exists in the store."""


class BlobNotFound(ResolutionError):
    """The requested ``<ref>:<path>`` does not exist in the repository."""


class ConflictError(SuperManifestError):
    """The destination branch moved between read and write."""

    def __init__(self, ref: str, result: str):
        self.ref = ref
        self.result = result
        super().__init__(f"cannot lock {ref}: ref update {result}")


class InternalError(SuperManifestError):
    """Unexpected ref update outcome or serialization failure."""
