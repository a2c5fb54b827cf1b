"""supermanifest: keep superproject submodule trees in sync with manifest repositories."""

__version__ = "0.1.0"
