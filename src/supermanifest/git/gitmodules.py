"""Serialize submodule entries into a ``.gitmodules`` blob."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO

from dulwich.config import ConfigFile

GITMODULES_PATH = ".gitmodules"


@dataclass(frozen=True)
class SubmoduleEntry:
    path: str
    url: str
    branch: str = ""
    shallow: bool = False


def render_gitmodules(entries: list[SubmoduleEntry]) -> bytes:
    """Render one ``[submodule "<path>"]`` section per entry, in order."""
    cfg = ConfigFile()
    for entry in entries:
        section = (b"submodule", entry.path.encode())
        if entry.branch:
            cfg.set(section, b"branch", entry.branch.encode())
        if entry.shallow:
            cfg.set(section, b"shallow", True)
        cfg.set(section, b"path", entry.path.encode())
        cfg.set(section, b"url", entry.url.encode())

    buf = BytesIO()
    cfg.write_to_file(buf)
    return buf.getvalue()


def parse_gitmodules(data: bytes) -> dict[str, dict[str, str]]:
    """Read a ``.gitmodules`` blob back as ``{name: {key: value}}``.

    Only used to inspect synthesized commits, in tests and debugging.
    """
    cfg = ConfigFile.from_file(BytesIO(data))
    modules: dict[str, dict[str, str]] = {}
    for section in cfg.sections():
        if len(section) != 2 or section[0] != b"submodule":
            continue
        values = cfg.items(section)
        modules[section[1].decode()] = {
            k.decode(): v.decode() for k, v in values
        }
    return modules
