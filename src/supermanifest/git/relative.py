"""Relative submodule URLs."""

from urllib.parse import urlsplit

_SLASH = "/"


def _is_bare_path(location: str) -> bool:
    parts = urlsplit(location)
    return not (parts.scheme or parts.netloc or parts.query or parts.fragment)


def normalize(path: str) -> str:
    """Drop ``.``, empty and resolvable ``..`` segments, keeping edge slashes."""
    leading = path.startswith(_SLASH)
    trailing = path.endswith(_SLASH) or path.rsplit(_SLASH, 1)[-1] in (".", "..")
    segments: list[str] = []
    for seg in path.split(_SLASH):
        if seg in ("", "."):
            continue
        if seg == "..":
            if segments and segments[-1] != "..":
                segments.pop()
            elif not leading:
                segments.append(seg)
            continue
        segments.append(seg)

    result = _SLASH.join(segments)
    if leading:
        result = _SLASH + result
    if trailing and segments:
        result += _SLASH
    return result


def relativize(base: str, target: str) -> str:
    """Path that leads from the directory of ``base`` to ``target``.

    ``base`` names a file (``superproject/`` names the directory itself).
    Anything that is not a bare path, or a pair mixing absolute and relative
    paths, is returned as ``target`` unchanged.

    >>> relativize("superproject/", "platform/project0")
    '../platform/project0'
    """
    if not _is_bare_path(target) or not _is_bare_path(base):
        return target

    cur = normalize(base)
    dest = normalize(target)
    if cur.startswith(_SLASH) != dest.startswith(_SLASH):
        return target

    cur = cur.lstrip(_SLASH)
    dest = dest.lstrip(_SLASH)

    if _SLASH not in cur or _SLASH not in dest:
        # A shared first segment keeps the cases below uniform.
        cur = "prefix/" + cur
        dest = "prefix/" + dest

    if not cur.endswith(_SLASH):
        cur = cur[:cur.rindex(_SLASH)]
    dest_file = ""
    if not dest.endswith(_SLASH):
        cut = dest.rindex(_SLASH)
        dest_file = dest[cut + 1:]
        dest = dest[:cut]

    cs = [s for s in cur.split(_SLASH) if s]
    ds = [s for s in dest.split(_SLASH) if s]

    common = 0
    while common < len(cs) and common < len(ds) and cs[common] == ds[common]:
        common += 1

    parts = [".."] * (len(cs) - common) + ds[common:] + [dest_file]
    return _SLASH.join(parts)
