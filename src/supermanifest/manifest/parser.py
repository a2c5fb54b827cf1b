"""Parse graph manifest XML.

Format::

    <manifest>
      <imports>
        <import name="..." remote="..." manifest="..." revision="..." remotebranch="..."/>
        <localimport file="..."/>
      </imports>
      <projects>
        <project name="..." path="..." remote="..." revision="..."
                 remotebranch="..." historydepth="1"/>
      </projects>
    </manifest>
"""

import xml.etree.ElementTree as ET

from supermanifest.manifest.model import Import, LocalImport, ManifestDocument, ManifestProject


class ManifestParseError(ValueError):
    """The manifest is not well-formed or not a graph manifest."""


def parse_manifest(data: bytes | str) -> ManifestDocument:
    """Parse manifest XML into a ManifestDocument.

    Document type declarations are refused, so no entity is ever expanded.

    Raises:
        ManifestParseError: On malformed XML or unexpected structure.
    """
    raw = data.encode() if isinstance(data, str) else data
    if b"<!DOCTYPE" in raw or b"<!ENTITY" in raw:
        raise ManifestParseError("document type declarations are not allowed")

    try:
        root = ET.fromstring(raw)
    except ET.ParseError as e:
        raise ManifestParseError(str(e)) from e

    if root.tag != "manifest":
        raise ManifestParseError(f"root element is <{root.tag}>, expected <manifest>")

    imports = []
    local_imports = []
    for section in root.findall("imports"):
        for el in section.findall("import"):
            imports.append(Import(
                name=el.get("name", ""),
                remote=el.get("remote", ""),
                manifest=el.get("manifest", ""),
                revision=el.get("revision", ""),
                remote_branch=el.get("remotebranch", ""),
            ))
        for el in section.findall("localimport"):
            local_imports.append(LocalImport(file=el.get("file", "")))

    projects = []
    for section in root.findall("projects"):
        for el in section.findall("project"):
            projects.append(ManifestProject(
                name=el.get("name", ""),
                path=el.get("path", ""),
                remote=el.get("remote", ""),
                remote_branch=el.get("remotebranch", ""),
                revision=el.get("revision", ""),
                history_depth=_history_depth(el),
            ))

    return ManifestDocument(
        imports=tuple(imports),
        local_imports=tuple(local_imports),
        projects=tuple(projects),
    )


def _history_depth(el: ET.Element) -> int:
    value = el.get("historydepth", "").strip()
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        raise ManifestParseError(
            f"project {el.get('name', '')}: historydepth '{value}' is not an integer"
        ) from None
