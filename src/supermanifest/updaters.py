"""Tool dispatch: one updater per manifest format.

Graph manifests are resolved and committed here. Legacy ("repo" tool)
manifests are handed to an external command together with everything it needs
to read the manifest and its includes from the source repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from supermanifest.errors import ConfigurationError
from supermanifest.git.store import RemoteReader, RepoCache, find_ref, read_blob
from supermanifest.git.synthesizer import SubmoduleCommit, SubmoduleSynthesizer
from supermanifest.manifest.resolver import ManifestGraphResolver
from supermanifest.rules.entry import MappingRule, ToolKind

logger = logging.getLogger(__name__)

SUPERMANIFEST_STAMP = ".supermanifest"


class GraphUpdater:
    """Resolves a graph manifest and writes its submodule commit."""

    def __init__(self, identity: bytes, canonical_url: str | None = None):
        self.identity = identity
        self.canonical_url = canonical_url

    def update(self, cache: RepoCache, rule: MappingRule, src_ref: str) -> SubmoduleCommit:
        projects = ManifestGraphResolver(cache).resolve(
            rule.src_repo, src_ref, rule.manifest_path
        )
        reader = RemoteReader(cache, self.canonical_url)
        synthesizer = SubmoduleSynthesizer(reader, self.identity)
        dest = cache.open_by_name(rule.dest_repo)
        return synthesizer.synthesize(
            dest, rule.dest_repo, rule.target_ref(src_ref), projects.values()
        )


@dataclass(frozen=True)
class LegacyRequest:
    """Everything the legacy command needs for one update."""

    manifest: bytes
    groups: str
    record_remote_branch: bool
    record_submodule_labels: bool
    ignore_remote_failures: bool
    recommend_shallow: bool
    target_branch: str
    target_uri: str
    base_uri: str
    author: bytes
    extra_files: dict[str, str]
    reader: RemoteReader
    include_reader: Callable[[str], bytes]


LegacyCommand = Callable[[LegacyRequest], object]


class LegacyUpdater:
    """Delegates legacy manifests to an external command."""

    def __init__(self, identity: bytes, command: LegacyCommand | None = None):
        self.identity = identity
        self.command = command

    def build_request(self, cache: RepoCache, rule: MappingRule, src_ref: str) -> LegacyRequest:
        src = cache.open_by_name(rule.src_repo)
        manifest = read_blob(src, f"{src_ref}:{rule.manifest_path}")
        stamp = f"{rule.src_repo} {src_ref} {find_ref(src, src_ref)}"

        def include_reader(path: str) -> bytes:
            # Includes come from the source repository, never the local disk.
            return read_blob(src, f"{src_ref}:{path}")

        return LegacyRequest(
            manifest=manifest,
            groups=rule.groups,
            record_remote_branch=rule.record_remote_branch,
            record_submodule_labels=rule.record_submodule_labels,
            ignore_remote_failures=rule.ignore_remote_failures,
            recommend_shallow=True,
            target_branch=rule.actual_dest_branch(src_ref),
            target_uri=rule.dest_repo,
            base_uri=rule.base_uri,
            author=self.identity,
            extra_files={SUPERMANIFEST_STAMP: stamp},
            reader=RemoteReader(cache),
            include_reader=include_reader,
        )

    def update(self, cache: RepoCache, rule: MappingRule, src_ref: str):
        if self.command is None:
            raise ConfigurationError(
                f"entry {rule} uses the legacy manifest format but no legacy command is configured"
            )
        request = self.build_request(cache, rule, src_ref)
        logger.info("handing %s:%s to legacy command", rule.src_repo, src_ref)
        return self.command(request)


def updater_for(
    rule: MappingRule,
    identity: bytes,
    canonical_url: str | None = None,
    legacy_command: LegacyCommand | None = None,
) -> GraphUpdater | LegacyUpdater:
    if rule.tool_kind is ToolKind.GRAPH:
        return GraphUpdater(identity, canonical_url)
    return LegacyUpdater(identity, legacy_command)
