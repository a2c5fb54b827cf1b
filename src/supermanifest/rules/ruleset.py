"""Validated rule collections and trigger-time matching."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from supermanifest.errors import ConfigurationError
from supermanifest.rules.entry import MappingRule, parse_entry
from supermanifest.rules.glob import overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleSet:
    """The mapping rules currently in effect.

    Built wholesale by :func:`build_rule_set` and never modified afterwards.
    """

    rules: tuple[MappingRule, ...] = ()
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def summary(self) -> str:
        lines = [f"Supermanifest config ({len(self.rules)}) {{"]
        for rule in self.rules:
            lines.append(f"  {rule}")
        lines.append("}")
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  {w}")
        return "\n".join(lines)

    def matching(self, repo: str, ref_name: str) -> list[MappingRule]:
        """Rules triggered by an update of ``ref_name`` in ``repo``, in document order."""
        return [r for r in self.rules if r.matches_source(repo, ref_name)]

    def plan(self, repo: str, ref_name: str) -> list[tuple[MappingRule, str]]:
        """Resolve an event to (rule, destination branch) pairs.

        Raises:
            ConfigurationError: If two matching rules write the same
                destination repo and branch.
        """
        planned: list[tuple[MappingRule, str]] = []
        destinations: dict[tuple[str, str], MappingRule] = {}
        for rule in self.matching(repo, ref_name):
            branch = rule.actual_dest_branch(ref_name)
            key = (rule.dest_repo, branch)
            if key in destinations:
                raise ConfigurationError(
                    f"{repo}:{ref_name} resolves to {rule.dest_repo}:{branch} "
                    f"through overlapping rules {destinations[key]} and {rule}"
                )
            destinations[key] = rule
            planned.append((rule, branch))
        return planned

    def inspect(self, repo: str, ref_name: str) -> list[str]:
        """Report which rules an event would run, without failing on overlap.

        The first rule for each destination is a MATCH; later ones are SKIPs.
        """
        relevant = self.matching(repo, ref_name)
        report = [f"RELEVANT CONFS: {len(relevant)}"]
        destinations: dict[str, MappingRule] = {}
        for rule in relevant:
            key = f"{rule.dest_repo}:{rule.actual_dest_branch(ref_name)}"
            if key in destinations:
                report.append(f"SKIP: {rule}. Overlap with {destinations[key]}")
                continue
            destinations[key] = rule
            report.append(f"MATCH: {rule}")
        return report


def find_cycles(rules: Iterable[MappingRule]) -> list[list[str]]:
    """Find source→destination repository cycles, self-loops included."""
    adj: dict[str, list[str]] = defaultdict(list)
    nodes: list[str] = []
    for rule in rules:
        adj[rule.src_repo].append(rule.dest_repo)
        for repo in (rule.src_repo, rule.dest_repo):
            if repo not in nodes:
                nodes.append(repo)

    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[str, int] = defaultdict(lambda: WHITE)
    cycles: list[list[str]] = []

    for root in nodes:
        if color[root] != WHITE:
            continue
        # Iterative DFS: (node, index of next neighbour to visit).
        path: list[str] = []
        stack: list[tuple[str, int]] = [(root, 0)]
        color[root] = GRAY
        path.append(root)
        while stack:
            node, i = stack[-1]
            if i < len(adj[node]):
                stack[-1] = (node, i + 1)
                neighbor = adj[node][i]
                if color[neighbor] == GRAY:
                    cycles.append(path[path.index(neighbor):] + [neighbor])
                elif color[neighbor] == WHITE:
                    color[neighbor] = GRAY
                    path.append(neighbor)
                    stack.append((neighbor, 0))
            else:
                stack.pop()
                path.pop()
                color[node] = BLACK
    return cycles


def build_rule_set(
    entries: Iterable[tuple[str, dict]],
    detect_cycles: bool = False,
    precise_overlap: bool = False,
    warnings: Iterable[str] = (),
) -> RuleSet:
    """Parse and validate rule document entries.

    Invalid entries are dropped and reported in ``RuleSet.errors``; the rest
    still load. Checks run in document order against the rules accepted so
    far:

    - a repo may not be the source of one rule and the destination of another;
    - a destination repo may have only one ``refs/heads/*`` rule;
    - wildcard destinations of one repo must all come from the same source.

    Args:
        entries: (name, fields) pairs from the rule document.
        detect_cycles: Also reject every rule on a source→destination cycle,
            computed over all entries before any is accepted.
        precise_overlap: Replace the one-wildcard-per-repo checks with a
            pattern overlap test, so ``nyc-*`` and ``sfo-*`` can coexist.
        warnings: Loader warnings carried into the result.

    Returns:
        RuleSet with the accepted rules.
    """
    errors: list[str] = []
    parsed: list[MappingRule] = []
    for name, fields in entries:
        try:
            parsed.append(parse_entry(name, fields))
        except ConfigurationError as e:
            errors.append(f"invalid configuration: {e}")

    on_cycle: set[tuple[str, str]] = set()
    if detect_cycles:
        for cycle in find_cycles(parsed):
            on_cycle.update(zip(cycle, cycle[1:]))

    accepted: list[MappingRule] = []
    sources: set[str] = set()
    destinations: set[str] = set()
    wildcard_destinations: set[str] = set()
    globbed_sources: dict[str, str] = {}

    for rule in parsed:
        try:
            if rule in accepted:
                raise ConfigurationError(f"duplicate entry for destination {rule.dest()}")
            if (rule.src_repo, rule.dest_repo) in on_cycle:
                raise ConfigurationError(f"entry {rule} is part of a source/destination cycle")
            if rule.src_repo in destinations or rule.dest_repo in sources:
                raise ConfigurationError(
                    f"repo in entry {rule} cannot be both source and destination"
                )
            if precise_overlap:
                _check_precise_overlap(rule, accepted)
            else:
                if rule.is_pure_wildcard:
                    if rule.dest_repo in wildcard_destinations:
                        raise ConfigurationError(
                            f"repo {rule.dest_repo} already has a wildcard destination branch."
                        )
                    wildcard_destinations.add(rule.dest_repo)
                if rule.is_wildcard:
                    known = globbed_sources.get(rule.dest_repo)
                    if known is not None and known != rule.src_repo:
                        raise ConfigurationError(
                            f"repo {rule.dest_repo} has globbed destinations from at "
                            f"least two sources {known} and {rule.src_repo}"
                        )
                    globbed_sources[rule.dest_repo] = rule.src_repo

            sources.add(rule.src_repo)
            destinations.add(rule.dest_repo)
            accepted.append(rule)
        except ConfigurationError as e:
            errors.append(f"invalid configuration: {e}")

    for e in errors:
        logger.error(e)

    return RuleSet(rules=tuple(accepted), errors=tuple(errors), warnings=tuple(warnings))


def _check_precise_overlap(rule: MappingRule, accepted: list[MappingRule]) -> None:
    if not rule.is_wildcard:
        return
    for other in accepted:
        if other.dest_repo == rule.dest_repo and other.is_wildcard:
            if overlaps(other.dest_branch, rule.dest_branch):
                raise ConfigurationError(
                    f"wildcard destination {rule.dest()} overlaps {other.dest()}"
                )
