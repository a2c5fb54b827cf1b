"""Synchronization entry points and the ref update listener."""

from __future__ import annotations

import logging
import threading
import traceback
from pathlib import Path

import yaml

from supermanifest.errors import ConflictError, SuperManifestError
from supermanifest.git.store import RepoCache, RepositoryStore, read_blob
from supermanifest.paths import service_identity
from supermanifest.rules.entry import MappingRule
from supermanifest.rules.loader import load_rule_set, parse_rule_text
from supermanifest.rules.ruleset import RuleSet
from supermanifest.rules.snapshot import RuleSnapshot
from supermanifest.updaters import LegacyCommand, updater_for

logger = logging.getLogger(__name__)

RULES_BLOB_PATH = "supermanifest.yaml"


def synchronize(
    store: RepositoryStore,
    rule: MappingRule,
    ref: str,
    identity: bytes | None = None,
    canonical_url: str | None = None,
    legacy_command: LegacyCommand | None = None,
):
    """Run ``rule`` for an update of ``ref`` in its source repository.

    Every repository opened on the way is closed before returning.

    Returns:
        The SubmoduleCommit for graph rules, the legacy command's result
        otherwise.
    """
    updater = updater_for(
        rule,
        identity or service_identity(),
        canonical_url or store.canonical_url,
        legacy_command,
    )
    with RepoCache(store) as cache:
        return updater.update(cache, rule, ref)


class SuperManifestListener:
    """Reacts to ref updates by synchronizing every rule they trigger.

    The rule document is read from ``rules_path`` when given, otherwise from
    ``supermanifest.yaml`` at ``config_location`` (a ``(repo, ref)`` pair).
    An update of ``config_location`` reloads the rules instead of
    synchronizing anything.
    """

    def __init__(
        self,
        store: RepositoryStore,
        rules_path: Path | str | None = None,
        config_location: tuple[str, str] | None = None,
        identity: bytes | None = None,
        legacy_command: LegacyCommand | None = None,
        detect_cycles: bool = False,
        precise_overlap: bool = False,
    ):
        self.store = store
        self.rules_path = rules_path
        self.config_location = config_location
        self.identity = identity or service_identity()
        self.legacy_command = legacy_command
        self.detect_cycles = detect_cycles
        self.precise_overlap = precise_overlap
        self.snapshot = RuleSnapshot()
        self.updates = 0
        self.lock_failures = 0
        self._counter_lock = threading.Lock()

    @property
    def rules(self) -> RuleSet:
        return self.snapshot.current

    def _read_rules(self) -> RuleSet:
        if self.rules_path is not None:
            return load_rule_set(
                self.rules_path,
                detect_cycles=self.detect_cycles,
                precise_overlap=self.precise_overlap,
            )
        if self.config_location is None:
            return RuleSet()
        repo, ref = self.config_location
        with RepoCache(self.store) as cache:
            data = read_blob(cache.open_by_name(repo), f"{ref}:{RULES_BLOB_PATH}")
        return parse_rule_text(
            data, detect_cycles=self.detect_cycles, precise_overlap=self.precise_overlap
        )

    def reload(self) -> RuleSet:
        """Re-read the rule document and publish it.

        Rules naming a repository that does not exist are dropped. When the
        document cannot be read the rules in effect stay in place.
        """
        try:
            loaded = self._read_rules()
        except (OSError, ValueError, yaml.YAMLError, SuperManifestError) as e:
            logger.warning("%s: can't read configuration: %s", self.store.canonical_url, e)
            return self.rules

        kept = []
        errors = list(loaded.errors)
        for rule in loaded:
            if not self.store.exists(rule.src_repo):
                errors.append(f"source repo '{rule.src_repo}' does not exist")
            elif not self.store.exists(rule.dest_repo):
                errors.append(f"destination repo '{rule.dest_repo}' does not exist")
            else:
                kept.append(rule)
        for e in errors[len(loaded.errors):]:
            logger.error("%s: %s", self.store.canonical_url, e)

        rule_set = RuleSet(rules=tuple(kept), errors=tuple(errors), warnings=loaded.warnings)
        for w in rule_set.warnings:
            logger.warning("%s: %s", self.store.canonical_url, w)
        self.snapshot.publish(rule_set)
        return rule_set

    def on_ref_updated(self, repo: str, ref: str) -> list:
        """Handle a ref update event. Failures are logged per rule, never raised."""
        if self.config_location is not None and (repo, ref) == self.config_location:
            self.reload()
            return []
        try:
            return self._update(repo, ref, continue_on_error=True)
        except SuperManifestError as e:
            logger.error("%s: update for %s:%s failed: %s", self.store.canonical_url, repo, ref, e)
            return []

    def manual_trigger(self, repo: str, ref: str) -> list:
        """Synchronize for ``repo``/``ref`` and raise the first failure."""
        logger.info(
            "%s: manual trigger for %s:%s. Config: %s",
            self.store.canonical_url, repo, ref, self.rules.summary(),
        )
        return self._update(repo, ref, continue_on_error=False)

    def _update(self, repo: str, ref: str, continue_on_error: bool) -> list:
        # One snapshot for the whole event.
        rules = self.rules
        results = []
        for rule, _branch in rules.plan(repo, ref):
            try:
                results.append(self._update_for_rule(rule, ref))
            except SuperManifestError as e:
                if not continue_on_error:
                    raise
                # Only the innermost frames; the rest is this listener.
                trace = "".join(traceback.format_tb(e.__traceback__, limit=-3))
                logger.error(
                    "%s: update for %s (ref %s) failed: %s\n%s",
                    self.store.canonical_url, rule, ref, e, trace.rstrip(),
                )
        return results

    def _update_for_rule(self, rule: MappingRule, ref: str):
        try:
            result = synchronize(
                self.store,
                rule,
                ref,
                identity=self.identity,
                legacy_command=self.legacy_command,
            )
        except ConflictError:
            with self._counter_lock:
                self.lock_failures += 1
            raise
        with self._counter_lock:
            self.updates += 1
        return result
