"""The current rule set, swapped as a whole on reload."""

from __future__ import annotations

from supermanifest.rules.ruleset import RuleSet


class RuleSnapshot:
    """Holds the rule set in effect.

    Writers build a complete RuleSet and publish it with one assignment;
    readers take ``current`` once per event and never see a partial set.
    """

    def __init__(self, rule_set: RuleSet | None = None):
        self._current = rule_set if rule_set is not None else RuleSet()

    @property
    def current(self) -> RuleSet:
        return self._current

    def publish(self, rule_set: RuleSet) -> RuleSet:
        """Replace the current rule set and return the previous one."""
        previous = self._current
        self._current = rule_set
        return previous
