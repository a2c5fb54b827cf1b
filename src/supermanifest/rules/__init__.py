"""Rules module: mapping rules from manifest branches to superproject branches."""

from supermanifest.rules.entry import MappingRule, ToolKind, parse_entry
from supermanifest.rules.loader import load_rule_set, parse_rule_text
from supermanifest.rules.ruleset import RuleSet, build_rule_set
from supermanifest.rules.snapshot import RuleSnapshot

__all__ = [
    "MappingRule",
    "ToolKind",
    "parse_entry",
    "load_rule_set",
    "parse_rule_text",
    "RuleSet",
    "build_rule_set",
    "RuleSnapshot",
]
