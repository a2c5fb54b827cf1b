"""Rule document CLI commands."""

import argparse

import yaml

from supermanifest.rules.loader import load_rule_set
from supermanifest.rules.ruleset import RuleSet


def _load(args: argparse.Namespace) -> RuleSet | None:
    try:
        return load_rule_set(
            args.rules,
            detect_cycles=args.detect_cycles,
            precise_overlap=args.precise_overlap,
        )
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"ERROR: cannot read {args.rules}: {e}")
        return None


def cmd_rules_validate(args: argparse.Namespace) -> int:
    rule_set = _load(args)
    if rule_set is None:
        return 1

    print(f"\n  Rules: {len(rule_set)} accepted, {len(rule_set.errors)} rejected")
    for rule in rule_set:
        print(f"  OK: {rule}")
    for w in rule_set.warnings:
        print(f"  WARNING: {w}")
    for e in rule_set.errors:
        print(f"  ERROR: {e}")
    print(f"\n  {'PASS' if rule_set.passed else 'FAIL'}")
    return 0 if rule_set.passed else 1


def cmd_rules_show(args: argparse.Namespace) -> int:
    rule_set = _load(args)
    if rule_set is None:
        return 1

    if not rule_set.rules:
        print("No rules configured.")
        return 0

    print(f"\n  {'Source':<50} {'Tool':<8} {'Destination'}")
    print(f"  {'─' * 84}")
    for rule in rule_set:
        print(f"  {rule.src():<50} {rule.tool_kind.value:<8} {rule.dest()}")
        if rule.excluded_refs:
            print(f"  {'':<50} {'':<8} exclude: {', '.join(sorted(rule.excluded_refs))}")
    print(f"\n  {len(rule_set)} rule(s)")
    return 0


def cmd_rules_match(args: argparse.Namespace) -> int:
    rule_set = _load(args)
    if rule_set is None:
        return 1

    for line in rule_set.inspect(args.repo, args.ref):
        print(f"  {line}")
    return 0
