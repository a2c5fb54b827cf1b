"""Command-line interface for supermanifest.

Usage:
    supermanifest rules validate
    supermanifest rules show
    supermanifest rules match <repo> <ref>
    supermanifest resolve <repo> <ref> <path>
    supermanifest sync <repo> <ref>

Exit codes: 0 success, 1 configuration or resolution error, 2 conflicting
concurrent update.
"""

import argparse
import logging
import sys

from supermanifest.cli.rules_cmds import cmd_rules_match, cmd_rules_show, cmd_rules_validate
from supermanifest.cli.sync_cmds import cmd_resolve, cmd_sync
from supermanifest.paths import canonical_url, rules_path, store_dir


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supermanifest",
        description="Keep superproject submodules in sync with manifest repositories",
    )
    parser.add_argument(
        "--store", default=str(store_dir()),
        help="Directory of bare repositories",
    )
    parser.add_argument(
        "--rules", default=str(rules_path()),
        help="Path to the rule document (YAML)",
    )
    parser.add_argument(
        "--canonical-url", default=canonical_url(),
        help="Canonical web URL of this host",
    )
    parser.add_argument(
        "--detect-cycles", action="store_true",
        help="Reject every rule on a source/destination cycle",
    )
    parser.add_argument(
        "--precise-overlap", action="store_true",
        help="Allow non-overlapping wildcard destinations in one repo",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    # rules
    rules = sub.add_parser("rules", help="Rule document operations")
    rules_sub = rules.add_subparsers(dest="subcommand")
    rules_sub.add_parser("validate", help="Validate the rule document")
    rules_sub.add_parser("show", help="Show the rules in effect")
    match = rules_sub.add_parser("match", help="Show which rules a ref update triggers")
    match.add_argument("repo")
    match.add_argument("ref")

    # resolve
    res = sub.add_parser("resolve", help="Resolve a graph manifest to its projects")
    res.add_argument("repo")
    res.add_argument("ref")
    res.add_argument("path", help="Manifest path within the repository")

    # sync
    syn = sub.add_parser("sync", help="Synchronize every rule a ref update triggers")
    syn.add_argument("repo")
    syn.add_argument("ref")

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    dispatch = {
        ("rules", "validate"): cmd_rules_validate,
        ("rules", "show"): cmd_rules_show,
        ("rules", "match"): cmd_rules_match,
    }

    # Top-level commands (no subcommand)
    if args.command == "resolve":
        return cmd_resolve(args)
    if args.command == "sync":
        return cmd_sync(args)

    subcommand: str | None = getattr(args, "subcommand", None)
    handler = dispatch.get((args.command, subcommand or ""))
    if handler:
        return handler(args)

    parser.parse_args([args.command, "--help"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
