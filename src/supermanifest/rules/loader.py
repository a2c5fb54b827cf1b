"""Load the rule document."""

from pathlib import Path

import yaml

from supermanifest.rules.entry import SECTION_NAME
from supermanifest.rules.ruleset import RuleSet, build_rule_set


def read_rule_document(path: Path | str) -> dict:
    """Read and parse a rule document.

    Args:
        path: Path to the YAML rule document.

    Returns:
        Parsed document dict (empty for an empty file).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the YAML is malformed.
    """
    doc_path = Path(path)
    with open(doc_path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"rule document at {doc_path} is not a YAML mapping")
    return data


def rule_entries(document: dict) -> tuple[list[tuple[str, dict]], list[str]]:
    """Split a parsed document into rule entries and warnings.

    Sections other than ``superproject`` are ignored with a warning.
    """
    warnings = []
    for section in document:
        if section != SECTION_NAME:
            warnings.append(f"ignoring invalid section {section}")

    section = document.get(SECTION_NAME) or {}
    if not isinstance(section, dict):
        return [], [f"section {SECTION_NAME} is not a mapping"]
    return [(str(name), fields) for name, fields in section.items()], warnings


def load_rule_set(
    path: Path | str,
    detect_cycles: bool = False,
    precise_overlap: bool = False,
) -> RuleSet:
    """Load and validate the rule document at ``path``."""
    entries, warnings = rule_entries(read_rule_document(path))
    return build_rule_set(
        entries,
        detect_cycles=detect_cycles,
        precise_overlap=precise_overlap,
        warnings=warnings,
    )


def parse_rule_text(
    text: str | bytes,
    detect_cycles: bool = False,
    precise_overlap: bool = False,
) -> RuleSet:
    """Validate a rule document held in memory, e.g. read from a repository blob."""
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("rule document is not a YAML mapping")
    entries, warnings = rule_entries(data)
    return build_rule_set(
        entries,
        detect_cycles=detect_cycles,
        precise_overlap=precise_overlap,
        warnings=warnings,
    )
