"""Single-wildcard ref name patterns."""

from __future__ import annotations


def split_pattern(pattern: str) -> tuple[str, str] | None:
    """Split a pattern around its ``*``.

    Returns:
        (prefix, suffix), or None when the pattern has no wildcard.

    Raises:
        ValueError: If the pattern has more than one ``*``.
    """
    if pattern.count("*") > 1:
        raise ValueError(f"pattern '{pattern}' has more than one '*'")
    if "*" not in pattern:
        return None
    prefix, suffix = pattern.split("*")
    return prefix, suffix


def matches(pattern: str, candidate: str) -> bool:
    """Match ``candidate`` against a pattern with at most one ``*``.

    Without a wildcard this is plain equality. With one, the candidate must
    start with the prefix and end with the suffix, and the two may not overlap.
    """
    parts = split_pattern(pattern)
    if parts is None:
        return pattern == candidate
    prefix, suffix = parts
    return (
        candidate.startswith(prefix)
        and candidate.endswith(suffix)
        and len(candidate) >= len(prefix) + len(suffix)
    )


def matches_any(patterns, candidate: str) -> bool:
    return any(matches(p, candidate) for p in patterns)


def overlaps(a: str, b: str) -> bool:
    """Report whether some name could match both patterns.

    Two wildcard patterns overlap when one prefix extends the other and one
    suffix extends the other: the longer prefix followed by the longer suffix
    then matches both.
    """
    pa, pb = split_pattern(a), split_pattern(b)
    if pa is None:
        return matches(b, a)
    if pb is None:
        return matches(a, b)
    (prefix_a, suffix_a), (prefix_b, suffix_b) = pa, pb
    prefixes_agree = prefix_a.startswith(prefix_b) or prefix_b.startswith(prefix_a)
    suffixes_agree = suffix_a.endswith(suffix_b) or suffix_b.endswith(suffix_a)
    return prefixes_agree and suffixes_agree
