"""Resolution and synchronization CLI commands."""

import argparse
from pathlib import Path

from supermanifest.errors import ConflictError, SuperManifestError
from supermanifest.git.store import RepoCache, RepositoryStore
from supermanifest.manifest.resolver import ManifestGraphResolver
from supermanifest.sync import SuperManifestListener


def _store(args: argparse.Namespace) -> RepositoryStore:
    return RepositoryStore(args.store, args.canonical_url)


def cmd_resolve(args: argparse.Namespace) -> int:
    try:
        with RepoCache(_store(args)) as cache:
            projects = ManifestGraphResolver(cache).resolve(args.repo, args.ref, args.path)
    except SuperManifestError as e:
        print(f"ERROR: {e}")
        return 1

    if not projects:
        print("No projects.")
        return 0

    print(f"\n  {'Path':<40} {'Ref':<42} {'Remote'}")
    print(f"  {'─' * 100}")
    for project in sorted(projects.values(), key=lambda p: p.path):
        print(f"  {project.path:<40} {project.ref:<42} {project.remote}")
    print(f"\n  {len(projects)} project(s)")
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    if not Path(args.rules).is_file():
        print(f"ERROR: rule document {args.rules} not found")
        return 1

    listener = SuperManifestListener(
        _store(args),
        rules_path=args.rules,
        detect_cycles=args.detect_cycles,
        precise_overlap=args.precise_overlap,
    )
    rule_set = listener.reload()
    for e in rule_set.errors:
        print(f"  WARNING: {e}")

    try:
        results = listener.manual_trigger(args.repo, args.ref)
    except ConflictError as e:
        print(f"ERROR: {e}")
        return 2
    except SuperManifestError as e:
        print(f"ERROR: {e}")
        return 1

    if not results:
        print(f"  {args.repo}:{args.ref}: no matching rules")
        return 0

    for result in results:
        commit_id = getattr(result, "commit_id", None)
        if commit_id is None:
            print(f"  legacy update: {result}")
            continue
        print(f"  {result.dest_repo}:{result.ref} -> {commit_id[:12]} ({result.result.value})")
        print(f"    {len(result.kept)} submodule(s), {len(result.skipped)} skipped")
        for path in result.skipped:
            print(f"    - skipped {path}")
    return 0
