from __future__ import annotations

import json
import sys

from .storage import (
    StorageError,
    check_fts_links,
    open_store,
    rebuild,
    reconcile,
    relation_counts,
    search_profiles,
)


def _open(args):
    return open_store(getattr(args, "db", None))


def run_status(args) -> int:
    as_json = bool(getattr(args, "json", False))
    try:
        with _open(args) as store:
            outcome = reconcile(store)
            counts = relation_counts(store)
            unlinked = check_fts_links(store)
            path = str(store.path)
    except StorageError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    if as_json:
        payload = {
            "path": path,
            "outcome": outcome.value,
            "counts": counts,
            "unlinked_profiles": unlinked,
        }
        print(json.dumps(payload, ensure_ascii=False))
        return 0

    print(f"Store: {path}")
    print(f"Schema: {outcome.value}")
    for name, n in counts.items():
        print(f"  {name:<14} {n}")
    if unlinked:
        print(f"⚠️  {len(unlinked)} profile(s) without a valid profiles_fts link:")
        for user_id in unlinked:
            print(f"  {user_id}")
    return 0


def run_reset(args) -> int:
    if not getattr(args, "yes", False):
        print("✗ This discards every stored profile, notification and follow.", file=sys.stderr)
        print("  Re-run with --yes to confirm.", file=sys.stderr)
        return 1
    try:
        with _open(args) as store:
            rebuild(store)
            path = str(store.path)
    except StorageError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    print(f"✓ Recreated empty store at {path}")
    return 0


def run_search(args) -> int:
    query = str(getattr(args, "query", "") or "")
    limit = getattr(args, "limit", None)
    try:
        with _open(args) as store:
            reconcile(store)
            profiles = search_profiles(store, query, limit=limit)
    except StorageError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    if not profiles:
        print("(no matches)")
        return 0

    for p in profiles:
        print(f"{p.user_name}@{p.instance}  {p.uri}")
    return 0
