"""Schema catalog, builder and the startup integrity reconciler.

The store is expected to hold exactly four relations (profiles, profiles_fts,
notifs, follow). On startup ``reconcile`` looks at which of them exist:

- none      -> brand-new file, create everything
- all four  -> pre-existing store, leave it alone
- otherwise -> partially built or damaged, drop what is there and rebuild

Only relation names are compared unless column verification is enabled, so
a relation with the right name but a stale column layout passes as intact
by default.
"""

from __future__ import annotations

import logging
import sqlite3
from enum import Enum

from ..config import get
from .db import Store
from .errors import SchemaCreationFailed

LOG = logging.getLogger(__name__)

EXPECTED_RELATIONS: tuple[str, ...] = ("profiles", "profiles_fts", "notifs", "follow")

PROFILES_FTS_ROWID_INDEX = "idx_profiles_fts_rowid"

_FIELD_COLUMNS = (
    "field_name_1", "field_value_1",
    "field_name_2", "field_value_2",
    "field_name_3", "field_value_3",
    "field_name_4", "field_value_4",
)

COLUMNS: dict[str, tuple[str, ...]] = {
    "profiles": (
        "user_id", "fts_rowid", "acct_id", "user_name", "instance", "uri",
        *_FIELD_COLUMNS,
        "profile_text", "earliest_notif", "loginable", "tested",
    ),
    "profiles_fts": (
        "user_id", "user_name", "instance", "uri",
        *_FIELD_COLUMNS,
        "profile_text",
    ),
    "notifs": ("from_user_id", "to_user_id", "created_at", "notif_type", "status_uri"),
    "follow": ("by_user_id", "of_user_id", "last_event", "relation_type"),
}


# Creation order respects the references: notifs/follow point at profiles.
CREATE_STEPS: list[tuple[str, str]] = [
    (
        "profiles",
        """
        CREATE TABLE profiles (
          user_id TEXT PRIMARY KEY,
          fts_rowid INTEGER,
          acct_id INTEGER NOT NULL,
          user_name TEXT NOT NULL,
          instance TEXT NOT NULL,
          uri TEXT NOT NULL,
          field_name_1 TEXT,
          field_value_1 TEXT,
          field_name_2 TEXT,
          field_value_2 TEXT,
          field_name_3 TEXT,
          field_value_3 TEXT,
          field_name_4 TEXT,
          field_value_4 TEXT,
          profile_text TEXT NOT NULL,
          earliest_notif TEXT,
          loginable INTEGER NOT NULL DEFAULT 0,
          tested INTEGER NOT NULL DEFAULT 0
        )
        """,
    ),
    (
        PROFILES_FTS_ROWID_INDEX,
        f"CREATE INDEX {PROFILES_FTS_ROWID_INDEX} ON profiles(fts_rowid)",
    ),
    (
        "profiles_fts",
        """
        CREATE VIRTUAL TABLE profiles_fts USING fts5(
          user_id UNINDEXED,
          user_name,
          instance,
          uri,
          field_name_1, field_value_1,
          field_name_2, field_value_2,
          field_name_3, field_value_3,
          field_name_4, field_value_4,
          profile_text
        )
        """,
    ),
    (
        "notifs",
        """
        CREATE TABLE notifs (
          from_user_id TEXT PRIMARY KEY,
          to_user_id TEXT NOT NULL,
          created_at TEXT NOT NULL,
          notif_type TEXT NOT NULL,
          status_uri TEXT,
          FOREIGN KEY (from_user_id) REFERENCES profiles(user_id),
          FOREIGN KEY (to_user_id) REFERENCES profiles(user_id)
        )
        """,
    ),
    (
        "follow",
        """
        CREATE TABLE follow (
          by_user_id TEXT PRIMARY KEY,
          of_user_id TEXT NOT NULL,
          last_event TEXT NOT NULL,
          relation_type TEXT NOT NULL,
          FOREIGN KEY (by_user_id) REFERENCES profiles(user_id),
          FOREIGN KEY (of_user_id) REFERENCES profiles(user_id)
        )
        """,
    ),
]

DROP_STEPS: list[tuple[str, str]] = [
    ("follow", "DROP TABLE IF EXISTS follow"),
    ("notifs", "DROP TABLE IF EXISTS notifs"),
    ("profiles_fts", "DROP TABLE IF EXISTS profiles_fts"),
    (PROFILES_FTS_ROWID_INDEX, f"DROP INDEX IF EXISTS {PROFILES_FTS_ROWID_INDEX}"),
    ("profiles", "DROP TABLE IF EXISTS profiles"),
]


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    INTACT = "intact"
    REBUILT = "rebuilt"


# -----------------------------------------------------------------------------
# Builder
# -----------------------------------------------------------------------------


def _run_steps(store: Store, steps: list[tuple[str, str]], action: str) -> None:
    with store.schema_lock, store.transaction():
        for name, sql in steps:
            try:
                store.execute(sql)
            except sqlite3.Error as e:
                raise SchemaCreationFailed(f"{action} failed at {name}: {e}") from e


def create_all(store: Store) -> None:
    """Create every relation and index; fails if any already exists."""
    _run_steps(store, CREATE_STEPS, "create")
    LOG.info("Created store schema in %s", store.path)


def drop_all(store: Store) -> None:
    """Drop every relation in reverse creation order, ignoring absent ones."""
    _run_steps(store, DROP_STEPS, "drop")
    LOG.info("Dropped store schema in %s", store.path)


def rebuild(store: Store) -> None:
    """Drop and recreate everything in a single transaction."""
    with store.schema_lock, store.transaction():
        drop_all(store)
        create_all(store)


# -----------------------------------------------------------------------------
# Reconciler
# -----------------------------------------------------------------------------


def present_relations(store: Store) -> set[str]:
    """Expected relations that physically exist (virtual tables included)."""
    rows = store.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r["name"] for r in rows} & set(EXPECTED_RELATIONS)


def column_mismatches(store: Store) -> list[str]:
    """Relations whose column names differ from the catalog."""
    bad = []
    for relation in EXPECTED_RELATIONS:
        cols = tuple(r["name"] for r in store.execute(f"PRAGMA table_info({relation})").fetchall())
        if cols != COLUMNS[relation]:
            bad.append(relation)
    return bad


def reconcile(store: Store, *, verify_columns: bool | None = None) -> ReconcileOutcome:
    """Bring the store's relation set into agreement with the catalog."""
    if verify_columns is None:
        verify_columns = bool(get("storage.verify_columns", False))

    with store.schema_lock:
        present = present_relations(store)

        if not present:
            create_all(store)
            return ReconcileOutcome.CREATED

        if present == set(EXPECTED_RELATIONS):
            if not verify_columns:
                return ReconcileOutcome.INTACT
            drifted = column_mismatches(store)
            if not drifted:
                return ReconcileOutcome.INTACT
            LOG.warning("Relations with unexpected columns: %s; rebuilding", ", ".join(drifted))
        else:
            missing = sorted(set(EXPECTED_RELATIONS) - present)
            LOG.warning("Store is partial (missing: %s); dropping and rebuilding", ", ".join(missing))

        rebuild(store)
        return ReconcileOutcome.REBUILT
