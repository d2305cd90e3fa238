"""Reads and writes issued by collaborators once the store is reconciled.

Every sqlite3 failure leaves this module typed: constraint violations as
IntegrityAnomaly, anything else (missing relations, I/O) as
StorageUnavailable.
"""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from ..models import Follow, Notification, Profile, ProfileFtsRow
from .db import Store
from .errors import IntegrityAnomaly, StorageUnavailable
from .fts import sync_fts_rowid
from .schema import EXPECTED_RELATIONS, present_relations

LOG = logging.getLogger(__name__)


@contextmanager
def _typed_errors(what: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as e:
        raise IntegrityAnomaly(f"{what}: {e}") from e
    except sqlite3.Error as e:
        raise StorageUnavailable(f"{what}: {e}") from e


def _insert(store: Store, table: str, row: dict, *, upsert_key: str | None = None) -> sqlite3.Cursor:
    cols = list(row)
    sql = f"INSERT INTO {table}({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))})"
    if upsert_key:
        updates = ", ".join(f"{c}=excluded.{c}" for c in cols if c != upsert_key)
        sql += f" ON CONFLICT({upsert_key}) DO UPDATE SET {updates}"
    return store.execute(sql, tuple(row.values()))


# -----------------------------------------------------------------------------
# Profiles
# -----------------------------------------------------------------------------


def insert_profile(store: Store, profile: Profile) -> None:
    """Insert a profile row with no FTS back-reference yet."""
    row = profile.to_row()
    row["fts_rowid"] = None
    with _typed_errors(f"Profile {profile.user_id} could not be stored"):
        _insert(store, "profiles", row)


def insert_profile_fts(store: Store, fts_row: ProfileFtsRow) -> int:
    """Insert the FTS mirror row and return its rowid."""
    with _typed_errors(f"profiles_fts row for {fts_row.user_id} could not be stored"):
        return _insert(store, "profiles_fts", fts_row.to_row()).lastrowid


def save_profile(store: Store, profile: Profile) -> Profile:
    """Insert a profile together with its FTS row and link them.

    Runs in one transaction. Returns the stored snapshot with fts_rowid set.
    """
    with _typed_errors(f"Profile {profile.user_id} could not be stored"), store.transaction():
        insert_profile(store, profile)
        # Leftovers from an earlier, rolled-back profile would shadow the new row
        store.execute("DELETE FROM profiles_fts WHERE user_id = ?", (profile.user_id,))
        fts_rowid = insert_profile_fts(store, profile.to_fts_row())
        if not sync_fts_rowid(store, profile.user_id):
            raise IntegrityAnomaly(f"profiles_fts row for {profile.user_id} could not be linked")

    LOG.debug("Saved profile %s (fts_rowid=%d)", profile.user_id, fts_rowid)
    return dataclasses.replace(profile, fts_rowid=fts_rowid)


def get_profile(store: Store, user_id: str) -> Profile | None:
    with _typed_errors(f"Profile {user_id} could not be read"):
        row = store.execute("SELECT * FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
    return Profile.from_row(row) if row else None


# -----------------------------------------------------------------------------
# Notifications / follows (latest event per sender / follower wins)
# -----------------------------------------------------------------------------


def record_notification(store: Store, notification: Notification) -> None:
    with _typed_errors(f"Notification from {notification.from_user_id} rejected"):
        _insert(store, "notifs", notification.to_row(), upsert_key="from_user_id")


def get_notification(store: Store, from_user_id: str) -> Notification | None:
    with _typed_errors(f"Notification from {from_user_id} could not be read"):
        row = store.execute("SELECT * FROM notifs WHERE from_user_id = ?", (from_user_id,)).fetchone()
    return Notification.from_row(row) if row else None


def record_follow(store: Store, follow: Follow) -> None:
    with _typed_errors(f"Follow by {follow.by_user_id} rejected"):
        _insert(store, "follow", follow.to_row(), upsert_key="by_user_id")


def get_follow(store: Store, by_user_id: str) -> Follow | None:
    with _typed_errors(f"Follow by {by_user_id} could not be read"):
        row = store.execute("SELECT * FROM follow WHERE by_user_id = ?", (by_user_id,)).fetchone()
    return Follow.from_row(row) if row else None


def relation_counts(store: Store) -> dict[str, int]:
    """Row counts for the expected relations that exist."""
    with _typed_errors("Row counts unavailable"):
        present = present_relations(store)
        return {
            name: int(store.execute(f"SELECT COUNT(*) AS n FROM {name}").fetchone()["n"])
            for name in EXPECTED_RELATIONS
            if name in present
        }
