from __future__ import annotations

from datetime import date

import pytest

from mastoutil.models import (
    Follow,
    FollowRelationType,
    Notification,
    NotificationType,
    ProfileField,
)
from mastoutil.storage import open_store, records
from mastoutil.storage.errors import IntegrityAnomaly
from mastoutil.storage.schema import reconcile


@pytest.fixture
def ready(store):
    reconcile(store)
    return store


def test_save_profile_links_fts_row_and_round_trips(ready, make_profile):
    p = make_profile(
        "u1",
        fields=(ProfileField("Pronouns", "they/them"), ProfileField("Site", "https://u1.example")),
        is_loginable=True,
    )

    saved = records.save_profile(ready, p)
    loaded = records.get_profile(ready, "u1")

    assert saved.fts_rowid is not None
    assert loaded == saved
    assert loaded.fields[0] == ProfileField("Pronouns", "they/them")
    assert loaded.earliest_notification == date(2024, 3, 1)
    assert loaded.is_loginable is True and loaded.has_been_tested is False

    fts_row = ready.execute("SELECT * FROM profiles_fts WHERE rowid=?", (saved.fts_rowid,)).fetchone()
    assert fts_row["user_id"] == "u1"
    assert fts_row["field_value_1"] == "they/them"
    assert fts_row["field_name_3"] is None


def test_save_profile_keeps_a_single_fts_row_per_user(ready, make_profile):
    # leftover from an earlier attempt that never got a profile row
    records.insert_profile_fts(ready, make_profile("u1").to_fts_row())

    saved = records.save_profile(ready, make_profile("u1"))

    rows = ready.execute("SELECT rowid FROM profiles_fts WHERE user_id='u1'").fetchall()
    assert [r["rowid"] for r in rows] == [saved.fts_rowid]


def test_save_profile_duplicate_user_id_raises_and_rolls_back(ready, make_profile):
    first = records.save_profile(ready, make_profile("u1"))

    with pytest.raises(IntegrityAnomaly):
        records.save_profile(ready, make_profile("u1", profile_text="changed"))

    assert records.get_profile(ready, "u1") == first
    rows = ready.execute("SELECT rowid FROM profiles_fts WHERE user_id='u1'").fetchall()
    assert [r["rowid"] for r in rows] == [first.fts_rowid]
    assert not ready.conn.in_transaction


def test_get_profile_missing_returns_none(ready):
    assert records.get_profile(ready, "ghost") is None


def test_notification_from_same_sender_is_overwritten(ready):
    records.record_notification(
        ready, Notification("a", "me", date(2024, 1, 1), NotificationType.FOLLOW)
    )
    records.record_notification(
        ready,
        Notification("a", "me", date(2024, 2, 1), NotificationType.MENTION, "https://m.example/@a/1"),
    )

    n = records.get_notification(ready, "a")

    assert n == Notification("a", "me", date(2024, 2, 1), NotificationType.MENTION, "https://m.example/@a/1")
    assert records.relation_counts(ready)["notifs"] == 1
    assert records.get_notification(ready, "b") is None


def test_follow_latest_event_supersedes(ready):
    records.record_follow(ready, Follow("a", "me", date(2024, 1, 1), FollowRelationType.FOLLOW_REQUESTED))
    records.record_follow(ready, Follow("a", "me", date(2024, 1, 5), FollowRelationType.FOLLOWED))

    assert records.get_follow(ready, "a") == Follow("a", "me", date(2024, 1, 5), FollowRelationType.FOLLOWED)
    assert records.get_follow(ready, "zzz") is None


def test_foreign_keys_enforced_when_enabled(tmp_path, set_config, make_profile):
    set_config({"storage": {"foreign_keys": True}})
    with open_store(tmp_path / "fk.db") as store:
        reconcile(store)
        records.save_profile(store, make_profile("me"))
        records.save_profile(store, make_profile("a"))

        records.record_follow(store, Follow("a", "me", date(2024, 1, 1)))
        with pytest.raises(IntegrityAnomaly):
            records.record_follow(store, Follow("stranger", "me", date(2024, 1, 1)))


def test_foreign_keys_not_enforced_by_default(ready):
    records.record_notification(
        ready, Notification("stranger", "me", date(2024, 1, 1), NotificationType.FAVOURITE)
    )

    assert records.get_notification(ready, "stranger") is not None


def test_relation_counts_only_lists_present_relations(store):
    store.execute("CREATE TABLE profiles (user_id TEXT PRIMARY KEY)")

    assert records.relation_counts(store) == {"profiles": 0}


def test_reads_and_writes_before_reconcile_raise_storage_unavailable(store, make_profile):
    from mastoutil.storage.errors import StorageUnavailable

    with pytest.raises(StorageUnavailable):
        records.save_profile(store, make_profile("u1"))
    with pytest.raises(StorageUnavailable):
        records.get_profile(store, "u1")
    with pytest.raises(StorageUnavailable):
        records.record_notification(store, Notification("a", "me", date(2024, 1, 1), NotificationType.POLL))
    with pytest.raises(StorageUnavailable):
        records.get_follow(store, "a")

    assert not store.conn.in_transaction
    assert records.relation_counts(store) == {}
