from __future__ import annotations

import pytest

from mastoutil.storage import schema
from mastoutil.storage.errors import SchemaCreationFailed


def _names(store, kind: str) -> set[str]:
    return {
        r["name"]
        for r in store.execute("SELECT name FROM sqlite_master WHERE type=?", (kind,)).fetchall()
    }


def test_create_all_creates_relations_and_fts_rowid_index(store):
    schema.create_all(store)

    assert set(schema.EXPECTED_RELATIONS) <= _names(store, "table")
    assert schema.PROFILES_FTS_ROWID_INDEX in _names(store, "index")
    assert schema.present_relations(store) == set(schema.EXPECTED_RELATIONS)


def test_created_columns_match_catalog(store):
    schema.create_all(store)

    assert schema.column_mismatches(store) == []


def test_create_all_on_existing_schema_fails_without_partial_changes(store):
    schema.create_all(store)
    store.execute("DROP TABLE follow")

    with pytest.raises(SchemaCreationFailed) as exc:
        schema.create_all(store)

    assert "profiles" in str(exc.value)
    # rolled back: follow is still missing, nothing else was touched
    assert schema.present_relations(store) == {"profiles", "profiles_fts", "notifs"}
    assert not store.conn.in_transaction


def test_drop_all_removes_everything(store):
    schema.create_all(store)

    schema.drop_all(store)

    assert schema.present_relations(store) == set()
    assert schema.PROFILES_FTS_ROWID_INDEX not in _names(store, "index")
    # FTS5 shadow tables go with the virtual table
    assert not any(n.startswith("profiles_fts") for n in _names(store, "table"))


def test_drop_all_is_idempotent_on_empty_and_partial_schema(store):
    schema.drop_all(store)

    store.execute("CREATE TABLE notifs (from_user_id TEXT PRIMARY KEY)")
    schema.drop_all(store)
    schema.drop_all(store)

    assert schema.present_relations(store) == set()


def test_rebuild_discards_rows(store):
    schema.create_all(store)
    store.execute(
        "INSERT INTO follow(by_user_id, of_user_id, last_event, relation_type) VALUES ('a','b','2024-01-01','followed')"
    )

    schema.rebuild(store)

    assert store.execute("SELECT COUNT(*) FROM follow").fetchone()[0] == 0
    assert schema.present_relations(store) == set(schema.EXPECTED_RELATIONS)


def test_drop_steps_are_reverse_of_create_steps():
    assert [name for name, _ in schema.DROP_STEPS] == [name for name, _ in reversed(schema.CREATE_STEPS)]
