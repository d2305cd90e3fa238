"""SQLite storage layer for mastoutil.

Typical startup:

    with open_store() as store:
        reconcile(store)
        save_profile(store, profile)

- db: locate/open the data file (Store handle)
- schema: expected relations, create/drop, startup reconciliation
- fts: profiles_fts back-reference maintenance and profile search
- records: profile / notification / follow reads and writes
"""

from .db import Store, open_store, db_path  # noqa: F401
from .errors import (  # noqa: F401
    IntegrityAnomaly,
    InvalidQuery,
    SchemaCreationFailed,
    StorageError,
    StorageUnavailable,
)
from .fts import check_fts_links, search_profiles, sync_fts_rowid  # noqa: F401
from .records import (  # noqa: F401
    get_follow,
    get_notification,
    get_profile,
    insert_profile,
    insert_profile_fts,
    record_follow,
    record_notification,
    relation_counts,
    save_profile,
)
from .schema import (  # noqa: F401
    EXPECTED_RELATIONS,
    ReconcileOutcome,
    create_all,
    drop_all,
    rebuild,
    reconcile,
)
