from __future__ import annotations

import logging
import shlex
import sqlite3

from ..config import get
from ..models import Profile
from .db import Store
from .errors import IntegrityAnomaly, InvalidQuery, StorageUnavailable

LOG = logging.getLogger(__name__)


def sync_fts_rowid(store: Store, user_id: str) -> bool:
    """Write the rowid of the user's profiles_fts row into profiles.fts_rowid.

    If several FTS rows carry the same user id the most recent (highest
    rowid) wins. Returns False when either the profile row or its FTS row is
    missing; callers should treat that as an integrity anomaly.
    """
    try:
        cur = store.execute(
            "UPDATE profiles SET fts_rowid = (SELECT MAX(rowid) FROM profiles_fts WHERE user_id = ?) "
            "WHERE user_id = ? AND EXISTS (SELECT 1 FROM profiles_fts WHERE user_id = ?)",
            (user_id, user_id, user_id),
        )
    except sqlite3.Error as e:
        raise IntegrityAnomaly(f"Could not link profiles_fts row for {user_id}: {e}") from e

    linked = cur.rowcount > 0
    LOG.debug("fts_rowid sync for %s: %s", user_id, "linked" if linked else "no matching rows")
    return linked


def check_fts_links(store: Store) -> list[str]:
    """User ids whose fts_rowid is unset or points at the wrong FTS row."""
    rows = store.execute(
        "SELECT p.user_id FROM profiles p "
        "LEFT JOIN profiles_fts f ON f.rowid = p.fts_rowid "
        "WHERE p.fts_rowid IS NULL OR f.user_id IS NULL OR f.user_id != p.user_id "
        "ORDER BY p.user_id"
    ).fetchall()
    return [r["user_id"] for r in rows]


def _is_bare_word(s: str) -> bool:
    return bool(s) and all((c.isalnum() or c == "_") for c in s)


def _split_parens(s: str) -> tuple[str, str, str]:
    body = s.lstrip("(")
    lead = "(" * (len(s) - len(body))
    core = body.rstrip(")")
    trail = ")" * (len(body) - len(core))
    return lead, core, trail


def _escape_token(tok: str) -> str:
    # Only uppercase operators are operators in FTS5; keep them as typed
    if tok in {"AND", "OR", "NOT"}:
        return tok
    if tok.startswith("NEAR/") and tok[5:].isdigit():
        return tok

    neg = ""
    if tok.startswith("-") and len(tok) > 1:
        neg, tok = "-", tok[1:]

    if tok.endswith("*") and _is_bare_word(tok[:-1]):
        return neg + tok
    if _is_bare_word(tok):
        return neg + tok
    # Handles, URLs and instance names must be matched as literal phrases
    return neg + '"' + tok.replace('"', '""') + '"'


def fts_escape_query(q: str) -> str:
    """Turn free user input into an FTS5 MATCH expression that will parse.

    Bare words, explicit uppercase operators, ``prefix*``, ``-term`` and
    parenthesised groups pass through; anything punctuated (``@user``,
    ``mastodon.social``, URLs) is quoted.
    """
    q = (q or "").strip()
    if not q:
        return ""

    try:
        tokens = shlex.split(q)
    except ValueError:
        # unmatched quote
        tokens = q.split()

    out: list[str] = []
    for raw in tokens:
        lead, tok, trail = _split_parens(raw)
        out.append(lead + (_escape_token(tok) if tok else "") + trail)
    return " ".join(out)


def search_profiles(store: Store, query: str, *, limit: int | None = None) -> list[Profile]:
    """Full-text search over profile text columns, best match first.

    Raises InvalidQuery when FTS5 cannot parse the escaped query
    (e.g. a dangling ``AND``) and StorageUnavailable when the store has no
    profile relations yet.
    """
    match = fts_escape_query(query)
    if not match:
        return []
    if limit is None:
        limit = get("search.limit", 25)
    limit = max(1, int(limit))

    try:
        rows = store.execute(
            "SELECT p.* FROM profiles p "
            "JOIN (SELECT rowid AS fts_id, rank FROM profiles_fts WHERE profiles_fts MATCH ?) m "
            "ON p.fts_rowid = m.fts_id "
            "ORDER BY m.rank LIMIT ?",
            (match, limit),
        ).fetchall()
    except sqlite3.OperationalError as e:
        if str(e).startswith("no such table"):
            raise StorageUnavailable(f"Profile search unavailable: {e}") from e
        raise InvalidQuery(f"Cannot search for {query!r}: {e}") from e
    except sqlite3.Error as e:
        raise StorageUnavailable(f"Profile search failed: {e}") from e
    return [Profile.from_row(r) for r in rows]
