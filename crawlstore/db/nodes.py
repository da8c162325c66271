"""Statements for the ``nodes`` table.

These helpers execute inside the caller's transaction; they never commit.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from crawlstore.db.codec import (
    NEVER_CRAWLED,
    decode_decimal,
    decode_timestamp,
    encode_decimal,
    encode_timestamp,
)
from crawlstore.db.models import Node, Profile, Stats

_PROFILE_COLUMNS = (
    "name",
    "handle",
    "location",
    "nsfw",
    "vendor",
    "moderator",
    "about",
    "shortDescription",
    "followerCount",
    "followingCount",
    "listingCount",
    "postCount",
    "ratingCount",
    "averageRating",
)

_FRONTIER_ORDER = "ORDER BY lastUpdated ASC, id ASC"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_profile(row: sqlite3.Row) -> Optional[Profile]:
    if all(row[col] is None for col in _PROFILE_COLUMNS):
        return None
    return Profile(
        name=row["name"] or "",
        handle=row["handle"] or "",
        location=row["location"] or "",
        about=row["about"] or "",
        short_description=row["shortDescription"] or "",
        nsfw=bool(row["nsfw"]),
        vendor=bool(row["vendor"]),
        moderator=bool(row["moderator"]),
        stats=Stats(
            follower_count=row["followerCount"] or 0,
            following_count=row["followingCount"] or 0,
            listing_count=row["listingCount"] or 0,
            post_count=row["postCount"] or 0,
            rating_count=row["ratingCount"] or 0,
            average_rating=decode_decimal(row["averageRating"]),
        ),
    )


def _row_to_node(row: sqlite3.Row) -> Node:
    return Node(
        id=row["id"],
        last_crawled=decode_timestamp(row["lastUpdated"]),
        profile=_row_to_profile(row),
        listed=bool(row["listed"]),
        banned=bool(row["banned"]),
    )


def _profile_values(profile: Profile) -> tuple:
    stats = profile.stats
    return (
        profile.name,
        profile.handle,
        profile.location,
        int(profile.nsfw),
        int(profile.vendor),
        int(profile.moderator),
        profile.about,
        profile.short_description,
        stats.follower_count,
        stats.following_count,
        stats.listing_count,
        stats.post_count,
        stats.rating_count,
        encode_decimal(stats.average_rating),
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def insert_uninitialized(conn: sqlite3.Connection, node_id: str) -> bool:
    """Insert a bare row marked as never crawled.

    Returns ``False`` when the node already exists; its row is left as is.
    """
    cur = conn.execute(
        "INSERT OR IGNORE INTO nodes (id, lastUpdated) VALUES (?, ?)",
        (node_id, encode_timestamp(NEVER_CRAWLED)),
    )
    return cur.rowcount == 1


def upsert_last_crawled(conn: sqlite3.Connection, node_id: str, when: datetime) -> None:
    conn.execute(
        """
        INSERT INTO nodes (id, lastUpdated) VALUES (?, ?)
        ON CONFLICT (id) DO UPDATE SET lastUpdated = excluded.lastUpdated
        """,
        (node_id, encode_timestamp(when)),
    )


def upsert_profile(
    conn: sqlite3.Connection, node_id: str, profile: Profile, when: datetime
) -> None:
    """Write every profile column and ``lastUpdated``; last write wins."""
    columns = ", ".join(_PROFILE_COLUMNS)
    placeholders = ", ".join("?" for _ in _PROFILE_COLUMNS)
    updates = ", ".join(f"{col} = excluded.{col}" for col in _PROFILE_COLUMNS)
    conn.execute(
        f"""
        INSERT INTO nodes (id, lastUpdated, {columns})
        VALUES (?, ?, {placeholders})
        ON CONFLICT (id) DO UPDATE SET lastUpdated = excluded.lastUpdated, {updates}
        """,  # noqa: S608
        (node_id, encode_timestamp(when)) + _profile_values(profile),
    )


def claim_oldest(conn: sqlite3.Connection, when: datetime) -> Optional[Node]:
    """Stamp the head of the frontier with *when* and return it, in one statement."""
    # fetchall() steps the statement to completion before the caller commits.
    rows = conn.execute(
        f"""
        UPDATE nodes SET lastUpdated = ?
        WHERE id = (SELECT id FROM nodes {_FRONTIER_ORDER} LIMIT 1)
        RETURNING *
        """,  # noqa: S608
        (encode_timestamp(when),),
    ).fetchall()
    return _row_to_node(rows[0]) if rows else None


def set_flag(conn: sqlite3.Connection, node_id: str, column: str, value: bool) -> bool:
    """Set the ``listed`` or ``banned`` flag.  Returns ``False`` if no such node."""
    if column not in ("listed", "banned"):
        raise ValueError(f"Cannot set flag {column!r}")
    cur = conn.execute(
        f"UPDATE nodes SET {column} = ? WHERE id = ?",  # noqa: S608
        (int(value), node_id),
    )
    return cur.rowcount == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_node(conn: sqlite3.Connection, node_id: str) -> Optional[Node]:
    """Fetch a single node by id.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM nodes WHERE id = ?", (node_id,)).fetchone()
    return _row_to_node(row) if row else None


def oldest(conn: sqlite3.Connection) -> Optional[Node]:
    row = conn.execute(f"SELECT * FROM nodes {_FRONTIER_ORDER} LIMIT 1").fetchone()  # noqa: S608
    return _row_to_node(row) if row else None


def list_frontier(conn: sqlite3.Connection, limit: int) -> list[Node]:
    """Return up to *limit* nodes in scheduling order."""
    rows = conn.execute(
        f"SELECT * FROM nodes {_FRONTIER_ORDER} LIMIT ?", (limit,)  # noqa: S608
    ).fetchall()
    return [_row_to_node(r) for r in rows]


def count_nodes(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]

