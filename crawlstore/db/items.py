"""Statements for the ``items`` table.

These helpers execute inside the caller's transaction; they never commit.
"""

from __future__ import annotations

import sqlite3
from typing import Optional, Sequence

from crawlstore.db.codec import (
    decode_categories,
    decode_decimal,
    decode_thumbnail,
    encode_categories,
    encode_decimal,
    encode_thumbnail,
)
from crawlstore.db.models import Item, Price

_UPSERT_SQL = """
INSERT INTO items (owner, hash, slug, title, tags, description, thumbnail, language,
                   priceAmount, priceCurrency, categories, nsfw, contractType, rating)
VALUES (?, ?, ?, ?, '', ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (hash) DO UPDATE SET
    owner = excluded.owner,
    slug = excluded.slug,
    title = excluded.title,
    tags = excluded.tags,
    description = excluded.description,
    thumbnail = excluded.thumbnail,
    language = excluded.language,
    priceAmount = excluded.priceAmount,
    priceCurrency = excluded.priceCurrency,
    categories = excluded.categories,
    nsfw = excluded.nsfw,
    contractType = excluded.contractType,
    rating = excluded.rating
"""


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        hash=row["hash"],
        owner=row["owner"] or "",
        slug=row["slug"] or "",
        title=row["title"] or "",
        description=row["description"] or "",
        thumbnail=decode_thumbnail(row["thumbnail"]),
        language=row["language"] or "",
        price=Price(amount=row["priceAmount"] or 0, currency_code=row["priceCurrency"] or ""),
        categories=decode_categories(row["categories"]),
        nsfw=bool(row["nsfw"]),
        contract_type=row["contractType"] or "",
        average_rating=decode_decimal(row["rating"]),
    )


def _item_values(owner: str, item: Item) -> tuple:
    return (
        owner,
        item.hash,
        item.slug,
        item.title,
        item.description,
        encode_thumbnail(item.thumbnail),
        item.language,
        item.price.amount,
        item.price.currency_code,
        encode_categories(item.categories),
        int(item.nsfw),
        item.contract_type,
        encode_decimal(item.average_rating),
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def delete_for_owner(conn: sqlite3.Connection, owner: str) -> int:
    """Delete every item of *owner*.  Returns the number of rows removed."""
    return conn.execute("DELETE FROM items WHERE owner = ?", (owner,)).rowcount


def foreign_owners(conn: sqlite3.Connection, hashes: Sequence[str]) -> dict[str, str]:
    """Map each of *hashes* already stored to its current owner."""
    if not hashes:
        return {}
    placeholders = ", ".join("?" for _ in hashes)
    rows = conn.execute(
        f"SELECT hash, owner FROM items WHERE hash IN ({placeholders})",  # noqa: S608
        list(hashes),
    ).fetchall()
    return {r["hash"]: r["owner"] for r in rows}


def delete_hashes(conn: sqlite3.Connection, hashes: Sequence[str]) -> None:
    """Delete the rows for *hashes* whatever their owner."""
    conn.executemany("DELETE FROM items WHERE hash = ?", [(h,) for h in hashes])


def upsert_items(conn: sqlite3.Connection, owner: str, items: Sequence[Item]) -> None:
    """Insert *items* for *owner*, overwriting any row with the same hash."""
    conn.executemany(_UPSERT_SQL, [_item_values(owner, item) for item in items])


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_item(conn: sqlite3.Connection, item_hash: str) -> Optional[Item]:
    row = conn.execute("SELECT * FROM items WHERE hash = ?", (item_hash,)).fetchone()
    return _row_to_item(row) if row else None


def list_items(conn: sqlite3.Connection, owner: str) -> list[Item]:
    """Return *owner*'s items in the order they were written."""
    rows = conn.execute(
        "SELECT * FROM items WHERE owner = ? ORDER BY rowid", (owner,)
    ).fetchall()
    return [_row_to_item(r) for r in rows]


def count_items(conn: sqlite3.Connection, owner: Optional[str] = None) -> int:
    if owner is None:
        return conn.execute("SELECT COUNT(*) FROM items").fetchone()[0]
    return conn.execute(
        "SELECT COUNT(*) FROM items WHERE owner = ?", (owner,)
    ).fetchone()[0]
