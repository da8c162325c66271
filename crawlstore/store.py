"""Frontier/catalog store used by the crawl loop.

The crawler drives the store in a cycle::

    store = FrontierStore.open()
    store.enqueue_discovered(peer_ids)
    node = store.next_node_to_crawl()
    try:
        profile, listings = fetch(node.id)
    except FetchError:
        store.touch(node.id)          # back of the queue, retry later
    else:
        store.save_profile(Node(id=node.id, profile=profile))
        store.replace_catalog(node.id, listings)

``next_node_to_crawl`` is a plain read: two workers may receive the same node
before either stamps it.  Workers that must not overlap use
``claim_next_node`` instead.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from crawlstore.config import settings
from crawlstore.db import items as item_rows
from crawlstore.db import nodes as node_rows
from crawlstore.db.connection import get_connection, reading, transaction
from crawlstore.db.migrations import init_db
from crawlstore.db.models import Item, Node
from crawlstore.errors import ItemNotFoundError, NodeNotFoundError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FrontierStore:
    """Persists nodes and their catalogs on an injected SQLite connection.

    Every mutation runs in its own transaction and either fully commits or
    leaves the previous state intact.  Access to the connection is serialised
    with a lock so one store can be shared by several worker threads.

    Args:
        conn: Open connection with the schema already initialised.
        clock: Returns the current aware UTC time; used for ``last_crawled``.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._conn = conn
        self._clock = clock
        self._lock = threading.RLock()

    @classmethod
    def open(cls, db_path: Optional[Path] = None) -> "FrontierStore":
        """Open ``db_path`` (default ``settings.db_path``) and ensure the schema exists."""
        conn = get_connection(db_path)
        try:
            init_db(conn)
        except Exception:
            conn.close()
            raise
        logger.debug("Opened frontier store at %s", db_path or settings.db_path)
        return cls(conn)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Frontier
    # ------------------------------------------------------------------
    def enqueue_discovered(self, node_ids: Iterable[str]) -> int:
        """Add every unknown id to the frontier as never crawled.

        Known ids are left untouched, so re-discovery never resets a crawl
        timestamp.  The batch is one transaction.

        Returns:
            The number of nodes that were new.
        """
        added = 0
        with self._lock, transaction(self._conn) as conn:
            for node_id in dict.fromkeys(node_ids):
                if node_rows.insert_uninitialized(conn, node_id):
                    logger.debug("Added %s", node_id)
                    added += 1
        return added

    def next_node_to_crawl(self) -> Node:
        """Return the node with the oldest ``last_crawled`` (ties by id).

        Raises:
            NodeNotFoundError: The frontier is empty.
        """
        with self._lock, reading(self._conn) as conn:
            node = node_rows.oldest(conn)
        if node is None:
            raise NodeNotFoundError("Frontier is empty")
        return node

    def claim_next_node(self) -> Node:
        """Atomically stamp the head of the frontier as crawled now and return it.

        Unlike :meth:`next_node_to_crawl`, two callers never receive the same
        node for the same frontier state.

        Raises:
            NodeNotFoundError: The frontier is empty.
        """
        with self._lock, transaction(self._conn) as conn:
            node = node_rows.claim_oldest(conn, self._clock())
        if node is None:
            raise NodeNotFoundError("Frontier is empty")
        logger.debug("Claimed %s", node.id)
        return node

    def touch(self, node_id: str) -> None:
        """Mark *node_id* as crawled now, creating a bare row if needed.

        Profile fields are not changed.
        """
        with self._lock, transaction(self._conn) as conn:
            node_rows.upsert_last_crawled(conn, node_id, self._clock())
        logger.debug("Touched %s", node_id)

    def list_frontier(self, limit: Optional[int] = None) -> list[Node]:
        """Return the next *limit* nodes in scheduling order."""
        with self._lock, reading(self._conn) as conn:
            return node_rows.list_frontier(
                conn, settings.frontier_page if limit is None else limit
            )

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------
    def save_profile(self, node: Node) -> None:
        """Upsert *node*'s full profile and set ``last_crawled`` to now.

        Every profile column is overwritten (last write wins).  The ``listed``
        and ``banned`` flags are not part of the profile and keep their value.

        Raises:
            ValueError: ``node.profile`` is ``None``.
            TransactionFailure: The write failed and was rolled back.
        """
        if node.profile is None:
            raise ValueError(f"Node {node.id!r} has no profile to save")
        with self._lock, transaction(self._conn) as conn:
            node_rows.upsert_profile(conn, node.id, node.profile, self._clock())
        logger.info("Saved profile for %s", node.id)

    def get_node(self, node_id: str) -> Node:
        """Point lookup by id.

        Raises:
            NodeNotFoundError: No node with that id.
        """
        with self._lock, reading(self._conn) as conn:
            node = node_rows.get_node(conn, node_id)
        if node is None:
            raise NodeNotFoundError(f"Node not found: {node_id!r}")
        return node

    def set_listed(self, node_id: str, listed: bool) -> None:
        self._set_flag(node_id, "listed", listed)

    def set_banned(self, node_id: str, banned: bool) -> None:
        self._set_flag(node_id, "banned", banned)

    def _set_flag(self, node_id: str, column: str, value: bool) -> None:
        with self._lock, transaction(self._conn) as conn:
            found = node_rows.set_flag(conn, node_id, column, value)
        if not found:
            raise NodeNotFoundError(f"Node not found: {node_id!r}")
        logger.info("Set %s=%s on %s", column, value, node_id)

    def count_nodes(self) -> int:
        with self._lock, reading(self._conn) as conn:
            return node_rows.count_nodes(conn)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def replace_catalog(self, owner: str, items: Sequence[Item]) -> int:
        """Replace *owner*'s catalog with exactly *items*.

        Deletes every stored item of *owner*, then upserts *items* by hash, in
        one transaction.  An empty sequence leaves the owner with no items.
        A hash currently stored under another owner moves to *owner*.  When
        *items* repeats a hash, the last occurrence wins and keeps the
        position of the first.

        Returns:
            The number of distinct items written.

        Raises:
            TransactionFailure: A step failed; the previous catalog is intact.
        """
        by_hash: dict[str, Item] = {}
        for item in items:
            by_hash[item.hash] = item
        unique = list(by_hash.values())
        with self._lock, transaction(self._conn) as conn:
            removed = item_rows.delete_for_owner(conn, owner)
            moved = item_rows.foreign_owners(conn, list(by_hash))
            for item_hash, previous in moved.items():
                logger.warning(
                    "Item %s moves from owner %s to %s", item_hash, previous, owner
                )
            # Moved rows are re-inserted so they take their place in the new order.
            item_rows.delete_hashes(conn, list(moved))
            item_rows.upsert_items(conn, owner, unique)
        logger.info(
            "Replaced catalog of %s: %d removed, %d written", owner, removed, len(unique)
        )
        return len(unique)

    def get_item(self, item_hash: str) -> Item:
        """Point lookup by hash.

        Raises:
            ItemNotFoundError: No item with that hash.
        """
        with self._lock, reading(self._conn) as conn:
            item = item_rows.get_item(conn, item_hash)
        if item is None:
            raise ItemNotFoundError(f"Item not found: {item_hash!r}")
        return item

    def list_items(self, owner: str) -> list[Item]:
        with self._lock, reading(self._conn) as conn:
            return item_rows.list_items(conn, owner)

    def count_items(self, owner: Optional[str] = None) -> int:
        with self._lock, reading(self._conn) as conn:
            return item_rows.count_items(conn, owner)
