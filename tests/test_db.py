"""Database layer: connection, schema initialisation and column codecs.

All tests use an in-memory SQLite database so they are:
- Fast (no disk I/O)
- Isolated (each fixture gets a fresh DB)
- Side-effect free (nothing written to ~/.crawlstore)
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from crawlstore.db.codec import (
    NEVER_CRAWLED,
    decode_categories,
    decode_decimal,
    decode_thumbnail,
    decode_timestamp,
    encode_categories,
    encode_decimal,
    encode_thumbnail,
    encode_timestamp,
)
from crawlstore.db.connection import get_connection, transaction
from crawlstore.db.migrations import init_db
from crawlstore.db.models import Thumbnail
from crawlstore.errors import ConnectivityFailure, TransactionFailure


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestConnection:
    def test_row_factory(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT 1 AS one").fetchone()
        assert row["one"] == 1

    def test_wal_mode(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("PRAGMA journal_mode").fetchone()
        # In-memory DBs always return 'memory', on-disk returns 'wal'
        assert row[0] in ("wal", "memory")

    def test_on_disk_uses_wal(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("crawlstore.config.settings.workspace_dir", tmp_path)
        connection = get_connection()
        try:
            assert connection.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        finally:
            connection.close()
        assert (tmp_path / "frontier.db").exists()

    def test_unopenable_path_raises_connectivity_failure(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("crawlstore.config.settings.workspace_dir", tmp_path)
        with pytest.raises(ConnectivityFailure):
            get_connection(tmp_path / "missing-dir" / "frontier.db")

    def test_non_database_file_raises_connectivity_failure(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("crawlstore.config.settings.workspace_dir", tmp_path)
        bogus = tmp_path / "frontier.db"
        bogus.write_bytes(b"this is not a sqlite file\n" * 64)
        with pytest.raises(ConnectivityFailure, match="not a database"):
            get_connection(bogus)

    def test_busy_timeout_from_settings(self, monkeypatch) -> None:
        monkeypatch.setattr("crawlstore.config.settings.busy_timeout", 2.5)
        connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
        try:
            assert connection.execute("PRAGMA busy_timeout").fetchone()[0] == 2500
        finally:
            connection.close()


class TestInitDb:
    def test_tables_exist(self, conn: sqlite3.Connection) -> None:
        tables = {
            r[0]
            for r in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()
        }
        assert {"nodes", "items"} <= tables

    def test_node_columns(self, conn: sqlite3.Connection) -> None:
        columns = [r["name"] for r in conn.execute("PRAGMA table_info(nodes)").fetchall()]
        assert columns == [
            "id", "lastUpdated", "name", "handle", "location", "nsfw", "vendor",
            "moderator", "about", "shortDescription", "followerCount",
            "followingCount", "listingCount", "postCount", "ratingCount",
            "averageRating", "listed", "banned",
        ]

    def test_item_columns(self, conn: sqlite3.Connection) -> None:
        columns = [r["name"] for r in conn.execute("PRAGMA table_info(items)").fetchall()]
        assert columns == [
            "owner", "hash", "slug", "title", "tags", "description", "thumbnail",
            "language", "priceAmount", "priceCurrency", "categories", "nsfw",
            "contractType", "rating",
        ]

    def test_listed_and_banned_default_false(self, conn: sqlite3.Connection) -> None:
        conn.execute("INSERT INTO nodes (id, lastUpdated) VALUES ('n', '2000-01-01 00:00:00')")
        row = conn.execute("SELECT listed, banned FROM nodes WHERE id = 'n'").fetchone()
        assert (row["listed"], row["banned"]) == (0, 0)

    def test_init_db_is_idempotent(self, conn: sqlite3.Connection) -> None:
        conn.execute("INSERT INTO nodes (id, lastUpdated) VALUES ('n', '2000-01-01 00:00:00')")
        conn.commit()
        # Calling init_db a second time must not raise or drop data
        init_db(conn)
        assert conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0] == 1

    def test_init_db_on_closed_connection(self) -> None:
        connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
        connection.close()
        with pytest.raises(ConnectivityFailure):
            init_db(connection)


class TestTransaction:
    def test_commits_on_success(self, conn: sqlite3.Connection) -> None:
        with transaction(conn):
            conn.execute("INSERT INTO nodes (id, lastUpdated) VALUES ('a', 'x')")
        assert conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0] == 1

    def test_driver_error_becomes_transaction_failure(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(TransactionFailure) as excinfo:
            with transaction(conn):
                conn.execute("INSERT INTO nodes (id, lastUpdated) VALUES ('a', 'x')")
                conn.execute("INSERT INTO nodes (id, lastUpdated) VALUES ('a', 'y')")
        assert isinstance(excinfo.value.__cause__, sqlite3.IntegrityError)
        assert conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0] == 0

    def test_other_errors_propagate_after_rollback(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(RuntimeError):
            with transaction(conn):
                conn.execute("INSERT INTO nodes (id, lastUpdated) VALUES ('a', 'x')")
                raise RuntimeError("boom")
        assert conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0] == 0


# ---------------------------------------------------------------------------
# codec
# ---------------------------------------------------------------------------

class TestCodec:
    def test_thumbnail_fixed_order(self) -> None:
        thumb = Thumbnail(tiny="t.png", small="s.png", medium="m.png")
        assert encode_thumbnail(thumb) == "t.png,s.png,m.png"
        assert decode_thumbnail("t.png,s.png,m.png") == thumb

    def test_empty_thumbnail(self) -> None:
        assert encode_thumbnail(Thumbnail()) == ",,"
        assert decode_thumbnail(",,") == Thumbnail()
        assert decode_thumbnail(None) == Thumbnail()

    def test_categories(self) -> None:
        assert encode_categories(["art", "books"]) == "art,books"
        assert decode_categories("art,books") == ["art", "books"]
        assert encode_categories([]) == ""
        assert decode_categories("") == []

    def test_timestamps_sort_as_text(self) -> None:
        earlier = datetime(2024, 1, 1, 9, 0, 0, 5, tzinfo=timezone.utc)
        later = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert encode_timestamp(NEVER_CRAWLED) < encode_timestamp(earlier) < encode_timestamp(later)
        assert decode_timestamp(encode_timestamp(earlier)) == earlier

    def test_naive_timestamp_is_utc(self) -> None:
        assert encode_timestamp(datetime(2024, 1, 1)) == "2024-01-01 00:00:00.000000"

    def test_legacy_timestamp_without_fraction(self) -> None:
        assert decode_timestamp("2000-01-01 00:00:00") == NEVER_CRAWLED

    def test_decimal_two_places(self) -> None:
        assert encode_decimal(Decimal("4.5")) == "4.50"
        assert encode_decimal(3.14159) == "3.14"
        assert decode_decimal(4.5) == Decimal("4.50")
        assert decode_decimal(None) == Decimal("0.00")
