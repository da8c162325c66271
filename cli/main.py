"""crawlstore CLI — inspect and drive the crawl frontier by hand.

Usage:
    python cli/main.py --help

Command groups:
    db        → schema initialisation
    enqueue / next / claim / touch / frontier  → frontier scheduling
    show / items                                → node profile and catalog reads
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from crawlstore.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import logging
from typing import List, Optional

import typer

from crawlstore.config import settings
from crawlstore.db import get_connection, init_db
from crawlstore.db.models import Node
from crawlstore.errors import StoreError
from crawlstore.store import FrontierStore

app = typer.Typer(
    name="crawlstore",
    help="Crawl frontier and item catalog store.",
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    if logging.getLogger().handlers:
        return
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    _configure_logging(verbose)


def _open_store() -> FrontierStore:
    try:
        return FrontierStore.open()
    except StoreError as exc:
        typer.echo(f"[crawlstore] {exc}", err=True)
        raise typer.Exit(1) from exc


def _format_node(node: Node) -> str:
    crawled = node.last_crawled.isoformat(sep=" ") if node.last_crawled else "-"
    name = node.profile.name if node.profile else "(no profile)"
    return f"  {node.id}  {crawled}  {name!r}"


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    try:
        conn = get_connection()
    except StoreError as exc:
        typer.echo(f"[db init] {exc}")
        raise typer.Exit(1) from exc
    try:
        init_db(conn)
    except StoreError as exc:
        typer.echo(f"[db init] {exc}")
        raise typer.Exit(1) from exc
    finally:
        conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Frontier commands
# ---------------------------------------------------------------------------
@app.command("enqueue")
def enqueue(
    node_ids: List[str] = typer.Argument(..., help="Node ids to add to the frontier."),
) -> None:
    """Add newly discovered nodes; known nodes keep their crawl time."""
    store = _open_store()
    try:
        added = store.enqueue_discovered(node_ids)
    except StoreError as exc:
        typer.echo(f"[enqueue] {exc}")
        raise typer.Exit(1) from exc
    finally:
        store.close()
    typer.echo(f"[enqueue] {added} new, {len(set(node_ids)) - added} already known")


@app.command("next")
def next_node() -> None:
    """Show the next node to crawl without claiming it."""
    store = _open_store()
    try:
        node = store.next_node_to_crawl()
    except StoreError as exc:
        typer.echo(f"[next] {exc}")
        raise typer.Exit(1) from exc
    finally:
        store.close()
    typer.echo(node.id)


@app.command("claim")
def claim() -> None:
    """Claim the next node to crawl (stamps it as crawled now)."""
    store = _open_store()
    try:
        node = store.claim_next_node()
    except StoreError as exc:
        typer.echo(f"[claim] {exc}")
        raise typer.Exit(1) from exc
    finally:
        store.close()
    typer.echo(node.id)


@app.command("touch")
def touch(node_id: str = typer.Argument(..., help="Node id.")) -> None:
    """Mark a node as crawled now, moving it to the back of the frontier."""
    store = _open_store()
    try:
        store.touch(node_id)
    except StoreError as exc:
        typer.echo(f"[touch] {exc}")
        raise typer.Exit(1) from exc
    finally:
        store.close()
    typer.echo(f"[touch] {node_id}")


@app.command("frontier")
def frontier(
    limit: Optional[int] = typer.Option(None, help="Number of nodes to list."),
) -> None:
    """List nodes in crawl order."""
    store = _open_store()
    try:
        nodes = store.list_frontier(limit)
        total = store.count_nodes()
    except StoreError as exc:
        typer.echo(f"[frontier] {exc}")
        raise typer.Exit(1) from exc
    finally:
        store.close()
    if not nodes:
        typer.echo("[frontier] No nodes found.")
        return
    for n in nodes:
        typer.echo(_format_node(n))
    typer.echo(f"[frontier] showing {len(nodes)} of {total}")


# ---------------------------------------------------------------------------
# Read commands
# ---------------------------------------------------------------------------
@app.command("show")
def show(node_id: str = typer.Argument(..., help="Node id.")) -> None:
    """Print a node's profile and crawl state."""
    store = _open_store()
    try:
        node = store.get_node(node_id)
        item_count = store.count_items(node_id)
    except StoreError as exc:
        typer.echo(f"[show] {exc}")
        raise typer.Exit(1) from exc
    finally:
        store.close()

    typer.echo(f"id           : {node.id}")
    typer.echo(f"last crawled : {node.last_crawled.isoformat(sep=' ')}")
    typer.echo(f"listed       : {node.listed}")
    typer.echo(f"banned       : {node.banned}")
    typer.echo(f"items        : {item_count}")
    if node.profile is None:
        typer.echo("profile      : (not fetched yet)")
        return
    p = node.profile
    typer.echo(f"name         : {p.name}")
    typer.echo(f"handle       : {p.handle}")
    typer.echo(f"location     : {p.location}")
    typer.echo(f"vendor       : {p.vendor}  moderator: {p.moderator}  nsfw: {p.nsfw}")
    typer.echo(
        f"followers    : {p.stats.follower_count}  following: {p.stats.following_count}"
    )
    typer.echo(
        f"rating       : {p.stats.average_rating} ({p.stats.rating_count} ratings)"
    )


@app.command("items")
def items(owner: str = typer.Argument(..., help="Owner node id.")) -> None:
    """List the catalog stored for a node."""
    store = _open_store()
    try:
        catalog = store.list_items(owner)
    except StoreError as exc:
        typer.echo(f"[items] {exc}")
        raise typer.Exit(1) from exc
    finally:
        store.close()
    if not catalog:
        typer.echo(f"[items] No items for {owner!r}.")
        return
    for item in catalog:
        price = f"{item.price.amount} {item.price.currency_code}".strip()
        typer.echo(f"  {item.hash}  {item.title!r}  {price}  [{', '.join(item.categories)}]")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
