"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  Composite columns
(thumbnail, categories) are structured here; the joined-string forms only
exist in :mod:`crawlstore.db.codec`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass
class Stats:
    follower_count: int = 0
    following_count: int = 0
    listing_count: int = 0
    post_count: int = 0
    rating_count: int = 0
    average_rating: Decimal = Decimal("0.00")


@dataclass
class Profile:
    """Profile data fetched from a node.  Saved as a whole, never merged."""

    name: str = ""
    handle: str = ""
    location: str = ""
    about: str = ""
    short_description: str = ""
    nsfw: bool = False
    vendor: bool = False
    moderator: bool = False
    stats: Stats = field(default_factory=Stats)


@dataclass
class Node:
    """A remote peer under crawl.

    ``profile`` is ``None`` for nodes that were discovered or touched but never
    fully saved.  ``listed`` and ``banned`` are moderation flags kept on the
    row; profile saves do not change them.
    """

    id: str
    last_crawled: Optional[datetime] = None
    profile: Optional[Profile] = None
    listed: bool = False
    banned: bool = False


@dataclass(frozen=True)
class Thumbnail:
    tiny: str = ""
    small: str = ""
    medium: str = ""


@dataclass(frozen=True)
class Price:
    amount: int = 0  # minor units
    currency_code: str = ""


@dataclass
class Item:
    """A listing published by exactly one node (``owner``)."""

    hash: str
    owner: str = ""
    slug: str = ""
    title: str = ""
    description: str = ""
    thumbnail: Thumbnail = field(default_factory=Thumbnail)
    language: str = ""
    price: Price = field(default_factory=Price)
    categories: list[str] = field(default_factory=list)
    nsfw: bool = False
    contract_type: str = ""
    average_rating: Decimal = Decimal("0.00")
