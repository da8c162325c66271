"""Conversions between domain values and their column representations."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence, Union

from crawlstore.db.models import Thumbnail

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

# Newly discovered nodes sort before anything that has ever been crawled.
NEVER_CRAWLED = datetime(2000, 1, 1, tzinfo=timezone.utc)

_CENT = Decimal("0.01")


def encode_timestamp(value: datetime) -> str:
    """Format *value* as fixed-width UTC text, so string order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def decode_timestamp(value: str) -> datetime:
    # Rows written by older crawlers carry no fractional seconds.
    fmt = TIMESTAMP_FORMAT if "." in value else "%Y-%m-%d %H:%M:%S"
    return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)


def encode_decimal(value: Union[Decimal, float, int, str]) -> str:
    return str(Decimal(str(value)).quantize(_CENT))


def decode_decimal(value: Optional[Union[float, int, str]]) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(_CENT)


def encode_thumbnail(thumbnail: Thumbnail) -> str:
    """Join the three size variants as ``tiny,small,medium``."""
    return ",".join((thumbnail.tiny, thumbnail.small, thumbnail.medium))


def decode_thumbnail(value: Optional[str]) -> Thumbnail:
    if not value:
        return Thumbnail()
    tiny, _, rest = value.partition(",")
    small, _, medium = rest.partition(",")
    return Thumbnail(tiny=tiny, small=small, medium=medium)


def encode_categories(categories: Sequence[str]) -> str:
    return ",".join(categories)


def decode_categories(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return value.split(",")
