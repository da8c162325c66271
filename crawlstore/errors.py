"""Exceptions raised by the frontier/catalog store."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every error the store surfaces."""


class NodeNotFoundError(StoreError, LookupError):
    """No node matches the lookup, or the frontier is empty."""


class ItemNotFoundError(StoreError, LookupError):
    """No item with the requested hash is stored."""


class TransactionFailure(StoreError):
    """A write step failed; the whole transaction was rolled back."""


class ConnectivityFailure(StoreError):
    """The backing database could not be opened or the connection is closed."""
