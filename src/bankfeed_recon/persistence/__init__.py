"""Persistence boundary for bank lines and matches."""

from .datastore import DataStore, InMemoryDataStore, duplicate_key

__all__ = ["DataStore", "InMemoryDataStore", "duplicate_key"]
