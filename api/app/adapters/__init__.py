"""Adapters for external storage: in-memory and SQL package stores."""

from app.adapters.package_store import InMemoryPackageStore, PackageStore
from app.adapters.postgres_store import PostgresPackageStore

__all__ = ["InMemoryPackageStore", "PackageStore", "PostgresPackageStore"]
