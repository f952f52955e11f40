#!/usr/bin/env python3
"""Mark versions Removed when an upstream version list no longer reports them.

Usage:
  python scripts/sync_versions.py --platform rubygems --name rails --versions versions.json
  cat versions.json | python scripts/sync_versions.py --platform npm --name react --versions -

The versions file is a JSON array of objects with at least a "number" key, as
returned by the upstream registry fetcher.
"""

import argparse
import json
import logging
import os
import sys

_api_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _api_dir)

from app.adapters.package_store import InMemoryPackageStore
from app.adapters.postgres_store import PostgresPackageStore
from app.services.version_reconciler import deprecate_versions

log = logging.getLogger(__name__)


def _read_versions(path: str) -> list[dict]:
    if path == "-":
        data = json.load(sys.stdin)
    else:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    if not isinstance(data, list):
        raise SystemExit("versions payload must be a JSON array")
    return data


def main() -> None:
    ap = argparse.ArgumentParser(description="Reconcile stored versions against an upstream list")
    ap.add_argument("--platform", required=True)
    ap.add_argument("--name", required=True)
    ap.add_argument("--versions", required=True, help="Path to JSON array of versions, or - for stdin")
    ap.add_argument(
        "--persist",
        default=None,
        help="In-memory store JSON path when DATABASE_URL is unset (default: api/logs/package_store.json)",
    )
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        store = PostgresPackageStore(database_url)
    else:
        persist = args.persist or os.path.join(_api_dir, "logs", "package_store.json")
        store = InMemoryPackageStore(persist_path=persist)

    project = store.get_project(args.platform, args.name)
    if project is None:
        raise SystemExit(f"project not found: {args.platform}/{args.name}")

    removed = deprecate_versions(store, project, _read_versions(args.versions))
    if isinstance(store, InMemoryPackageStore):
        store.save()
    log.info("Marked %d versions removed for %s/%s", len(removed), project.platform, project.name)
    print(json.dumps({"platform": project.platform, "name": project.name, "removed": removed}))


if __name__ == "__main__":
    main()
