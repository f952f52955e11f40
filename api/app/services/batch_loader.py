"""Bulk loading of project children, grouped by parent id in memory.

Each function issues exactly one store read regardless of how many parents are
requested (none at all for an empty request). Parents without rows are absent
from the returned mapping; callers default with ``.get(parent_id, [])``.
"""

from __future__ import annotations

from typing import Iterable

from app.adapters.package_store import PackageStore
from app.models.maintenance_stat import MaintenanceStatSummary
from app.models.version import VersionSummary
from app.services.instrumentation import instrumented


@instrumented("batch_loader.group_versions_by_project")
def group_versions_by_project(
    store: PackageStore, project_ids: Iterable[int]
) -> dict[int, list[VersionSummary]]:
    ids = set(project_ids)
    grouped: dict[int, list[VersionSummary]] = {}
    if not ids:
        return grouped
    for version in store.list_versions(ids):
        # published_at falls back to created_at here, so consumers never see a null date.
        summary = VersionSummary.from_version(version)
        if version.project_id not in grouped:
            grouped[version.project_id] = []
        grouped[version.project_id].append(summary)
    return grouped


@instrumented("batch_loader.group_maintenance_stats_by_repository")
def group_maintenance_stats_by_repository(
    store: PackageStore, repository_ids: Iterable[int]
) -> dict[int, list[MaintenanceStatSummary]]:
    ids = set(repository_ids)
    grouped: dict[int, list[MaintenanceStatSummary]] = {}
    if not ids:
        return grouped
    for stat in store.list_maintenance_stats(ids):
        if stat.repository_id not in grouped:
            grouped[stat.repository_id] = []
        grouped[stat.repository_id].append(MaintenanceStatSummary.from_stat(stat))
    return grouped
