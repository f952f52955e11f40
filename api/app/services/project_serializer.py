"""Batch serialization of projects into their API shape.

Not a pydantic serializer hook: instantiate with a batch and call
``serialize()``. Versions (and, for internal callers, repository maintenance
stats) are fetched once for the whole batch and merged per project.
"""

from __future__ import annotations

from functools import cached_property
from typing import Mapping, Optional, Sequence

from app.adapters.package_store import PackageStore
from app.models.maintenance_stat import MaintenanceStatSummary
from app.models.project import Project, SerializedProject
from app.models.version import VersionSummary
from app.services import package_managers
from app.services.batch_loader import (
    group_maintenance_stats_by_repository,
    group_versions_by_project,
)
from app.services.instrumentation import instrumented

RequestedNameMap = Mapping[tuple[str, str], Optional[str]]


class ProjectSerializer:
    def __init__(
        self,
        store: PackageStore,
        projects: Sequence[Project],
        requested_name_map: RequestedNameMap,
        include_internal_fields: bool = False,
    ) -> None:
        self._store = store
        self._projects = list(projects)
        self._requested_name_map = requested_name_map
        self._include_internal_fields = include_internal_fields

    @instrumented("project_serializer.serialize")
    def serialize(self) -> list[SerializedProject]:
        return [self.serialize_project(project) for project in self._projects]

    def serialize_project(self, project: Project) -> SerializedProject:
        fields = dict(
            dependent_repos_count=project.dependent_repos_count,
            dependents_count=project.dependents_count,
            deprecation_reason=project.deprecation_reason,
            description=project.description,
            homepage=project.homepage,
            keywords=list(project.keywords),
            language=project.language,
            latest_release_number=project.latest_release_number,
            latest_release_published_at=project.latest_release_published_at,
            latest_stable_release_number=project.latest_stable_release_number,
            latest_stable_release_published_at=project.latest_stable_release_published_at,
            license_normalized=project.license_normalized,
            license_set_by_admin=project.license_set_by_admin,
            licenses=project.licenses,
            normalized_licenses=list(project.normalized_licenses),
            platform=project.platform,
            rank=project.rank,
            repository_url=project.repository_url,
            score=project.score,
            status=project.status,
            canonical_name=project.name,
            name=self._requested_name_map.get((project.platform, project.name)),
            download_url=package_managers.download_url(project),
            forks=package_managers.forks(project),
            latest_download_url=package_managers.latest_download_url(project),
            package_manager_url=package_managers.package_manager_url(project),
            repository_license=package_managers.repository_license(project),
            stars=package_managers.stars(project),
            versions=list(self.versions.get(project.id, [])),
        )
        if self._include_internal_fields:
            fields["updated_at"] = project.updated_at
            fields["repository_maintenance_stats"] = (
                list(self.maintenance_stats.get(project.repository_id, []))
                if project.repository_id is not None
                else []
            )
        return SerializedProject(**fields)

    @cached_property
    def versions(self) -> dict[int, list[VersionSummary]]:
        return group_versions_by_project(self._store, [p.id for p in self._projects])

    @cached_property
    def maintenance_stats(self) -> dict[int, list[MaintenanceStatSummary]]:
        repository_ids = [p.repository_id for p in self._projects if p.repository_id is not None]
        return group_maintenance_stats_by_repository(self._store, repository_ids)


def serialize_batch(
    store: PackageStore,
    projects: Sequence[Project],
    requested_name_map: RequestedNameMap,
    include_internal_fields: bool = False,
) -> list[SerializedProject]:
    return ProjectSerializer(store, projects, requested_name_map, include_internal_fields).serialize()
