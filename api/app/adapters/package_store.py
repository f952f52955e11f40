"""PackageStore abstraction + in-memory backend.

The store is the data-access collaborator of the core: it answers bulk reads
keyed by lists of identifiers and applies version status updates atomically.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Iterable, Optional, Protocol

from app.models.maintenance_stat import MaintenanceStat
from app.models.project import Project, Repository
from app.models.version import REMOVED_STATUS, Version

log = logging.getLogger(__name__)


def _key(platform: str, name: str) -> tuple[str, str]:
    return (platform.lower(), name.lower())


def versions_to_remove(stored: Iterable[Version], external_numbers: set[str]) -> list[str]:
    """Numbers of stored versions missing upstream that are not already Removed."""
    return [v.number for v in stored if v.number not in external_numbers and not v.is_removed]


class PackageStore(Protocol):
    """Protocol for package storage. Implementations: InMemoryPackageStore, PostgresPackageStore."""

    def get_project(self, platform: str, name: str) -> Optional[Project]:
        ...

    def find_projects(self, pairs: Iterable[tuple[str, str]]) -> list[Project]:
        """Bulk lookup by (platform, name); unknown pairs are skipped."""
        ...

    def upsert_project(self, project: Project) -> None:
        ...

    def upsert_repository(self, repository: Repository) -> None:
        ...

    def add_version(self, version: Version) -> None:
        ...

    def add_maintenance_stat(self, stat: MaintenanceStat) -> None:
        ...

    def list_versions(self, project_ids: Iterable[int]) -> list[Version]:
        """All version rows for the given projects in one fetch, ordered by id."""
        ...

    def list_maintenance_stats(self, repository_ids: Iterable[int]) -> list[MaintenanceStat]:
        """All maintenance stat rows for the given repositories in one fetch, ordered by id."""
        ...

    def mark_removed_except(self, project_id: int, external_numbers: Iterable[str]) -> list[str]:
        """Mark Removed every version of one project whose number is not in `external_numbers`.

        Reads and writes in one atomic step. Returns the numbers this call changed,
        ordered by version id; versions already Removed are left alone and not reported.
        """
        ...

    def count_projects(self) -> int:
        ...


class InMemoryPackageStore:
    """In-memory PackageStore. Optional JSON persistence for restart."""

    def __init__(self, persist_path: Optional[str] = None) -> None:
        self._projects: dict[tuple[str, str], Project] = {}
        self._repositories: dict[int, Repository] = {}
        self._versions: dict[int, Version] = {}
        self._stats: dict[int, MaintenanceStat] = {}
        self._persist_path = persist_path
        self._lock = threading.Lock()

        if persist_path and os.path.isfile(persist_path):
            self._load()

    def _load(self) -> None:
        if not self._persist_path:
            return
        try:
            with open(self._persist_path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as exc:
            log.warning("package store at %s is unreadable, starting empty: %s", self._persist_path, exc)
            return
        for r in data.get("repositories", []):
            repo = Repository(**r)
            self._repositories[repo.id] = repo
        for p in data.get("projects", []):
            proj = Project(**p)
            self._projects[_key(proj.platform, proj.name)] = proj
        for v in data.get("versions", []):
            version = Version(**v)
            self._versions[version.id] = version
        for s in data.get("maintenance_stats", []):
            stat = MaintenanceStat(**s)
            self._stats[stat.id] = stat

    def save(self) -> None:
        """Persist to JSON if path set."""
        if not self._persist_path:
            return
        os.makedirs(os.path.dirname(self._persist_path) or ".", exist_ok=True)
        with self._lock:
            data = {
                "projects": [
                    p.model_dump(mode="json", exclude={"repository"}) for p in self._projects.values()
                ],
                "repositories": [r.model_dump(mode="json") for r in self._repositories.values()],
                "versions": [v.model_dump(mode="json") for v in self._versions.values()],
                "maintenance_stats": [s.model_dump(mode="json") for s in self._stats.values()],
            }
        with open(self._persist_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=0)

    def _with_repository(self, project: Project) -> Project:
        repo = self._repositories.get(project.repository_id) if project.repository_id is not None else None
        return project.model_copy(update={"repository": repo})

    def get_project(self, platform: str, name: str) -> Optional[Project]:
        proj = self._projects.get(_key(platform, name))
        return self._with_repository(proj) if proj else None

    def find_projects(self, pairs: Iterable[tuple[str, str]]) -> list[Project]:
        out: list[Project] = []
        seen: set[tuple[str, str]] = set()
        for platform, name in pairs:
            k = _key(platform, name)
            if k in seen:
                continue
            seen.add(k)
            proj = self._projects.get(k)
            if proj:
                out.append(self._with_repository(proj))
        return out

    def upsert_project(self, project: Project) -> None:
        with self._lock:
            self._projects[_key(project.platform, project.name)] = project.model_copy(
                update={"repository": None}
            )

    def upsert_repository(self, repository: Repository) -> None:
        with self._lock:
            self._repositories[repository.id] = repository

    def add_version(self, version: Version) -> None:
        with self._lock:
            for existing in self._versions.values():
                if existing.project_id == version.project_id and existing.number == version.number:
                    raise ValueError(f"version {version.number} already exists for project {version.project_id}")
            self._versions[version.id] = version

    def add_maintenance_stat(self, stat: MaintenanceStat) -> None:
        with self._lock:
            self._stats[stat.id] = stat

    def list_versions(self, project_ids: Iterable[int]) -> list[Version]:
        wanted = set(project_ids)
        with self._lock:
            rows = [v for v in self._versions.values() if v.project_id in wanted]
        return sorted(rows, key=lambda v: v.id)

    def list_maintenance_stats(self, repository_ids: Iterable[int]) -> list[MaintenanceStat]:
        wanted = set(repository_ids)
        with self._lock:
            rows = [s for s in self._stats.values() if s.repository_id in wanted]
        return sorted(rows, key=lambda s: s.id)

    def mark_removed_except(self, project_id: int, external_numbers: Iterable[str]) -> list[str]:
        keep = set(external_numbers)
        with self._lock:
            stored = sorted(
                (v for v in self._versions.values() if v.project_id == project_id),
                key=lambda v: v.id,
            )
            removed = versions_to_remove(stored, keep)
            targets = set(removed)
            for version in stored:
                if version.number in targets:
                    self._versions[version.id] = version.model_copy(update={"status": REMOVED_STATUS})
        return removed

    def count_projects(self) -> int:
        return len(self._projects)
