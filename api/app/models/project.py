"""Project models for the package store and the serialized API shape."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.maintenance_stat import MaintenanceStatSummary
from app.models.version import VersionSummary

# Attributes copied verbatim from a stored project into its serialized form.
PROJECT_ATTRIBUTES: tuple[str, ...] = (
    "dependent_repos_count",
    "dependents_count",
    "deprecation_reason",
    "description",
    "homepage",
    "keywords",
    "language",
    "latest_release_number",
    "latest_release_published_at",
    "latest_stable_release_number",
    "latest_stable_release_published_at",
    "license_normalized",
    "license_set_by_admin",
    "licenses",
    "normalized_licenses",
    "platform",
    "rank",
    "repository_url",
    "score",
    "status",
)

# Fields derived per project at serialization time.
COMPUTED_ATTRIBUTES: tuple[str, ...] = (
    "canonical_name",
    "name",
    "download_url",
    "forks",
    "latest_download_url",
    "package_manager_url",
    "repository_license",
    "stars",
    "versions",
)

# Only present when the caller is allowed to see internal fields.
INTERNAL_ATTRIBUTES: tuple[str, ...] = ("updated_at", "repository_maintenance_stats")


class Repository(BaseModel):
    """Source repository a project is hosted in."""

    id: int
    host_type: str = "GitHub"
    full_name: str
    url: Optional[str] = None
    license: Optional[str] = None
    forks_count: int = 0
    stargazers_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class Project(BaseModel):
    """Stored package record. `name` is the canonical (stored) name."""

    id: int
    platform: str
    name: str
    description: Optional[str] = None
    homepage: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    language: Optional[str] = None
    license_normalized: bool = False
    license_set_by_admin: bool = False
    licenses: Optional[str] = None
    normalized_licenses: list[str] = Field(default_factory=list)
    dependent_repos_count: int = 0
    dependents_count: int = 0
    deprecation_reason: Optional[str] = None
    rank: int = 0
    repository_url: Optional[str] = None
    score: float = 0.0
    status: Optional[str] = None
    latest_release_number: Optional[str] = None
    latest_release_published_at: Optional[datetime] = None
    latest_stable_release_number: Optional[str] = None
    latest_stable_release_published_at: Optional[datetime] = None
    repository_id: Optional[int] = None
    repository: Optional[Repository] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)


class ProjectLookup(BaseModel):
    """One (platform, name) pair as requested by a client."""

    platform: str = Field(min_length=1)
    name: str = Field(min_length=1)


class ProjectLookupRequest(BaseModel):
    projects: list[ProjectLookup] = Field(default_factory=list, max_length=1000)


class SerializedProject(BaseModel):
    """API-facing project record."""

    dependent_repos_count: int
    dependents_count: int
    deprecation_reason: Optional[str]
    description: Optional[str]
    homepage: Optional[str]
    keywords: list[str]
    language: Optional[str]
    latest_release_number: Optional[str]
    latest_release_published_at: Optional[datetime]
    latest_stable_release_number: Optional[str]
    latest_stable_release_published_at: Optional[datetime]
    license_normalized: bool
    license_set_by_admin: bool
    licenses: Optional[str]
    normalized_licenses: list[str]
    platform: str
    rank: int
    repository_url: Optional[str]
    score: float
    status: Optional[str]

    canonical_name: str
    name: Optional[str]
    download_url: Optional[str]
    forks: int
    latest_download_url: Optional[str]
    package_manager_url: Optional[str]
    repository_license: Optional[str]
    stars: int
    versions: list[VersionSummary]

    updated_at: Optional[datetime] = None
    repository_maintenance_stats: Optional[list[MaintenanceStatSummary]] = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict; internal fields appear only when they were set."""
        return self.model_dump(mode="json", exclude_unset=True)
