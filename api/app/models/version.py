from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

REMOVED_STATUS = "Removed"


class Version(BaseModel):
    """One published version of a project, unique per project by `number`."""

    id: int
    project_id: int
    number: str
    published_at: Optional[datetime] = None
    spdx_expression: Optional[str] = None
    original_license: Optional[str] = None
    researched_at: Optional[datetime] = None
    repository_sources: list[str] = Field(default_factory=list)
    status: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_removed(self) -> bool:
        return self.status == REMOVED_STATUS


class VersionSummary(BaseModel):
    """Serialized version. `published_at` is already resolved against `created_at`."""

    number: str
    published_at: datetime
    spdx_expression: Optional[str] = None
    original_license: Optional[str] = None
    researched_at: Optional[datetime] = None
    repository_sources: list[str] = Field(default_factory=list)

    @classmethod
    def from_version(cls, version: Version) -> "VersionSummary":
        return cls(
            number=version.number,
            published_at=version.published_at or version.created_at,
            spdx_expression=version.spdx_expression,
            original_license=version.original_license,
            researched_at=version.researched_at,
            repository_sources=list(version.repository_sources),
        )


class ExternalVersion(BaseModel):
    """Version descriptor reported by an upstream registry."""

    number: str = Field(min_length=1)
    published_at: Optional[datetime] = None
    original_license: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class VersionSyncResult(BaseModel):
    platform: str
    name: str
    removed: list[str]
