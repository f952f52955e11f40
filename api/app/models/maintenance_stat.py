from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MaintenanceStat(BaseModel):
    """Maintenance metric snapshot, owned by a repository (not a project)."""

    id: int
    repository_id: int
    category: str
    value: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)


class MaintenanceStatSummary(BaseModel):
    category: str
    value: Optional[str] = None
    updated_at: datetime

    @classmethod
    def from_stat(cls, stat: MaintenanceStat) -> "MaintenanceStatSummary":
        return cls(category=stat.category, value=stat.value, updated_at=stat.updated_at)
