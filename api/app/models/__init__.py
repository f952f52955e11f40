"""Pydantic models."""

from app.models.error import ErrorDetail
from app.models.maintenance_stat import MaintenanceStat, MaintenanceStatSummary
from app.models.project import (
    PROJECT_ATTRIBUTES,
    Project,
    ProjectLookup,
    ProjectLookupRequest,
    Repository,
    SerializedProject,
)
from app.models.version import ExternalVersion, Version, VersionSummary, VersionSyncResult

__all__ = [
    "ErrorDetail",
    "ExternalVersion",
    "MaintenanceStat",
    "MaintenanceStatSummary",
    "PROJECT_ATTRIBUTES",
    "Project",
    "ProjectLookup",
    "ProjectLookupRequest",
    "Repository",
    "SerializedProject",
    "Version",
    "VersionSummary",
    "VersionSyncResult",
]
