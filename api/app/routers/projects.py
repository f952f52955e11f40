"""Project lookup and version sync API routes."""

from __future__ import annotations

import hmac
import os

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from app.adapters.package_store import PackageStore
from app.models.error import ErrorDetail
from app.models.project import ProjectLookupRequest
from app.models.version import ExternalVersion, VersionSyncResult
from app.services.project_serializer import serialize_batch
from app.services.version_reconciler import deprecate_versions

router = APIRouter()


def get_store(request: Request) -> PackageStore:
    return request.app.state.package_store


def include_internal_fields(x_internal_key: str | None = Header(None)) -> bool:
    internal_key = os.getenv("INTERNAL_API_KEY")
    if not internal_key or not x_internal_key:
        return False
    return hmac.compare_digest(x_internal_key, internal_key)


@router.post("/projects/bulk")
async def lookup_projects(
    body: ProjectLookupRequest,
    store: PackageStore = Depends(get_store),
    internal: bool = Depends(include_internal_fields),
) -> list[dict]:
    requested = {(item.platform.lower(), item.name.lower()): item for item in body.projects}
    found = store.find_projects((item.platform, item.name) for item in body.projects)
    by_key = {(p.platform.lower(), p.name.lower()): p for p in found}

    # Keep the client's order and echo the names it asked with.
    projects = [by_key[k] for k in requested if k in by_key]
    requested_name_map = {
        (p.platform, p.name): requested[(p.platform.lower(), p.name.lower())].name for p in projects
    }
    serialized = serialize_batch(store, projects, requested_name_map, include_internal_fields=internal)
    return [item.to_payload() for item in serialized]


@router.get("/projects/{platform}/{name}", responses={404: {"model": ErrorDetail}})
async def get_project(
    platform: str,
    name: str,
    store: PackageStore = Depends(get_store),
    internal: bool = Depends(include_internal_fields),
) -> dict:
    project = store.get_project(platform, name)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    serialized = serialize_batch(
        store, [project], {(project.platform, project.name): name}, include_internal_fields=internal
    )
    return serialized[0].to_payload()


@router.post(
    "/projects/{platform}/{name}/sync",
    response_model=VersionSyncResult,
    responses={404: {"model": ErrorDetail}},
)
async def sync_project_versions(
    platform: str,
    name: str,
    versions: list[ExternalVersion],
    store: PackageStore = Depends(get_store),
) -> VersionSyncResult:
    project = store.get_project(platform, name)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    removed = deprecate_versions(store, project, versions)
    return VersionSyncResult(platform=project.platform, name=project.name, removed=removed)
