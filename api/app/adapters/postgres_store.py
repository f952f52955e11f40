"""SQL-backed PackageStore (PostgreSQL in production, SQLite in tests)."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    and_,
    create_engine,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    selectinload,
    sessionmaker,
)
from sqlalchemy.pool import NullPool

from app.models.maintenance_stat import MaintenanceStat
from app.models.project import Project, Repository
from app.models.version import REMOVED_STATUS, Version

log = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class RepositoryRecord(Base):
    __tablename__ = "repositories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    host_type: Mapped[str] = mapped_column(String, nullable=False, default="GitHub")
    full_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    url: Mapped[str | None] = mapped_column(String, nullable=True)
    license: Mapped[str | None] = mapped_column(String, nullable=True)
    forks_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stargazers_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProjectRecord(Base):
    __tablename__ = "projects"
    __table_args__ = (UniqueConstraint("platform", "name", name="uq_projects_platform_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    platform: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    homepage: Mapped[str | None] = mapped_column(String, nullable=True)
    keywords: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    language: Mapped[str | None] = mapped_column(String, nullable=True)
    license_normalized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    license_set_by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    licenses: Mapped[str | None] = mapped_column(String, nullable=True)
    normalized_licenses: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    dependent_repos_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dependents_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deprecation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repository_url: Mapped[str | None] = mapped_column(String, nullable=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    latest_release_number: Mapped[str | None] = mapped_column(String, nullable=True)
    latest_release_published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    latest_stable_release_number: Mapped[str | None] = mapped_column(String, nullable=True)
    latest_stable_release_published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    repository_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("repositories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    repository: Mapped[RepositoryRecord | None] = relationship("RepositoryRecord")


class VersionRecord(Base):
    __tablename__ = "versions"
    __table_args__ = (UniqueConstraint("project_id", "number", name="uq_versions_project_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    number: Mapped[str] = mapped_column(String, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    spdx_expression: Mapped[str | None] = mapped_column(String, nullable=True)
    original_license: Mapped[str | None] = mapped_column(String, nullable=True)
    researched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    repository_sources: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class MaintenanceStatRecord(Base):
    __tablename__ = "repository_maintenance_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    repository_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


def _create_engine(url: str):
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = NullPool
    return create_engine(url, **kwargs)


def _repository_from_record(record: RepositoryRecord) -> Repository:
    return Repository.model_validate(record)


def _project_from_record(record: ProjectRecord) -> Project:
    return Project(
        id=record.id,
        platform=record.platform,
        name=record.name,
        description=record.description,
        homepage=record.homepage,
        keywords=list(record.keywords or []),
        language=record.language,
        license_normalized=bool(record.license_normalized),
        license_set_by_admin=bool(record.license_set_by_admin),
        licenses=record.licenses,
        normalized_licenses=list(record.normalized_licenses or []),
        dependent_repos_count=record.dependent_repos_count or 0,
        dependents_count=record.dependents_count or 0,
        deprecation_reason=record.deprecation_reason,
        rank=record.rank or 0,
        repository_url=record.repository_url,
        score=float(record.score or 0.0),
        status=record.status,
        latest_release_number=record.latest_release_number,
        latest_release_published_at=record.latest_release_published_at,
        latest_stable_release_number=record.latest_stable_release_number,
        latest_stable_release_published_at=record.latest_stable_release_published_at,
        repository_id=record.repository_id,
        repository=_repository_from_record(record.repository) if record.repository else None,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _version_from_record(record: VersionRecord) -> Version:
    return Version(
        id=record.id,
        project_id=record.project_id,
        number=record.number,
        published_at=record.published_at,
        spdx_expression=record.spdx_expression,
        original_license=record.original_license,
        researched_at=record.researched_at,
        repository_sources=list(record.repository_sources or []),
        status=record.status,
        created_at=record.created_at,
    )


class PostgresPackageStore:
    """SQLAlchemy-backed PackageStore.

    Every bulk read is a single SELECT with an IN clause over the requested ids,
    so the number of round trips does not grow with the batch size.
    """

    def __init__(self, database_url: str | None = None) -> None:
        if not database_url:
            database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresPackageStore")

        self.engine = _create_engine(database_url)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        """Create tables if they don't exist."""
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Get a new database session with proper cleanup."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ---- Project lookups ----

    def get_project(self, platform: str, name: str) -> Optional[Project]:
        found = self.find_projects([(platform, name)])
        return found[0] if found else None

    def find_projects(self, pairs: Iterable[tuple[str, str]]) -> list[Project]:
        keys = {(platform.lower(), name.lower()) for platform, name in pairs}
        if not keys:
            return []
        clauses = [
            and_(func.lower(ProjectRecord.platform) == platform, func.lower(ProjectRecord.name) == name)
            for platform, name in sorted(keys)
        ]
        with self._session() as session:
            rows = (
                session.execute(
                    select(ProjectRecord)
                    .options(selectinload(ProjectRecord.repository))
                    .where(or_(*clauses))
                    .order_by(ProjectRecord.id.asc())
                )
                .scalars()
                .all()
            )
            return [_project_from_record(row) for row in rows]

    def count_projects(self) -> int:
        with self._session() as session:
            return int(session.execute(select(func.count(ProjectRecord.id))).scalar_one())

    # ---- Writes used by ingestion and fixtures ----

    def upsert_project(self, project: Project) -> None:
        values = project.model_dump(exclude={"repository"})
        with self._session() as session:
            record = session.get(ProjectRecord, project.id)
            if record is None:
                session.add(ProjectRecord(**values))
                return
            for field, value in values.items():
                setattr(record, field, value)

    def upsert_repository(self, repository: Repository) -> None:
        values = repository.model_dump()
        with self._session() as session:
            record = session.get(RepositoryRecord, repository.id)
            if record is None:
                session.add(RepositoryRecord(**values))
                return
            for field, value in values.items():
                setattr(record, field, value)

    def add_version(self, version: Version) -> None:
        with self._session() as session:
            session.add(VersionRecord(**version.model_dump()))

    def add_maintenance_stat(self, stat: MaintenanceStat) -> None:
        with self._session() as session:
            session.add(MaintenanceStatRecord(**stat.model_dump()))

    # ---- Bulk reads ----

    def list_versions(self, project_ids: Iterable[int]) -> list[Version]:
        ids = sorted(set(project_ids))
        if not ids:
            return []
        with self._session() as session:
            rows = (
                session.execute(
                    select(VersionRecord)
                    .where(VersionRecord.project_id.in_(ids))
                    .order_by(VersionRecord.id.asc())
                )
                .scalars()
                .all()
            )
            return [_version_from_record(row) for row in rows]

    def list_maintenance_stats(self, repository_ids: Iterable[int]) -> list[MaintenanceStat]:
        ids = sorted(set(repository_ids))
        if not ids:
            return []
        with self._session() as session:
            rows = (
                session.execute(
                    select(MaintenanceStatRecord)
                    .where(MaintenanceStatRecord.repository_id.in_(ids))
                    .order_by(MaintenanceStatRecord.id.asc())
                )
                .scalars()
                .all()
            )
            return [MaintenanceStat.model_validate(row) for row in rows]

    # ---- Reconciliation write ----

    def mark_removed_except(self, project_id: int, external_numbers: Iterable[str]) -> list[str]:
        keep = sorted(set(external_numbers))
        with self._session() as session:
            # Row lock on the parent serialises concurrent writers for one project.
            session.execute(
                select(ProjectRecord.id).where(ProjectRecord.id == project_id).with_for_update()
            )
            stmt = (
                update(VersionRecord)
                .where(
                    VersionRecord.project_id == project_id,
                    VersionRecord.number.not_in(keep),
                    or_(VersionRecord.status.is_(None), VersionRecord.status != REMOVED_STATUS),
                )
                .values(status=REMOVED_STATUS)
                .returning(VersionRecord.id, VersionRecord.number)
                .execution_options(synchronize_session=False)
            )
            changed = sorted(session.execute(stmt).all())
        removed = [number for _id, number in changed]
        log.debug("project_id=%s marked %d versions %s", project_id, len(removed), REMOVED_STATUS)
        return removed
