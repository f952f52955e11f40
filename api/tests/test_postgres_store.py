"""PostgresPackageStore against file-backed SQLite: same contract as the in-memory store."""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from app.adapters.postgres_store import PostgresPackageStore
from app.services.project_serializer import serialize_batch
from app.services.version_reconciler import deprecate_versions
from factories import make_project, make_repository, make_stat, make_version


@pytest.fixture
def sql_store(tmp_path: Path) -> PostgresPackageStore:
    store = PostgresPackageStore(f"sqlite+pysqlite:///{tmp_path / 'packages.db'}")
    store.upsert_repository(make_repository(100, "rails/rails"))
    store.upsert_project(make_project(1, "rails", repository_id=100))
    store.upsert_project(make_project(2, "sinatra"))
    store.add_version(make_version(1, 1, "1.0.0", published_at=datetime(2020, 1, 1)))
    store.add_version(make_version(2, 1, "1.0.1"))
    store.add_version(make_version(3, 2, "2.0.0"))
    store.add_maintenance_stat(make_stat(1, 100, "issue_closure_rate", "0.5"))
    return store


def _count_selects(store: PostgresPackageStore) -> list[str]:
    statements: list[str] = []

    @event.listens_for(store.engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany):  # noqa: ANN001
        if statement.lstrip().upper().startswith("SELECT") and "versions" in statement:
            statements.append(statement)

    return statements


def test_requires_database_url() -> None:
    with pytest.raises(ValueError):
        PostgresPackageStore(None)


def test_find_projects_is_case_insensitive_and_attaches_repository(sql_store) -> None:
    found = sql_store.find_projects([("rubygems", "RAILS"), ("Rubygems", "missing")])

    assert [p.name for p in found] == ["rails"]
    assert found[0].repository is not None
    assert found[0].repository.full_name == "rails/rails"
    assert sql_store.get_project("Rubygems", "sinatra").repository is None


def test_list_versions_single_select(sql_store) -> None:
    statements = _count_selects(sql_store)

    rows = sql_store.list_versions([1, 2])

    assert [(v.project_id, v.number) for v in rows] == [(1, "1.0.0"), (1, "1.0.1"), (2, "2.0.0")]
    assert len(statements) == 1


def test_duplicate_version_number_rejected(sql_store) -> None:
    with pytest.raises(IntegrityError):
        sql_store.add_version(make_version(99, 1, "1.0.0"))


def test_serializer_over_sql_store(sql_store) -> None:
    projects = sql_store.find_projects([("Rubygems", "rails"), ("Rubygems", "sinatra")])

    result = serialize_batch(
        sql_store, projects, {("Rubygems", "rails"): "Rails"}, include_internal_fields=True
    )

    rails, sinatra = result
    assert rails.name == "Rails"
    assert sinatra.name is None
    assert [v.published_at for v in rails.versions] == [datetime(2020, 1, 1), datetime(2024, 1, 1)]
    assert [s.category for s in rails.repository_maintenance_stats] == ["issue_closure_rate"]
    assert sinatra.repository_maintenance_stats == []
    assert rails.stars == 55000


def test_deprecate_versions_persists(sql_store) -> None:
    project = sql_store.get_project("Rubygems", "rails")

    assert deprecate_versions(sql_store, project, [{"number": "1.0.0"}]) == ["1.0.1"]
    assert deprecate_versions(sql_store, project, [{"number": "1.0.0"}]) == []
    assert [(v.number, v.status) for v in sql_store.list_versions([1])] == [
        ("1.0.0", None),
        ("1.0.1", "Removed"),
    ]
    assert [(v.number, v.status) for v in sql_store.list_versions([2])] == [("2.0.0", None)]


def test_mark_removed_except_reports_only_changed_rows(sql_store) -> None:
    assert sql_store.mark_removed_except(1, []) == ["1.0.0", "1.0.1"]
    assert sql_store.mark_removed_except(1, []) == []
    assert [(v.number, v.status) for v in sql_store.list_versions([2])] == [("2.0.0", None)]


def test_second_store_instance_on_same_database_never_double_reports(sql_store, tmp_path: Path) -> None:
    other = PostgresPackageStore(f"sqlite+pysqlite:///{tmp_path / 'packages.db'}")
    project = sql_store.get_project("Rubygems", "rails")

    assert other.mark_removed_except(1, ["1.0.0"]) == ["1.0.1"]

    assert deprecate_versions(sql_store, project, [{"number": "1.0.0"}]) == []
    assert [(v.number, v.status) for v in sql_store.list_versions([1])] == [
        ("1.0.0", None),
        ("1.0.1", "Removed"),
    ]


def test_concurrent_store_instances_remove_each_version_once(sql_store, tmp_path: Path) -> None:
    url = f"sqlite+pysqlite:///{tmp_path / 'packages.db'}"
    stores = [sql_store, PostgresPackageStore(url)]
    for i in range(20):
        sql_store.add_version(make_version(200 + i, 2, f"3.{i}.0"))
    results: list[list[str]] = []
    results_lock = threading.Lock()

    def worker(store: PostgresPackageStore) -> None:
        removed = store.mark_removed_except(2, ["2.0.0"])
        with results_lock:
            results.append(removed)

    threads = [threading.Thread(target=worker, args=(stores[i % 2],)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(results) == 4
    flattened = [number for removed in results for number in removed]
    assert sorted(flattened) == sorted(f"3.{i}.0" for i in range(20))


def test_count_projects(sql_store) -> None:
    assert sql_store.count_projects() == 2
