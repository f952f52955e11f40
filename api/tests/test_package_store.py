from __future__ import annotations

import itertools
import json
import logging
import sys
from datetime import timezone
from pathlib import Path

import pytest

from app.adapters.package_store import InMemoryPackageStore
from app.models.maintenance_stat import MaintenanceStat
from app.models.version import Version
from app.services.instrumentation import instrumented
from factories import make_project, make_repository, make_stat, make_version


def test_find_projects_skips_unknown_and_duplicate_pairs(store) -> None:
    store.upsert_project(make_project(1, "rails"))
    store.upsert_project(make_project(2, "rack"))

    found = store.find_projects([("rubygems", "RACK"), ("Rubygems", "nope"), ("RUBYGEMS", "rack"), ("Rubygems", "rails")])

    assert [p.name for p in found] == ["rack", "rails"]


def test_get_project_attaches_current_repository(store) -> None:
    store.upsert_project(make_project(1, "rails", repository_id=7))
    assert store.get_project("Rubygems", "rails").repository is None

    store.upsert_repository(make_repository(7, "rails/rails", stargazers_count=12))

    assert store.get_project("Rubygems", "rails").repository.stargazers_count == 12


def test_duplicate_version_number_rejected(store) -> None:
    store.add_version(make_version(1, 1, "1.0.0"))
    with pytest.raises(ValueError):
        store.add_version(make_version(2, 1, "1.0.0"))


def test_default_timestamps_are_timezone_aware() -> None:
    version = Version(id=1, project_id=1, number="1.0.0")
    stat = MaintenanceStat(id=1, repository_id=1, category="issue_closure_rate", value="0.5")

    assert version.created_at.tzinfo is timezone.utc
    assert stat.updated_at.tzinfo is timezone.utc


def test_persistence_round_trip(tmp_path: Path) -> None:
    path = str(tmp_path / "store" / "packages.json")
    store = InMemoryPackageStore(persist_path=path)
    store.upsert_repository(make_repository(7))
    store.upsert_project(make_project(1, "rails", repository_id=7))
    store.add_version(make_version(1, 1, "1.0.0", status="Removed"))
    store.add_maintenance_stat(make_stat(1, 7, "issue_closure_rate", "0.5"))
    store.save()

    reloaded = InMemoryPackageStore(persist_path=path)

    assert reloaded.count_projects() == 1
    assert reloaded.get_project("rubygems", "rails").repository.full_name == "rails/rails"
    assert [(v.number, v.status) for v in reloaded.list_versions([1])] == [("1.0.0", "Removed")]
    assert [s.value for s in reloaded.list_maintenance_stats([7])] == ["0.5"]


def test_unreadable_persist_file_starts_empty(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    assert InMemoryPackageStore(persist_path=str(path)).count_projects() == 0


def test_instrumented_logs_slow_operations(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    monkeypatch.setenv("CORE_SLOW_OPERATION_MS", "1")
    ticks = itertools.count(0.0, 0.5)
    monkeypatch.setattr("app.services.instrumentation.time.perf_counter", lambda: next(ticks))

    @instrumented("test.slow")
    def slow() -> str:
        return "done"

    with caplog.at_level(logging.DEBUG, logger="packages.core"):
        assert slow() == "done"

    assert "slow_operation operation=test.slow" in caplog.text


def test_sync_versions_script(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    persist = tmp_path / "packages.json"
    store = InMemoryPackageStore(persist_path=str(persist))
    store.upsert_project(make_project(1, "foo"))
    store.add_version(make_version(1, 1, "1.0.0"))
    store.add_version(make_version(2, 1, "1.0.1"))
    store.save()
    versions_file = tmp_path / "versions.json"
    versions_file.write_text(json.dumps([{"number": "1.0.0"}]), encoding="utf-8")

    from scripts import sync_versions

    monkeypatch.setattr(
        sys,
        "argv",
        [
            "sync_versions.py",
            "--platform",
            "rubygems",
            "--name",
            "foo",
            "--versions",
            str(versions_file),
            "--persist",
            str(persist),
        ],
    )
    sync_versions.main()

    assert json.loads(capsys.readouterr().out)["removed"] == ["1.0.1"]
    reloaded = InMemoryPackageStore(persist_path=str(persist))
    assert [(v.number, v.status) for v in reloaded.list_versions([1])] == [("1.0.0", None), ("1.0.1", "Removed")]
