"""Mark stored versions that an upstream registry no longer reports as Removed.

Only the ``active -> Removed`` transition exists here. A version whose number
reappears upstream keeps whatever status it has.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Mapping, Union

from app.adapters.package_store import PackageStore
from app.models.project import Project
from app.models.version import REMOVED_STATUS, ExternalVersion
from app.services.instrumentation import instrumented

log = logging.getLogger(__name__)

ExternalVersionLike = Union[ExternalVersion, Mapping[str, Any]]

# Fixed pool of locks; a project always maps to the same stripe.
LOCK_STRIPES = 64
_PROJECT_LOCKS: tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _project_lock(project_id: int) -> threading.Lock:
    return _PROJECT_LOCKS[hash(project_id) % LOCK_STRIPES]


def _external_number(item: ExternalVersionLike) -> str:
    if isinstance(item, ExternalVersion):
        return item.number
    return ExternalVersion.model_validate(item).number


@instrumented("version_reconciler.deprecate_versions")
def deprecate_versions(
    store: PackageStore,
    project: Project,
    external_versions: Iterable[ExternalVersionLike],
) -> list[str]:
    """Reconcile `project`'s versions against the upstream list; return newly removed numbers.

    The store reads and writes in one transaction and reports only the rows it
    actually changed, so concurrent workers never report the same removal twice.
    """
    external_numbers = {_external_number(item) for item in external_versions}
    with _project_lock(project.id):
        removed = store.mark_removed_except(project.id, external_numbers)
    if removed:
        log.info(
            "platform=%s name=%s marked %d versions %s: %s",
            project.platform,
            project.name,
            len(removed),
            REMOVED_STATUS,
            ", ".join(removed),
        )
    return removed
