# importers/persist.py
"""
Shared per-record write path for the merge steps.

Every importer writes through `persist()`: supersede the record's previous
generation, remember the new id, and apply the continue_on_error policy when
the store refuses the write.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from models import MergeReport
from store.base import Entity, EntityStore, StoreError, supersede
from utils.mapping import IdMap, record_mapping


class MergeAborted(RuntimeError):
    """A record could not be persisted and continue_on_error is off."""


def new_counts() -> Dict[str, int]:
    return {"imported": 0, "skipped": 0, "failed": 0, "total": 0}


def persist(
    *,
    store: EntityStore,
    course_id: int,
    entity_type: str,
    migration_id: str,
    attributes: Dict[str, Any],
    label: str,
    counts: Dict[str, int],
    report: MergeReport,
    id_map: IdMap,
    log: logging.LoggerAdapter,
    continue_on_error: bool = True,
    path: Optional[str] = None,
) -> Optional[Entity]:
    try:
        entity = supersede(store, course_id, entity_type, migration_id, attributes)
    except StoreError as e:
        counts["failed"] += 1
        log.exception("Failed to import %s '%s': %s", entity_type, label, e)
        report.errors.append({"entity_type": entity_type, "migration_id": migration_id, "error": str(e)})
        if not continue_on_error:
            raise MergeAborted(f"{entity_type} {migration_id}: {e}") from e
        report.warn(f'Could not import "{label}"; it was skipped.')
        return None

    counts["imported"] += 1
    record_mapping(bucket=entity_type, migration_id=migration_id, entity_id=entity.id, id_map=id_map, path=path)
    log.debug("imported %s %s -> id=%s generation=%d", entity_type, migration_id, entity.id, entity.generation)
    return entity


def log_complete(log: logging.LoggerAdapter, kind: str, counts: Dict[str, int]) -> None:
    log.info(
        "%s import complete. imported=%d skipped=%d failed=%d total=%d",
        kind,
        counts["imported"],
        counts["skipped"],
        counts["failed"],
        counts["total"],
    )
