#utils/mapping.py
"""
Helpers for recording migration_id -> entity id mappings during a merge
"""

from typing import Any, Dict, Optional

IdMap = Dict[str, Dict[str, Any]]


def record_mapping(
    *,
    bucket: str,
    migration_id: Optional[str],
    entity_id: Optional[int],
    id_map: IdMap,
    path: Optional[str] = None,
) -> None:
    """
    Update id_map[bucket] with the active entity id for migration_id, and
    id_map["paths"] with path -> migration_id for attachments.
    e.g.
        bucket="attachments",
        migration_id="I_00001_R",
        entity_id=314,
        path="I_00001_R/syllabus.html",
    """
    if migration_id and entity_id is not None:
        id_map.setdefault(bucket, {})[str(migration_id)] = int(entity_id)
    if migration_id and path:
        id_map.setdefault("paths", {})[str(path)] = str(migration_id)
