# importers/import_files.py
"""
Merge converted attachments into a course.

Per attachment:
  1) Fingerprint the extracted file (sha256, md5, size) when the archive root is known
  2) Supersede the previous generation for its migration_id, if any
  3) Record id_map["attachments"][migration_id] = new_id and id_map["paths"][path] = migration_id

A file listed in the manifest but missing from the archive is skipped with a warning.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from importers.persist import log_complete, new_counts, persist
from logging_setup import get_logger
from models import AttachmentRecord, MergeReport
from store.base import ATTACHMENTS, EntityStore
from utils.fs import file_hashes
from utils.mapping import IdMap

__all__ = ["import_files"]


def _attributes(att: AttachmentRecord, archive_root: Optional[Path]) -> Optional[Dict[str, Any]]:
    attrs: Dict[str, Any] = {
        "display_name": att.display_name,
        "path_name": att.path_name,
        "content_type": mimetypes.guess_type(att.path_name)[0] or "application/octet-stream",
        "file_state": "hidden" if att.hidden else "available",
    }
    if archive_root is None:
        return attrs
    src = archive_root / att.path_name
    if not src.is_file():
        return None
    attrs.update(file_hashes(src))
    attrs["size"] = src.stat().st_size
    return attrs


def import_files(
    *,
    target_course_id: int,
    attachments: Iterable[AttachmentRecord],
    store: EntityStore,
    report: MergeReport,
    archive_root: Optional[Path] = None,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Dict[str, int]:
    log = get_logger(artifact="files", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()

    for att in attachments:
        counts["total"] += 1
        attrs = _attributes(att, archive_root)
        if attrs is None:
            counts["skipped"] += 1
            log.warning("file %s not found in archive; skipping %s", att.path_name, att.migration_id)
            report.warn(f'The file "{att.path_name}" was not found in the package and was skipped.')
            continue

        persist(
            store=store,
            course_id=target_course_id,
            entity_type=ATTACHMENTS,
            migration_id=att.migration_id,
            attributes=attrs,
            label=att.display_name,
            counts=counts,
            report=report,
            id_map=id_map,
            log=log,
            continue_on_error=continue_on_error,
            path=att.path_name,
        )

    log_complete(log, "Files", counts)
    return counts
