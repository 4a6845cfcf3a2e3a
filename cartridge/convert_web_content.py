# cartridge/convert_web_content.py
from __future__ import annotations

import posixpath
from typing import Dict, Iterable, List, Tuple

from logging_setup import get_logger
from models import AssignmentRecord, AttachmentRecord, ResourceDescriptor
from utils.fs import path_migration_id

log = get_logger(artifact="files")


def convert_web_content(
    resources: Iterable[ResourceDescriptor],
    *,
    titles: Dict[str, str],
) -> Tuple[List[AttachmentRecord], List[AssignmentRecord]]:
    """
    Turn webcontent resources into attachments.

    - The main file (href, else the first <file>) keeps the resource identifier
      as its migration_id.
    - Every other file gets md5(path) so the id survives re-export.
    - intendeduse="assignment" also yields an assignment pointing at the main file.
    """
    attachments: List[AttachmentRecord] = []
    assignments: List[AssignmentRecord] = []
    seen_paths: Dict[str, str] = {}

    for res in resources:
        if res.kind != "webcontent":
            continue
        main = res.main_href
        if not main:
            log.warning("webcontent resource %s has no files; skipping", res.identifier)
            continue

        if main in seen_paths:
            log.debug("resource %s re-lists %s already imported as %s", res.identifier, main, seen_paths[main])
        seen_paths[main] = res.identifier
        display = posixpath.basename(main) or res.identifier
        attachments.append(AttachmentRecord(
            migration_id=res.identifier,
            path_name=main,
            display_name=display,
        ))

        for f in res.files:
            if f.href == main or f.href in seen_paths:
                continue
            sub_id = path_migration_id(f.href)
            seen_paths[f.href] = sub_id
            attachments.append(AttachmentRecord(
                migration_id=sub_id,
                path_name=f.href,
                display_name=posixpath.basename(f.href) or sub_id,
            ))

        if (res.intended_use or "").lower() == "assignment":
            assignments.append(AssignmentRecord(
                migration_id=res.identifier,
                title=titles.get(res.identifier) or display,
                submission_types=["online_upload"],
                attachment_migration_id=res.identifier,
            ))

    log.info("converted webcontent attachments=%d assignments=%d", len(attachments), len(assignments))
    return attachments, assignments


def attachment_path_lookup(attachments: Iterable[AttachmentRecord]) -> Dict[str, str]:
    """Archive-relative path -> attachment migration_id (first writer wins)."""
    lookup: Dict[str, str] = {}
    for att in attachments:
        lookup.setdefault(att.path_name, att.migration_id)
    return lookup
