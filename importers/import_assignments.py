# importers/import_assignments.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from importers.persist import log_complete, new_counts, persist
from logging_setup import get_logger
from models import AssignmentRecord, MergeReport
from store.base import ATTACHMENTS, EXTERNAL_TOOLS, ASSIGNMENTS, EntityStore
from utils.mapping import IdMap


def _external_tool_tag(store: EntityStore, course_id: int, a: AssignmentRecord) -> Optional[Dict[str, Any]]:
    if not a.external_tool_migration_id and not a.external_tool_url:
        return None
    tool = None
    if a.external_tool_migration_id:
        tool = store.find_active(course_id, EXTERNAL_TOOLS, a.external_tool_migration_id)
    return {
        "url": a.external_tool_url or (tool.attributes.get("url") if tool is not None else None),
        "content_type": "ContextExternalTool",
        "content_id": tool.id if tool is not None else None,
    }


def import_assignments(
    *,
    target_course_id: int,
    assignments: Iterable[AssignmentRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Dict[str, int]:
    """
    Merge assignments after tools and attachments, so that

    - LTI assignments carry external_tool_tag {url, content_type, content_id}
    - web content marked for assignment use carries the attachment_id
    - id_map["assignments"][<migration_id>] = <new_id>
    """
    log = get_logger(artifact="assignments", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()

    for a in assignments:
        counts["total"] += 1
        attrs: Dict[str, Any] = {
            "title": a.title,
            "points_possible": a.points_possible,
            "description": a.description,
            "submission_types": list(a.submission_types),
        }
        tag = _external_tool_tag(store, target_course_id, a)
        if tag is not None:
            attrs["external_tool_tag"] = tag
            if tag["content_id"] is None:
                log.warning("assignment %s: tool %s has no active entity", a.migration_id, a.external_tool_migration_id)
        if a.attachment_migration_id:
            att = store.find_active(target_course_id, ATTACHMENTS, a.attachment_migration_id)
            attrs["attachment_id"] = att.id if att is not None else None

        persist(
            store=store, course_id=target_course_id, entity_type=ASSIGNMENTS,
            migration_id=a.migration_id, attributes=attrs, label=a.title,
            counts=counts, report=report, id_map=id_map, log=log, continue_on_error=continue_on_error,
        )

    log_complete(log, "Assignments", counts)
    return counts
