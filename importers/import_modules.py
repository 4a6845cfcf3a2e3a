# importers/import_modules.py
"""
Merge modules and their content tags, last, so every tag target that was
imported in this run (or an earlier one) already has an active entity.

Tag targets resolve by content kind:
  Attachment / DiscussionTopic / Quiz / Assignment / ContextExternalTool
      -> active entity for the target migration_id (tag skipped when missing)
  ExternalUrl       -> url only
  ContextModuleSubHeader, title-only entries -> no target
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional, Tuple

from importers.persist import log_complete, new_counts, persist
from logging_setup import get_logger
from models import ContentRef, MergeReport, ModuleItemRecord, ModuleRecord
from store.base import (
    ASSIGNMENTS,
    ATTACHMENTS,
    CONTENT_TAGS,
    DISCUSSION_TOPICS,
    EXTERNAL_TOOLS,
    MODULES,
    QUIZZES,
    EntityStore,
)
from utils.mapping import IdMap

# content kind -> entity type holding the target (None: the tag has no entity target)
TARGET_TYPES: Dict[str, Optional[str]] = {
    "Attachment": ATTACHMENTS,
    "DiscussionTopic": DISCUSSION_TOPICS,
    "Quiz": QUIZZES,
    "Assignment": ASSIGNMENTS,
    "ContextExternalTool": EXTERNAL_TOOLS,
    "ExternalUrl": None,
    "ContextModuleSubHeader": None,
}


class _Unresolved(Exception):
    pass


def _target(store: EntityStore, course_id: int, content: Optional[ContentRef]) -> Tuple[Optional[str], Optional[int], Optional[str]]:
    """(content_type, content_id, url) for a tag; raises _Unresolved when the target has no active entity."""
    if content is None:
        return None, None, None
    entity_type = TARGET_TYPES[content.kind]
    if entity_type is None:
        return content.kind, None, content.url
    entity = store.find_active(course_id, entity_type, content.migration_id or "")
    if entity is None:
        raise _Unresolved(f"{content.kind} {content.migration_id}")
    url = content.url
    if url is None and content.kind == "ContextExternalTool":
        url = entity.attributes.get("url")
    return content.kind, entity.id, url


def _import_tags(
    *,
    course_id: int,
    module_id: int,
    items: Iterable[ModuleItemRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: IdMap,
    counts: Dict[str, int],
    log,
    continue_on_error: bool,
) -> None:
    position = 0
    for item in items:
        counts["total"] += 1
        try:
            content_type, content_id, url = _target(store, course_id, item.content)
        except _Unresolved as e:
            counts["skipped"] += 1
            log.warning("module item %s skipped: %s has no active entity", item.migration_id, e)
            continue

        position += 1
        attrs: Dict[str, Any] = {
            "module_id": module_id,
            "position": position,
            "title": item.title,
            "indent": item.indent,
            "content_type": content_type,
            "content_id": content_id,
            "url": url,
        }
        persist(
            store=store, course_id=course_id, entity_type=CONTENT_TAGS,
            migration_id=item.migration_id, attributes=attrs, label=item.title or item.migration_id,
            counts=counts, report=report, id_map=id_map, log=log, continue_on_error=continue_on_error,
        )


def import_modules(
    *,
    target_course_id: int,
    modules: Iterable[ModuleRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Tuple[Dict[str, int], Dict[str, int]]:
    """Returns (module counts, content tag counts). Modules get positions 1..n in order."""
    log = get_logger(artifact="modules", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()
    tag_counts = new_counts()

    position = 0
    for module in modules:
        counts["total"] += 1
        position += 1
        entity = persist(
            store=store, course_id=target_course_id, entity_type=MODULES,
            migration_id=module.migration_id, attributes={"name": module.title, "position": position},
            label=module.title, counts=counts, report=report, id_map=id_map, log=log,
            continue_on_error=continue_on_error,
        )
        if entity is None:
            position -= 1
            tag_counts["total"] += len(module.items)
            tag_counts["skipped"] += len(module.items)
            continue
        _import_tags(
            course_id=target_course_id,
            module_id=entity.id,
            items=module.items,
            store=store,
            report=report,
            id_map=id_map,
            counts=tag_counts,
            log=log,
            continue_on_error=continue_on_error,
        )

    log_complete(log, "Modules", counts)
    log_complete(log, "Content tags", tag_counts)
    return counts, tag_counts
