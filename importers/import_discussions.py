# importers/import_discussions.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from importers.persist import log_complete, new_counts, persist
from logging_setup import get_logger
from models import DiscussionTopicRecord, MergeReport
from store.base import ATTACHMENTS, DISCUSSION_TOPICS, EntityStore
from utils.html_postprocessor import resolve_file_references
from utils.mapping import IdMap


def _attachment_resolver(store: EntityStore, course_id: int):
    def resolve(migration_id: str) -> Optional[int]:
        entity = store.find_active(course_id, ATTACHMENTS, migration_id)
        return entity.id if entity is not None else None
    return resolve


def import_discussions(
    *,
    target_course_id: int,
    topics: Iterable[DiscussionTopicRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Dict[str, int]:
    """
    Merge discussion topics (and announcements) after attachments.

    - File markers in the message become /courses/:course_id/files/:id/preview
      for attachments that have an active entity; others keep their original path
    - attachment_migration_id resolves to attachment_id the same way
    - Record id_map["discussion_topics"][<migration_id>] = <new_id>
    """
    log = get_logger(artifact="discussions", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()
    resolve = _attachment_resolver(store, target_course_id)

    for topic in topics:
        counts["total"] += 1
        rewrite = resolve_file_references(
            topic.message,
            course_id=target_course_id,
            refs=topic.file_refs,
            resolve=resolve,
        )
        for mid in rewrite.unresolved:
            log.warning("topic %s references file %s that was not imported", topic.migration_id, mid)

        attrs: Dict[str, Any] = {
            "title": topic.title,
            "message": rewrite.html,
            "is_announcement": topic.is_announcement,
            "attachment_id": resolve(topic.attachment_migration_id) if topic.attachment_migration_id else None,
        }
        persist(
            store=store,
            course_id=target_course_id,
            entity_type=DISCUSSION_TOPICS,
            migration_id=topic.migration_id,
            attributes=attrs,
            label=topic.title,
            counts=counts,
            report=report,
            id_map=id_map,
            log=log,
            continue_on_error=continue_on_error,
        )

    log_complete(log, "Discussions", counts)
    return counts
