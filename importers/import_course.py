# importers/import_course.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from importers.persist import MergeAborted
from importers.selection import SelectionSpec, apply_selection
from logging_setup import get_logger
from models import CourseData, MergeReport
from store.base import EntityStore
from utils.fs import atomic_write, json_dumps_stable
from utils.mapping import IdMap

# Merge steps in dependency order: content tags must come after their targets
ALL_STEPS = [
    "files",
    "discussions",
    "question_banks",
    "assessment_questions",
    "quizzes",
    "external_tools",
    "assignments",
    "modules",
]

__all__ = ["ALL_STEPS", "MergeAborted", "merge_into", "load_id_map", "save_id_map"]


def load_id_map(path: Path) -> IdMap:
    if path.exists():
        return json.loads(path.read_text(encoding="utf-8"))
    return {}


def save_id_map(path: Path, id_map: IdMap) -> None:
    atomic_write(path, json_dumps_stable(id_map))


def merge_into(
    course_id: int,
    course_data: CourseData,
    selection: Optional[SelectionSpec],
    store: EntityStore,
    *,
    continue_on_error: bool = True,
    id_map_path: Optional[Path] = None,
    run: str = "-",
) -> MergeReport:
    """
    Merge converted course data into a course, holding the course lock for
    the whole merge.

    - Selection is applied first; out-of-scope records are never written
    - Re-importing a migration_id supersedes its previous active entity
    - continue_on_error=False turns the first persistence failure into MergeAborted;
      entities created before it stay in place
    """
    log = get_logger(artifact="runner", course_id=course_id, run=run)

    # Lazy-import concrete importers to avoid circulars
    from importers.import_files import import_files
    from importers.import_discussions import import_discussions
    from importers.import_quizzes import import_assessment_questions, import_question_banks, import_quizzes
    from importers.import_external_tools import import_external_tools
    from importers.import_assignments import import_assignments
    from importers.import_modules import import_modules

    report = MergeReport(course_id=course_id)
    for w in course_data.warnings:
        report.warn(w)

    id_map: IdMap = load_id_map(id_map_path) if id_map_path else {}
    data = apply_selection(course_data, selection)
    archive_root = Path(data.archive_root) if data.archive_root else None
    common: Dict[str, Any] = {
        "target_course_id": course_id,
        "store": store,
        "report": report,
        "id_map": id_map,
        "continue_on_error": continue_on_error,
        "run": run,
    }

    log.info("Starting merge steps=%s", ",".join(ALL_STEPS))
    with store.course_lock(course_id):
        try:
            for step in ALL_STEPS:
                if step == "files":
                    report.counts[step] = import_files(attachments=data.attachments, archive_root=archive_root, **common)
                elif step == "discussions":
                    report.counts[step] = import_discussions(topics=data.discussion_topics, **common)
                elif step == "question_banks":
                    report.counts[step] = import_question_banks(banks=data.question_banks, **common)
                elif step == "assessment_questions":
                    report.counts[step] = import_assessment_questions(questions=data.assessment_questions, **common)
                elif step == "quizzes":
                    report.counts[step] = import_quizzes(quizzes=data.quizzes, **common)
                elif step == "external_tools":
                    report.counts[step] = import_external_tools(tools=data.external_tools, **common)
                elif step == "assignments":
                    report.counts[step] = import_assignments(assignments=data.assignments, **common)
                elif step == "modules":
                    report.counts["modules"], report.counts["content_tags"] = import_modules(
                        modules=data.modules, **common
                    )
                log.info("✓ step %s complete", step, extra={"step": step})
        except MergeAborted:
            log.exception("✗ merge aborted", extra={"created": report.created_count})
            raise
        finally:
            if id_map_path:
                save_id_map(id_map_path, id_map)

    log.info(
        "Merge complete. created=%d warnings=%d errors=%d",
        report.created_count,
        len(report.warnings),
        len(report.errors),
    )
    return report
