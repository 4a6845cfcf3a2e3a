# importers/import_quizzes.py
"""
Merge output of the assessment converter: question banks, then their
questions, then quizzes. Only runs with anything to do when assessment
conversion was enabled for the run.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from importers.persist import log_complete, new_counts, persist
from logging_setup import get_logger
from models import AssessmentQuestionRecord, MergeReport, QuestionBankRecord, QuizRecord
from store.base import ASSESSMENT_QUESTIONS, QUESTION_BANKS, QUIZZES, EntityStore
from utils.mapping import IdMap

__all__ = ["import_question_banks", "import_assessment_questions", "import_quizzes"]


def _active_id(store: EntityStore, course_id: int, entity_type: str, migration_id: Optional[str]) -> Optional[int]:
    if not migration_id:
        return None
    entity = store.find_active(course_id, entity_type, migration_id)
    return entity.id if entity is not None else None


def import_question_banks(
    *,
    target_course_id: int,
    banks: Iterable[QuestionBankRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Dict[str, int]:
    log = get_logger(artifact="question_banks", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()
    for bank in banks:
        counts["total"] += 1
        persist(
            store=store, course_id=target_course_id, entity_type=QUESTION_BANKS,
            migration_id=bank.migration_id, attributes={"title": bank.title}, label=bank.title,
            counts=counts, report=report, id_map=id_map, log=log, continue_on_error=continue_on_error,
        )
    log_complete(log, "Question banks", counts)
    return counts


def import_assessment_questions(
    *,
    target_course_id: int,
    questions: Iterable[AssessmentQuestionRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Dict[str, int]:
    log = get_logger(artifact="assessment_questions", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()
    for q in questions:
        counts["total"] += 1
        attrs: Dict[str, Any] = {
            "question_data": dict(q.question_data),
            "assessment_question_bank_id": _active_id(store, target_course_id, QUESTION_BANKS, q.bank_migration_id),
        }
        persist(
            store=store, course_id=target_course_id, entity_type=ASSESSMENT_QUESTIONS,
            migration_id=q.migration_id, attributes=attrs, label=q.migration_id,
            counts=counts, report=report, id_map=id_map, log=log, continue_on_error=continue_on_error,
        )
    log_complete(log, "Assessment questions", counts)
    return counts


def import_quizzes(
    *,
    target_course_id: int,
    quizzes: Iterable[QuizRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Dict[str, int]:
    log = get_logger(artifact="quizzes", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()

    for quiz in quizzes:
        counts["total"] += 1
        question_ids: List[int] = []
        for qmid in quiz.question_migration_ids:
            qid = _active_id(store, target_course_id, ASSESSMENT_QUESTIONS, qmid)
            if qid is None:
                log.warning("quiz %s references question %s that was not imported", quiz.migration_id, qmid)
                continue
            question_ids.append(qid)

        attrs: Dict[str, Any] = {
            "title": quiz.title,
            "quiz_type": quiz.quiz_type,
            "description": quiz.description,
            "points_possible": quiz.points_possible,
            "allowed_attempts": quiz.allowed_attempts,
            "time_limit": quiz.time_limit,
            "assessment_question_ids": question_ids,
        }
        persist(
            store=store, course_id=target_course_id, entity_type=QUIZZES,
            migration_id=quiz.migration_id, attributes=attrs, label=quiz.title,
            counts=counts, report=report, id_map=id_map, log=log, continue_on_error=continue_on_error,
        )

    log_complete(log, "Quizzes", counts)
    return counts
