# importers/selection.py
"""
Which converted records a merge should bring in.

Selection settings arrive either as migration settings ({"copy": {...}}) or
flat. Wholesale flags ("all_files": "1") include a whole category; id sets
({"files": {"<migration_id>": true}}) include single records. Anything not
named is left out, unless "everything" is set or there is no selection at all.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from logging_setup import get_logger
from models import CourseData, DiscussionTopicRecord, ModuleItemRecord, ModuleRecord

TRUTHY = ("1", 1, True, "true")

FLAG_KEYS = (
    "everything",
    "all_quizzes",
    "all_files",
    "all_modules",
    "all_external_tools",
    "all_assignments",
    "all_wikis",
    "all_announcements",
    "all_rubrics",
    "all_groups",
    "all_topics",
    "all_assignment_groups",
    "shift_dates",
)
ID_SET_KEYS = (
    "modules",
    "files",
    "folders",
    "topics",
    "announcements",
    "external_tools",
    "assignments",
    "quizzes",
    "topic_entries",
    "assessment_questions",
)

# record_type -> (wholesale flags, id-set keys)
CATEGORIES: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "attachment": (("all_files",), ("files", "folders")),
    "discussion_topic": (("all_topics",), ("topics",)),
    "announcement": (("all_announcements",), ("announcements",)),
    "external_tool": (("all_external_tools",), ("external_tools",)),
    "assignment": (("all_assignments",), ("assignments",)),
    "quiz": (("all_quizzes",), ("quizzes",)),
    "question_bank": (("all_quizzes",), ("assessment_questions",)),
    "assessment_question": (("all_quizzes",), ("assessment_questions",)),
    "module": (("all_modules",), ("modules",)),
}


def is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        value = value.strip().lower()
    return value in TRUTHY


@dataclass(frozen=True, slots=True)
class SelectionSpec:
    flags: Dict[str, bool] = field(default_factory=dict)
    id_sets: Dict[str, FrozenSet[str]] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Optional[Mapping[str, Any]]) -> Optional["SelectionSpec"]:
        """
        None for no selection at all (None, {} or {"copy": {}}): import everything.
        """
        if not settings:
            return None
        raw = settings.get("copy", settings) if isinstance(settings, Mapping) else {}
        if not raw:
            return None
        flags: Dict[str, bool] = {}
        id_sets: Dict[str, FrozenSet[str]] = {}
        log = get_logger(artifact="selection")

        for key, value in raw.items():
            key = str(key)
            if isinstance(value, Mapping):
                id_sets[key] = frozenset(str(k) for k, v in value.items() if is_truthy(v))
            elif key in ID_SET_KEYS and key != "assessment_questions":
                log.warning("selection key %s should be an id set; ignoring %r", key, value)
            else:
                # assessment_questions may also be a plain flag
                flags[key] = is_truthy(value)
            if key not in FLAG_KEYS and key not in ID_SET_KEYS:
                log.debug("unrecognized selection key %s kept as given", key)
        return cls(flags=flags, id_sets=id_sets)

    @property
    def everything(self) -> bool:
        return self.flags.get("everything", False)

    def flag(self, key: str) -> bool:
        return self.flags.get(key, False)

    def ids(self, key: str) -> FrozenSet[str]:
        return self.id_sets.get(key, frozenset())


def _category(record: Any) -> str:
    if isinstance(record, DiscussionTopicRecord) and record.is_announcement:
        return "announcement"
    return record.record_type


def is_included(record: Any, selection: Optional[SelectionSpec], parent: Optional[Any] = None) -> bool:
    """
    Membership test for one record. Module items take their parent module's
    answer; pass the module as `parent`.
    """
    if selection is None or selection.everything:
        return True
    if isinstance(record, ModuleItemRecord):
        if parent is None:
            return False
        return is_included(parent, selection)

    category = _category(record)
    if category in ("question_bank", "assessment_question") and selection.flag("assessment_questions"):
        return True
    spec = CATEGORIES.get(category)
    if spec is None:
        return False
    flags, id_keys = spec
    if any(selection.flag(f) for f in flags):
        return True
    return any(record.migration_id in selection.ids(k) for k in id_keys)


def apply_selection(course: CourseData, selection: Optional[SelectionSpec]) -> CourseData:
    if selection is None or selection.everything:
        return course

    def keep(records):
        return [r for r in records if is_included(r, selection)]

    modules = [
        ModuleRecord(m.migration_id, m.title, [it for it in m.items if is_included(it, selection, parent=m)])
        for m in course.modules
        if is_included(m, selection)
    ]
    picked = replace(
        course,
        attachments=keep(course.attachments),
        discussion_topics=keep(course.discussion_topics),
        external_tools=keep(course.external_tools),
        assignments=keep(course.assignments),
        quizzes=keep(course.quizzes),
        question_banks=keep(course.question_banks),
        assessment_questions=keep(course.assessment_questions),
        modules=modules,
    )
    get_logger(artifact="selection").info(
        "selection kept attachments=%d/%d topics=%d/%d tools=%d/%d assignments=%d/%d quizzes=%d/%d modules=%d/%d",
        len(picked.attachments), len(course.attachments),
        len(picked.discussion_topics), len(course.discussion_topics),
        len(picked.external_tools), len(course.external_tools),
        len(picked.assignments), len(course.assignments),
        len(picked.quizzes), len(course.quizzes),
        len(picked.modules), len(course.modules),
    )
    return picked
