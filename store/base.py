# store/base.py
"""
Contract for the persistent entity store that owns a course's imported objects.

Entities are keyed by (course_id, entity_type, migration_id). Re-importing a
migration id never edits the existing row: a new generation is created and the
previous active row is marked inactive, so at most one row per key is active.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Optional, Protocol

from logging_setup import get_logger

EntityState = Literal["active", "inactive"]

# entity_type values used by the importers
ATTACHMENTS = "attachments"
DISCUSSION_TOPICS = "discussion_topics"
EXTERNAL_TOOLS = "external_tools"
ASSIGNMENTS = "assignments"
QUIZZES = "quizzes"
QUESTION_BANKS = "question_banks"
ASSESSMENT_QUESTIONS = "assessment_questions"
MODULES = "modules"
CONTENT_TAGS = "content_tags"


class StoreError(RuntimeError):
    """A create/deactivate against the store failed."""


@dataclass(frozen=True, slots=True)
class Entity:
    id: int
    course_id: int
    entity_type: str
    migration_id: Optional[str]
    state: EntityState = "active"
    generation: int = 1
    attributes: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.state == "active"


class EntityStore(Protocol):
    def find_active(self, course_id: int, entity_type: str, migration_id: str) -> Optional[Entity]: ...
    def find_all(
        self,
        course_id: int,
        entity_type: str,
        *,
        migration_id: Optional[str] = None,
        state: Optional[EntityState] = None,
    ) -> List[Entity]: ...
    def create(
        self,
        course_id: int,
        entity_type: str,
        *,
        migration_id: Optional[str],
        attributes: Dict[str, Any],
        generation: int = 1,
    ) -> Entity: ...
    def deactivate(self, course_id: int, entity_type: str, entity_id: int) -> Entity: ...
    def course_lock(self, course_id: int): ...


class CourseLocks:
    """One lock per course so merges into the same course never interleave."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    @contextmanager
    def hold(self, course_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(int(course_id), threading.Lock())
        with lock:
            yield


def supersede(
    store: EntityStore,
    course_id: int,
    entity_type: str,
    migration_id: str,
    attributes: Dict[str, Any],
) -> Entity:
    """
    Create the next generation for migration_id and retire the previous active one.

    The new row is written before the old one is deactivated. If the old one
    cannot be deactivated, the new row is deactivated again and the StoreError
    propagates, leaving the previous generation as the only active row.
    """
    previous = store.find_active(course_id, entity_type, migration_id)
    generation = previous.generation + 1 if previous is not None else 1
    created = store.create(
        course_id,
        entity_type,
        migration_id=migration_id,
        attributes=attributes,
        generation=generation,
    )
    if previous is not None and previous.id != created.id:
        try:
            store.deactivate(course_id, entity_type, previous.id)
        except StoreError:
            try:
                store.deactivate(course_id, entity_type, created.id)
            except StoreError as exc:
                get_logger(artifact="store", course_id=course_id).error(
                    "%s %s has two active generations (ids %s, %s): %s",
                    entity_type, migration_id, previous.id, created.id, exc,
                )
            raise
    return created
