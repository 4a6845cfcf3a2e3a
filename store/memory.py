# store/memory.py
from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from store.base import CourseLocks, Entity, EntityState, StoreError
from utils.dates import now_utc_iso

_Key = Tuple[int, str, str]


class MemoryStore:
    """
    Process-local EntityStore.

    Rows are append-only; the active index maps (course, type, migration_id)
    to the newest active row and is updated on every create and deactivate.
    """

    def __init__(self) -> None:
        self._rows: Dict[int, Entity] = {}
        self._active: Dict[_Key, int] = {}
        self._ids = itertools.count(1)
        self._mutex = threading.RLock()
        self._locks = CourseLocks()

    def course_lock(self, course_id: int):
        return self._locks.hold(course_id)

    def get(self, entity_id: int) -> Entity:
        try:
            return self._rows[entity_id]
        except KeyError:
            raise StoreError(f"no entity with id {entity_id}") from None

    def find_active(self, course_id: int, entity_type: str, migration_id: str) -> Optional[Entity]:
        with self._mutex:
            entity_id = self._active.get((int(course_id), entity_type, migration_id))
            return self._rows.get(entity_id) if entity_id is not None else None

    def find_all(
        self,
        course_id: int,
        entity_type: str,
        *,
        migration_id: Optional[str] = None,
        state: Optional[EntityState] = None,
    ) -> List[Entity]:
        with self._mutex:
            return [
                e for e in self._rows.values()
                if e.course_id == int(course_id)
                and e.entity_type == entity_type
                and (migration_id is None or e.migration_id == migration_id)
                and (state is None or e.state == state)
            ]

    def create(
        self,
        course_id: int,
        entity_type: str,
        *,
        migration_id: Optional[str],
        attributes: Dict[str, Any],
        generation: int = 1,
    ) -> Entity:
        with self._mutex:
            entity = Entity(
                id=next(self._ids),
                course_id=int(course_id),
                entity_type=entity_type,
                migration_id=migration_id,
                state="active",
                generation=generation,
                attributes=dict(attributes),
                created_at=now_utc_iso(),
            )
            self._rows[entity.id] = entity
            if migration_id is not None:
                self._active[(entity.course_id, entity_type, migration_id)] = entity.id
            return entity

    def deactivate(self, course_id: int, entity_type: str, entity_id: int) -> Entity:
        with self._mutex:
            current = self.get(entity_id)
            if current.course_id != int(course_id) or current.entity_type != entity_type:
                raise StoreError(f"entity {entity_id} is not a {entity_type} of course {course_id}")
            retired = replace(current, state="inactive")
            self._rows[entity_id] = retired
            key = (retired.course_id, entity_type, retired.migration_id)
            if self._active.get(key) == entity_id:
                remaining = [
                    e for e in self._rows.values()
                    if e.is_active and (e.course_id, e.entity_type, e.migration_id) == key
                ]
                if remaining:
                    self._active[key] = max(remaining, key=lambda e: e.generation).id
                else:
                    del self._active[key]
            return retired
