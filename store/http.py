# store/http.py
"""
EntityStore backed by a remote JSON API.

  GET  {api_root}/courses/:course_id/:entity_type?migration_id=..&state=..
  POST {api_root}/courses/:course_id/:entity_type       {"entity": {...}}
  PUT  {api_root}/courses/:course_id/:entity_type/:id   {"entity": {"state": "inactive"}}

The course lock is process-local; two processes importing into the same
course must be serialized by the caller.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from store.base import CourseLocks, Entity, EntityState, StoreError
from utils.api import StoreAPI
from utils.dates import normalize_iso8601


def _entity_from_json(course_id: int, entity_type: str, body: Any) -> Entity:
    if isinstance(body, dict) and isinstance(body.get("entity"), dict):
        body = body["entity"]
    if not isinstance(body, dict) or body.get("id") is None:
        raise StoreError(f"store returned no {entity_type} id")
    try:
        entity_id = int(body["id"])
    except (TypeError, ValueError) as exc:
        raise StoreError(f"store returned a non-numeric id {body.get('id')!r}") from exc
    state = body.get("state") or "active"
    return Entity(
        id=entity_id,
        course_id=int(body.get("course_id") or course_id),
        entity_type=entity_type,
        migration_id=body.get("migration_id"),
        state="inactive" if state == "inactive" else "active",
        generation=int(body.get("generation") or 1),
        attributes=dict(body.get("attributes") or {}),
        created_at=normalize_iso8601(body.get("created_at")),
    )


class HttpStore:
    def __init__(self, api: StoreAPI) -> None:
        self.api = api
        self._locks = CourseLocks()

    def course_lock(self, course_id: int):
        return self._locks.hold(course_id)

    def _collection(self, course_id: int, entity_type: str) -> str:
        return f"/api/v1/courses/{course_id}/{entity_type}"

    def find_all(
        self,
        course_id: int,
        entity_type: str,
        *,
        migration_id: Optional[str] = None,
        state: Optional[EntityState] = None,
    ) -> List[Entity]:
        params: Dict[str, Any] = {}
        if migration_id is not None:
            params["migration_id"] = migration_id
        if state is not None:
            params["state"] = state
        try:
            data = self.api.get(self._collection(course_id, entity_type), params=params)
        except requests.RequestException as exc:
            raise StoreError(f"listing {entity_type} failed: {exc}") from exc
        if not isinstance(data, list):
            return []
        return [_entity_from_json(course_id, entity_type, row) for row in data]

    def find_active(self, course_id: int, entity_type: str, migration_id: str) -> Optional[Entity]:
        rows = self.find_all(course_id, entity_type, migration_id=migration_id, state="active")
        if not rows:
            return None
        # a half-finished supersede can leave two active rows; the newest generation wins
        return max(rows, key=lambda e: (e.generation, e.id))

    def create(
        self,
        course_id: int,
        entity_type: str,
        *,
        migration_id: Optional[str],
        attributes: Dict[str, Any],
        generation: int = 1,
    ) -> Entity:
        payload = {
            "entity": {
                "migration_id": migration_id,
                "generation": generation,
                "state": "active",
                "attributes": attributes,
            }
        }
        try:
            resp = self.api.post(self._collection(course_id, entity_type), json=payload)
        except requests.RequestException as exc:
            raise StoreError(f"creating {entity_type} {migration_id!r} failed: {exc}") from exc
        body = StoreAPI.json_body(resp)
        if isinstance(body, dict) and "generation" not in body and "entity" not in body:
            body = {**body, "generation": generation, "migration_id": migration_id, "attributes": attributes}
        return _entity_from_json(course_id, entity_type, body)

    def deactivate(self, course_id: int, entity_type: str, entity_id: int) -> Entity:
        try:
            resp = self.api.put(
                f"{self._collection(course_id, entity_type)}/{entity_id}",
                json={"entity": {"state": "inactive"}},
            )
        except requests.RequestException as exc:
            raise StoreError(f"deactivating {entity_type} {entity_id} failed: {exc}") from exc
        body = StoreAPI.json_body(resp)
        if not body:
            body = {"id": entity_id, "state": "inactive"}
        return _entity_from_json(course_id, entity_type, body)
