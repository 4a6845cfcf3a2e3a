# importers/import_external_tools.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from importers.persist import log_complete, new_counts, persist
from logging_setup import get_logger
from models import ExternalToolRecord, MergeReport
from store.base import EXTERNAL_TOOLS, EntityStore
from utils.mapping import IdMap

__all__ = ["import_external_tools", "security_warning"]


def security_warning(tool_name: str) -> str:
    return f'The security parameters for the external tool "{tool_name}" need to be set in Course Settings.'


def import_external_tools(
    *,
    target_course_id: int,
    tools: Iterable[ExternalToolRecord],
    store: EntityStore,
    report: MergeReport,
    id_map: Optional[IdMap] = None,
    continue_on_error: bool = True,
    run: str = "-",
) -> Dict[str, int]:
    """
    Merge LTI tools. Each tool imported without both a consumer key and a
    shared secret adds one warning naming it.
    """
    log = get_logger(artifact="external_tools", course_id=target_course_id, run=run)
    id_map = id_map if id_map is not None else {}
    counts = new_counts()

    for tool in tools:
        counts["total"] += 1
        attrs: Dict[str, Any] = {
            "name": tool.title,
            "url": tool.url,
            "description": tool.description,
            "domain": tool.domain,
            "custom_fields": dict(tool.custom_fields),
            "vendor_extensions": list(tool.vendor_extensions),
            "consumer_key": tool.consumer_key,
            "shared_secret": tool.shared_secret,
            "privacy_level": tool.privacy_level,
        }
        entity = persist(
            store=store, course_id=target_course_id, entity_type=EXTERNAL_TOOLS,
            migration_id=tool.migration_id, attributes=attrs, label=tool.title,
            counts=counts, report=report, id_map=id_map, log=log, continue_on_error=continue_on_error,
        )
        if entity is not None and not tool.has_security_parameters:
            report.warn(security_warning(tool.title), unique=False)

    log_complete(log, "External tools", counts)
    return counts
