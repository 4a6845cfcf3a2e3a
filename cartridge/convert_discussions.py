# cartridge/convert_discussions.py
from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

from cartridge.manifest import read_resource_xml
from logging_setup import get_logger
from models import DiscussionTopicRecord, ResourceDescriptor
from utils.html_postprocessor import cartridge_path, mark_file_references

log = get_logger(artifact="discussions")


def convert_discussions(
    resources: Iterable[ResourceDescriptor],
    *,
    base_dir: Path,
    path_lookup: Mapping[str, str],
    titles: Dict[str, str],
    warnings: List[str],
) -> List[DiscussionTopicRecord]:
    """
    Convert imsdt topic descriptors.

    File references in the body are swapped for pending markers here; the
    merge resolves them after attachments have entity ids.
    """
    topics: List[DiscussionTopicRecord] = []
    for res in resources:
        if res.kind != "discussion_topic":
            continue
        doc = read_resource_xml(base_dir, res)
        if doc is None:
            warnings.append(f"Discussion topic {res.identifier} could not be read and was skipped.")
            continue

        title_el = doc.find("title")
        title = (title_el.text or "").strip() if title_el is not None else ""
        title = title or titles.get(res.identifier) or "Discussion"

        text_el = doc.find("text")
        body = (text_el.text or "") if text_el is not None else ""
        topic_dir = posixpath.dirname(res.main_href or "")
        message, refs = mark_file_references(body, base_dir=topic_dir, path_lookup=path_lookup)

        attachment_id = None
        for att in doc.findall("attachments/attachment"):
            href = att.get("href")
            path = cartridge_path(href, topic_dir) if href else None
            if path and path in path_lookup:
                attachment_id = path_lookup[path]
                break
            log.warning("topic %s attachment %r does not match an imported file", res.identifier, href)

        topics.append(DiscussionTopicRecord(
            migration_id=res.identifier,
            title=title,
            message=message,
            file_refs=refs,
            attachment_migration_id=attachment_id,
        ))

    log.info("converted discussion topics=%d", len(topics))
    return topics
