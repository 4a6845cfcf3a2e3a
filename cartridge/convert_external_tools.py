# cartridge/convert_external_tools.py
"""
Basic LTI link descriptors (imsbasiclti_xmlv1p0) -> external tools.

    <cartridge_basiclti_link>
      <blti:title>BLTI Test</blti:title>
      <blti:launch_url>http://example.com/tool.php</blti:launch_url>
      <blti:custom><lticm:property name="key1">value1</lticm:property></blti:custom>
      <blti:extensions platform="my.lms.com">
        <lticm:property name="key">value</lticm:property>
      </blti:extensions>
    </cartridge_basiclti_link>

Extensions for our own platform are settings, not vendor data: they can carry
consumer_key, shared_secret, privacy_level, domain and outcome (the points
of the graded assignment the link stands for).
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from xml.etree.ElementTree import Element

from cartridge.manifest import read_resource_xml
from logging_setup import get_logger
from models import AssignmentRecord, ExternalToolRecord, ResourceDescriptor

LMS_PLATFORM = "canvas.instructure.com"

log = get_logger(artifact="external_tools")


def _child_text(doc: Element, name: str) -> Optional[str]:
    el = doc.find(name)
    if el is None or el.text is None:
        return None
    return el.text.strip() or None


def properties(el: Optional[Element]) -> Dict[str, str]:
    """name -> text of each <property> directly under el, keys kept verbatim."""
    if el is None:
        return {}
    out: Dict[str, str] = {}
    for prop in el.findall("property"):
        name = prop.get("name")
        if name is None:
            continue
        out[str(name)] = str((prop.text or "").strip())
    return out


def _points(raw: Optional[str], identifier: str) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        log.warning("tool %s has a non-numeric outcome %r", identifier, raw)
        return None


def convert_external_tools(
    resources: Iterable[ResourceDescriptor],
    *,
    base_dir: Path,
    titles: Dict[str, str],
    warnings: List[str],
) -> Tuple[List[ExternalToolRecord], List[AssignmentRecord]]:
    tools: List[ExternalToolRecord] = []
    assignments: List[AssignmentRecord] = []

    for res in resources:
        if res.kind != "basic_lti":
            continue
        doc = read_resource_xml(base_dir, res)
        if doc is None:
            warnings.append(f"External tool {res.identifier} could not be read and was skipped.")
            continue

        own: Dict[str, str] = {}
        vendor_extensions: List[Dict[str, object]] = []
        for ext in doc.findall("extensions"):
            platform = ext.get("platform") or ""
            if platform == LMS_PLATFORM:
                own.update(properties(ext))
                continue
            vendor_extensions.append({"platform": platform, "custom_fields": properties(ext)})

        title = _child_text(doc, "title") or titles.get(res.identifier) or res.identifier
        url = _child_text(doc, "launch_url") or _child_text(doc, "secure_launch_url")
        tool = ExternalToolRecord(
            migration_id=res.identifier,
            title=title,
            url=url,
            description=_child_text(doc, "description") or "",
            domain=own.get("domain"),
            custom_fields=properties(doc.find("custom")),
            vendor_extensions=vendor_extensions,
            consumer_key=own.get("consumer_key"),
            shared_secret=own.get("shared_secret"),
            privacy_level=own.get("privacy_level") or "anonymous",
        )
        tools.append(tool)

        outcome = own.get("outcome")
        if (res.intended_use or "").lower() == "assignment" or outcome is not None:
            assignments.append(AssignmentRecord(
                migration_id=res.identifier,
                title=title,
                points_possible=_points(outcome, res.identifier),
                submission_types=["external_tool"],
                external_tool_migration_id=res.identifier,
                external_tool_url=url,
            ))

    log.info("converted external tools=%d assignments=%d", len(tools), len(assignments))
    return tools, assignments
