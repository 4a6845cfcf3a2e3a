# cartridge/manifest.py
"""
Parse imsmanifest.xml into resource descriptors and the organization tree.

Cartridge versions (1.0 - 1.3) use different namespace URIs for the same
elements, so everything here works on local tag names.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from xml.etree.ElementTree import Element, ParseError

from defusedxml import ElementTree as DefusedET
from defusedxml.common import DefusedXmlException

from logging_setup import get_logger
from models import FileRef, OrganizationItem, ResourceDescriptor, ResourceKind

log = get_logger(artifact="manifest")

MISC_MODULE_ID = "misc_module_top_level_items"
MISC_MODULE_TITLE = "Misc Module"


class ManifestError(RuntimeError):
    """The manifest is not well-formed XML or has no usable content."""


@dataclass
class Manifest:
    resources: Dict[str, ResourceDescriptor] = field(default_factory=dict)
    organizations: List[OrganizationItem] = field(default_factory=list)
    title: Optional[str] = None


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def strip_namespaces(root: Element) -> Element:
    for el in root.iter():
        if isinstance(el.tag, str):
            el.tag = local_name(el.tag)
        if el.attrib:
            el.attrib = {local_name(k): v for k, v in el.attrib.items()}
    return root


def parse_xml(text: Union[str, bytes]) -> Element:
    """Parse untrusted cartridge XML (no entity expansion) with namespaces stripped."""
    try:
        root = DefusedET.fromstring(text)
    except (ParseError, DefusedXmlException) as exc:
        raise ManifestError(f"malformed XML: {exc}") from exc
    return strip_namespaces(root)


def _text(el: Optional[Element]) -> Optional[str]:
    if el is None or el.text is None:
        return None
    value = el.text.strip()
    return value or None


def classify_resource(type_attr: str) -> ResourceKind:
    t = (type_attr or "").strip().lower()
    if t.startswith("webcontent") or t.startswith("associatedcontent"):
        return "webcontent"
    if t.startswith("imsdt"):
        return "discussion_topic"
    if t.startswith("imsbasiclti"):
        return "basic_lti"
    if t.startswith("imswl"):
        return "web_link"
    if "question-bank" in t:
        return "question_bank"
    if t.startswith("imsqti") or t.endswith("/assessment"):
        return "assessment"
    return "unknown"


def _section(root: Element, name: str) -> Optional[Element]:
    if root.tag == name:
        return root
    return root.find(name)


def parse_resources(root: Element) -> Dict[str, ResourceDescriptor]:
    """
    Map resource identifier -> ResourceDescriptor for every <resource>.

    root may be the <manifest> element or a bare <resources> element.
    """
    section = _section(root, "resources")
    resources: Dict[str, ResourceDescriptor] = {}
    if section is None:
        return resources

    for el in section.findall("resource"):
        identifier = (el.get("identifier") or "").strip()
        if not identifier:
            log.warning("skipping <resource> without identifier")
            continue
        type_attr = el.get("type") or ""
        files = tuple(FileRef(f.get("href")) for f in el.findall("file") if f.get("href"))
        deps = tuple(d.get("identifierref") for d in el.findall("dependency") if d.get("identifierref"))
        resources[identifier] = ResourceDescriptor(
            identifier=identifier,
            type=type_attr,
            kind=classify_resource(type_attr),
            href=el.get("href") or None,
            files=files,
            intended_use=(el.get("intendeduse") or None),
            dependencies=deps,
        )
    log.debug("parsed %d resources", len(resources))
    return resources


def _build_item(el: Element, depth: int, resources: Dict[str, ResourceDescriptor]) -> OrganizationItem:
    ref = el.get("identifierref") or None
    resource = resources.get(ref) if ref else None
    if ref and resource is None:
        log.warning("item %r references missing resource %r", el.get("identifier"), ref)
    children = tuple(_build_item(c, depth + 1, resources) for c in el.findall("item"))
    return OrganizationItem(
        identifier=el.get("identifier") or "",
        title=_text(el.find("title")),
        identifierref=ref,
        resource=resource,
        children=children,
        indent=depth,
    )


def _root_level_elements(org: Element) -> List[Element]:
    items = org.findall("item")
    # rooted-hierarchy: a single anonymous container (e.g. "LearningModules") wraps the real items
    if len(items) == 1 and not items[0].get("identifierref") and items[0].find("item") is not None:
        return items[0].findall("item")
    return items


def parse_organizations(root: Element, resources: Dict[str, ResourceDescriptor]) -> List[OrganizationItem]:
    """
    Root-level organization items in document order; their indent is 0.

    root may be the <manifest> element or a bare <organizations> element.
    """
    section = _section(root, "organizations")
    if section is None:
        return []
    out: List[OrganizationItem] = []
    for org in section.findall("organization"):
        out.extend(_build_item(el, 0, resources) for el in _root_level_elements(org))
    return out


def resource_titles(items: Iterable[OrganizationItem]) -> Dict[str, str]:
    """First organization title seen for each referenced resource."""
    titles: Dict[str, str] = {}

    def walk(nodes: Iterable[OrganizationItem]) -> None:
        for node in nodes:
            if node.identifierref and node.title and node.identifierref not in titles:
                titles[node.identifierref] = node.title
            walk(node.children)

    walk(items)
    return titles


def read_resource_xml(base_dir: Path, resource: ResourceDescriptor) -> Optional[Element]:
    """
    Parsed descriptor file of a resource (topic, LTI link, web link).

    Missing or malformed descriptors are logged and return None; they cost one
    record, never the whole conversion.
    """
    href = resource.main_href
    if not href:
        log.warning("resource %s has no descriptor file", resource.identifier)
        return None
    path = base_dir / href
    try:
        return parse_xml(path.read_bytes())
    except FileNotFoundError:
        log.warning("descriptor %s for resource %s is missing", href, resource.identifier)
    except ManifestError as exc:
        log.warning("descriptor %s for resource %s is unreadable: %s", href, resource.identifier, exc)
    return None


def parse_manifest(text: Union[str, bytes]) -> Manifest:
    root = parse_xml(text)
    if root.tag != "manifest":
        raise ManifestError(f"expected <manifest> root element, found <{root.tag}>")
    resources = parse_resources(root)
    organizations = parse_organizations(root, resources)
    if not resources and not organizations:
        raise ManifestError("manifest has neither resources nor organizations")

    title = None
    lom_title = root.find("metadata/lom/general/title/string")
    if lom_title is not None:
        title = _text(lom_title)
    log.info("manifest parsed resources=%d organization_items=%d", len(resources), len(organizations))
    return Manifest(resources=resources, organizations=organizations, title=title)
