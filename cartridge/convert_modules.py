# cartridge/convert_modules.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set

from cartridge.convert_web_links import WebLink
from cartridge.manifest import MISC_MODULE_ID, MISC_MODULE_TITLE
from logging_setup import get_logger
from models import ContentRef, ExternalToolRecord, ModuleItemRecord, ModuleRecord, OrganizationItem, ResourceDescriptor

log = get_logger(artifact="modules")


class _ContentResolver:
    def __init__(
        self,
        *,
        tools: Dict[str, ExternalToolRecord],
        tool_assignments: Set[str],
        web_links: Dict[str, WebLink],
        qti_enabled: bool,
    ) -> None:
        self.tools = tools
        self.tool_assignments = tool_assignments
        self.web_links = web_links
        self.qti_enabled = qti_enabled

    def content_for(self, res: ResourceDescriptor) -> Optional[ContentRef]:
        kind = res.kind
        if kind == "webcontent":
            return ContentRef("Attachment", migration_id=res.identifier)
        if kind == "discussion_topic":
            return ContentRef("DiscussionTopic", migration_id=res.identifier)
        if kind == "basic_lti":
            if res.identifier in self.tool_assignments:
                return ContentRef("Assignment", migration_id=res.identifier)
            tool = self.tools.get(res.identifier)
            return ContentRef("ContextExternalTool", migration_id=res.identifier, url=tool.url if tool else None)
        if kind == "web_link":
            link = self.web_links.get(res.identifier)
            return ContentRef("ExternalUrl", url=link.url) if link else None
        if kind == "assessment" and self.qti_enabled:
            return ContentRef("Quiz", migration_id=res.identifier)
        return None


def _tags(
    nodes: Iterable[OrganizationItem],
    *,
    indent: int,
    resolver: _ContentResolver,
    out: List[ModuleItemRecord],
) -> None:
    for node in nodes:
        if node.resource is not None:
            content = resolver.content_for(node.resource)
            if content is None:
                log.warning(
                    "item %s references %s resource %s with no module item type; skipped",
                    node.identifier, node.resource.type or "untyped", node.resource.identifier,
                )
            else:
                title = node.title
                if title is None and content.kind == "ExternalUrl":
                    link = resolver.web_links.get(node.resource.identifier)
                    title = link.title if link else None
                out.append(ModuleItemRecord(migration_id=node.identifier, title=title, indent=indent, content=content))
        elif node.is_unresolved:
            # title-only: keep the entry, no target
            out.append(ModuleItemRecord(migration_id=node.identifier, title=node.title, indent=indent))
        elif node.title:
            out.append(ModuleItemRecord(
                migration_id=node.identifier,
                title=node.title,
                indent=indent,
                content=ContentRef("ContextModuleSubHeader"),
            ))
        _tags(node.children, indent=indent + 1, resolver=resolver, out=out)


def convert_modules(
    organizations: Iterable[OrganizationItem],
    *,
    tools: Dict[str, ExternalToolRecord],
    tool_assignments: Set[str],
    web_links: Dict[str, WebLink],
    qti_enabled: bool,
) -> List[ModuleRecord]:
    """
    Root-level container items become modules, in document order.

    Root-level items that point straight at a resource are gathered into one
    "Misc Module", placed where the first of them appears.
    """
    resolver = _ContentResolver(
        tools=tools, tool_assignments=tool_assignments, web_links=web_links, qti_enabled=qti_enabled,
    )
    modules: List[ModuleRecord] = []
    misc: Optional[ModuleRecord] = None

    for node in organizations:
        if node.identifierref:
            if misc is None:
                misc = ModuleRecord(migration_id=MISC_MODULE_ID, title=MISC_MODULE_TITLE)
                modules.append(misc)
            _tags([node], indent=0, resolver=resolver, out=misc.items)
            continue

        module = ModuleRecord(migration_id=node.identifier, title=node.title or "Untitled Module")
        _tags(node.children, indent=0, resolver=resolver, out=module.items)
        modules.append(module)

    log.info(
        "converted modules=%d items=%d",
        len(modules), sum(len(m.items) for m in modules),
    )
    return modules
