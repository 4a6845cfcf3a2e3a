# cartridge/convert_web_links.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, NamedTuple, Optional

from cartridge.manifest import read_resource_xml
from logging_setup import get_logger
from models import ResourceDescriptor

log = get_logger(artifact="web_links")


class WebLink(NamedTuple):
    title: Optional[str]
    url: str


def convert_web_links(resources: Iterable[ResourceDescriptor], *, base_dir: Path) -> Dict[str, WebLink]:
    """
    <webLink><title>..</title><url href="http://..."/></webLink> per imswl resource.

    Web links have no entity of their own; modules turn them into ExternalUrl tags.
    """
    links: Dict[str, WebLink] = {}
    for res in resources:
        if res.kind != "web_link":
            continue
        doc = read_resource_xml(base_dir, res)
        if doc is None:
            continue
        url_el = doc.find("url")
        href = url_el.get("href") if url_el is not None else None
        if not href:
            log.warning("web link %s has no url", res.identifier)
            continue
        title_el = doc.find("title")
        title = (title_el.text or "").strip() if title_el is not None else ""
        links[res.identifier] = WebLink(title=title or None, url=href.strip())
    log.info("converted web links=%d", len(links))
    return links
