"""Two-phase rewriting of file references embedded in imported HTML bodies.

Phase one (conversion) swaps relative cartridge paths for pending markers,
because the attachment rows do not exist yet. Phase two (merge) turns each
marker into a course file URL once the attachment's active entity id is known.
"""
from __future__ import annotations

import html as html_lib
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup

from utils.fs import join_href

FILE_REF_MARKER = "$CANVAS_FILE_REF$"
_FILEBASE_TOKENS = ("$IMS-CC-FILEBASE$", "$IMS_CC_FILEBASE$")
_URL_ATTRS = ("src", "href")

_MARKER_RE = re.compile(re.escape(FILE_REF_MARKER) + r"/(?P<mid>[^\"'\s<>]+)")


@dataclass
class RewriteResult:
    """HTML after resolving markers, plus the markers that had no active attachment."""

    html: str
    resolved: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)


def _serialize_html_fragment(soup: BeautifulSoup) -> str:
    """
    Serialize soup without adding <html>/<body> wrappers for fragments.
    """
    if soup.body:
        return "".join(str(child) for child in soup.body.contents)
    return str(soup)


def _is_relative(url: str) -> bool:
    if not url or url.startswith(("#", "/", "//")):
        return False
    parts = urlsplit(url)
    return not parts.scheme and not parts.netloc


def cartridge_path(url: str, base_dir: str) -> Optional[str]:
    """
    Archive-relative path a src/href points at, or None for external URLs.

    >>> cartridge_path("$IMS-CC-FILEBASE$/../I_media_R/dog.jpg", "I_00006_R")
    'I_media_R/dog.jpg'
    """
    value = unquote((url or "").strip())
    for token in _FILEBASE_TOKENS:
        if value.startswith(token):
            value = value[len(token):].lstrip("/")
            break
    else:
        if not _is_relative(value):
            return None
    path = urlsplit(value).path
    if not path:
        return None
    return join_href(base_dir, path)


def mark_file_references(
    html: str,
    *,
    base_dir: str,
    path_lookup: Mapping[str, str],
) -> Tuple[str, Dict[str, str]]:
    """
    Replace src/href values that point at known cartridge files with markers.

    path_lookup maps archive-relative path -> attachment migration_id.
    Returns (html, {migration_id: original_value}).
    """
    if not html:
        return html, {}

    soup = BeautifulSoup(html, "html.parser")
    refs: Dict[str, str] = {}
    for tag in soup.find_all(True):
        for attr in _URL_ATTRS:
            value = tag.get(attr)
            if not isinstance(value, str):
                continue
            path = cartridge_path(value, base_dir)
            if path is None:
                continue
            # some exporters write archive-root paths instead of descriptor-relative ones
            migration_id = path_lookup.get(path) or path_lookup.get(cartridge_path(value, "") or "")
            if not migration_id:
                continue
            refs.setdefault(migration_id, value)
            tag[attr] = f"{FILE_REF_MARKER}/{migration_id}"

    if not refs:
        return html, {}
    return _serialize_html_fragment(soup), refs


def file_preview_url(course_id: int, attachment_id: int) -> str:
    return f"/courses/{course_id}/files/{attachment_id}/preview"


def resolve_file_references(
    html: str,
    *,
    course_id: int,
    refs: Mapping[str, str],
    resolve: Callable[[str], Optional[int]],
) -> RewriteResult:
    """
    Replace every marker with the course file preview URL of the active
    attachment; markers without one fall back to their original value,
    re-escaped for the attribute it sits in.
    """
    result = RewriteResult(html=html or "")
    if not html or FILE_REF_MARKER not in html:
        return result

    def _repl(match: re.Match[str]) -> str:
        migration_id = match.group("mid")
        attachment_id = resolve(migration_id)
        if attachment_id is None:
            result.unresolved.append(migration_id)
            return html_lib.escape(refs.get(migration_id, ""), quote=True)
        result.resolved.append(migration_id)
        return file_preview_url(course_id, attachment_id)

    result.html = _MARKER_RE.sub(_repl, html)
    return result


__all__ = [
    "FILE_REF_MARKER",
    "RewriteResult",
    "cartridge_path",
    "file_preview_url",
    "mark_file_references",
    "resolve_file_references",
]
