# utils/fs.py

from __future__ import annotations

import hashlib
import json
import os
import posixpath
import tempfile
from pathlib import Path
from typing import Any, Dict, Union


def atomic_write(path: Path, data: Union[str, bytes]) -> None:
    """
    Write course_export.json, id_map.json or a run summary in one step:
    a sibling temp file is fsynced, then renamed over path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def json_dumps_stable(obj: Any) -> str:
    """Deterministic JSON: 2-space indent, sorted keys, UTF-8, trailing newline."""
    return json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def normalize_href(href: str) -> str:
    """
    Cartridge-relative path with forward slashes only.

    >>> normalize_href("a1\\\\a1.html")
    'a1/a1.html'
    """
    if not href:
        return href
    return href.replace("\\", "/")


def join_href(base_dir: str, href: str) -> str:
    """Resolve href against a cartridge-relative directory, collapsing ./ and ../ segments."""
    joined = posixpath.normpath(posixpath.join(base_dir, normalize_href(href)))
    return "" if joined == "." else joined.lstrip("/")


def path_migration_id(href: str) -> str:
    """Stable migration id for a file that has no identifier of its own."""
    return hashlib.md5(normalize_href(href).encode("utf-8")).hexdigest()


def file_hashes(path: Path, chunk_size: int = 1024 * 1024) -> Dict[str, str]:
    """sha256 and md5 of an extracted cartridge file, read in chunks."""
    digests = {"sha256": hashlib.sha256(), "md5": hashlib.md5()}
    with Path(path).open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            for d in digests.values():
                d.update(chunk)
    return {name: d.hexdigest() for name, d in digests.items()}
