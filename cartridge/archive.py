# cartridge/archive.py
"""
Extract a cartridge zip to a working directory and locate imsmanifest.xml.
"""
from __future__ import annotations

import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from logging_setup import get_logger

MANIFEST_NAME = "imsmanifest.xml"

MAX_MEMBERS = 10_000
MAX_TOTAL_SIZE = 500 * 1024 * 1024  # uncompressed bytes

log = get_logger(artifact="archive")


class ArchiveError(RuntimeError):
    """The cartridge is unreadable or has no manifest."""


def is_safe_member_name(member: str) -> bool:
    """Reject absolute paths, drive letters, parent references and NUL bytes."""
    if not member:
        return False
    name = member.replace("\\", "/")
    if name.startswith("/"):
        return False
    if len(name) >= 2 and name[1] == ":":
        return False
    if ".." in name.split("/"):
        return False
    if "\0" in name:
        return False
    return True


@dataclass
class ExtractedArchive:
    root: Path
    manifest_path: Path
    _owns_root: bool = False

    @property
    def base_dir(self) -> Path:
        """Directory the manifest's hrefs are relative to."""
        return self.manifest_path.parent

    def read_manifest(self) -> bytes:
        """Raw manifest bytes; the XML declaration decides the encoding."""
        return self.manifest_path.read_bytes()

    def cleanup(self) -> None:
        if self._owns_root and self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> "ExtractedArchive":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()


def find_manifest(root: Path) -> Optional[Path]:
    direct = root / MANIFEST_NAME
    if direct.is_file():
        return direct
    candidates = sorted(root.rglob(MANIFEST_NAME), key=lambda p: (len(p.parts), str(p)))
    return candidates[0] if candidates else None


def extract_archive(archive_path: Path, dest: Optional[Path] = None) -> ExtractedArchive:
    """
    Unzip archive_path into dest (or a fresh temp dir that cleanup() removes).

    Raises ArchiveError for a missing/corrupt zip, an oversized archive, or a
    cartridge without imsmanifest.xml.
    """
    archive_path = Path(archive_path)
    if not archive_path.is_file():
        raise ArchiveError(f"cartridge not found: {archive_path}")

    owns_root = dest is None
    root = Path(tempfile.mkdtemp(prefix="cartridge_import_")) if dest is None else Path(dest)
    root.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            infos = zf.infolist()
            if len(infos) > MAX_MEMBERS:
                raise ArchiveError(f"cartridge contains too many files: {len(infos)}")
            total = sum(i.file_size for i in infos)
            if total > MAX_TOTAL_SIZE:
                raise ArchiveError(f"cartridge too large: {total / (1024 * 1024):.1f} MB")

            resolved_root = root.resolve()
            for info in infos:
                if not is_safe_member_name(info.filename):
                    log.warning("skipping unsafe member name %r", info.filename)
                    continue
                target = (root / info.filename.replace("\\", "/")).resolve()
                try:
                    target.relative_to(resolved_root)
                except ValueError:
                    log.warning("skipping member escaping the work dir %r", info.filename)
                    continue
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, target.open("wb") as out:
                    shutil.copyfileobj(src, out)
    except zipfile.BadZipFile as exc:
        if owns_root:
            shutil.rmtree(root, ignore_errors=True)
        raise ArchiveError(f"not a zip archive: {archive_path}") from exc
    except ArchiveError:
        if owns_root:
            shutil.rmtree(root, ignore_errors=True)
        raise

    manifest = find_manifest(root)
    if manifest is None:
        if owns_root:
            shutil.rmtree(root, ignore_errors=True)
        raise ArchiveError(f"no {MANIFEST_NAME} found in {archive_path.name}")

    log.info("extracted cartridge %s to %s", archive_path.name, root)
    return ExtractedArchive(root=root, manifest_path=manifest, _owns_root=owns_root)
