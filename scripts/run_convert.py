#!/usr/bin/env python3
"""
Convert a Common Cartridge to course_export.json without merging it.

Usage:
  python scripts/run_convert.py --cartridge course.imscc --out export/data/course -v
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# --- ensure repo root on sys.path ---
THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from cartridge.archive import ArchiveError
from cartridge.convert_assessments import CommandAssessmentConverter
from cartridge.converter import convert_cartridge, write_course_json
from cartridge.manifest import ManifestError
from logging_setup import get_logger, setup_logging


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Convert a Common Cartridge to course_export.json.")
    ap.add_argument("--cartridge", required=True, type=Path)
    ap.add_argument("--out", required=True, type=Path,
                    help="Output dir; the package is extracted under <out>/files")
    ap.add_argument("--qti-command", default=None, help="External QTI converter command (enables assessments).")
    ap.add_argument("-v", "--verbose", action="count", default=0)
    args = ap.parse_args(argv)

    setup_logging(verbosity=args.verbose or 1)
    log = get_logger(artifact="convert")

    converter = CommandAssessmentConverter(args.qti_command.split()) if args.qti_command else None
    try:
        course = convert_cartridge(
            args.cartridge,
            work_dir=args.out / "files",
            assessment_converter=converter,
            qti_enabled=converter is not None,
        )
    except (ArchiveError, ManifestError) as exc:
        log.error("conversion failed: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    path = write_course_json(course, args.out)
    print(f"Wrote {path}")
    for w in course.warnings:
        print(f"WARNING: {w}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
