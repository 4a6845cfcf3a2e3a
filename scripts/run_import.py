#!/usr/bin/env python3
"""
Import a Common Cartridge into a course.

Usage:
  python scripts/run_import.py --cartridge course.imscc --course-id 101 -v
  python scripts/run_import.py --cartridge course.imscc --course-id 101 --store http \
      --selection selection.json --summary-json out/summary.json
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- ensure repo root on sys.path ---
THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from cartridge.archive import ArchiveError, extract_archive
from cartridge.convert_assessments import CommandAssessmentConverter
from cartridge.converter import convert_extracted
from cartridge.manifest import ManifestError
from importers.import_run import ImportRun
from importers.selection import SelectionSpec, apply_selection
from logging_setup import setup_logging
from store.memory import MemoryStore
from utils.fs import atomic_write, json_dumps_stable


def _load_selection(raw: Optional[str]) -> Optional[SelectionSpec]:
    """--selection takes inline JSON or a path to a JSON file."""
    if not raw:
        return None
    path = Path(raw)
    text = path.read_text(encoding="utf-8") if path.is_file() else raw
    return SelectionSpec.from_settings(json.loads(text))


def _make_store(kind: str):
    if kind == "memory":
        return MemoryStore()
    # Lazy import here to avoid importing requests-heavy modules for local runs
    from store.http import HttpStore
    from utils.api import StoreAPI

    return HttpStore(StoreAPI.from_env())


def _print_dry_run(args, selection: Optional[SelectionSpec], converter) -> int:
    try:
        with extract_archive(args.cartridge) as archive:
            course = convert_extracted(archive, assessment_converter=converter, qti_enabled=args.enable_qti)
    except (ArchiveError, ManifestError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    picked = apply_selection(course, selection)
    print("DRY-RUN: plan for merge")
    for key in ("attachments", "discussion_topics", "external_tools", "assignments", "quizzes", "modules"):
        print(f" - {key}: {len(getattr(picked, key))} of {len(getattr(course, key))} item(s)")
    for w in course.warnings:
        print(f" ! {w}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Import a Common Cartridge into a course.")
    ap.add_argument("--cartridge", required=True, type=Path, help="Path to the .imscc / .zip package")
    ap.add_argument("--course-id", type=int, help="Target course id (required unless --dry-run)")
    ap.add_argument("--selection", default=None,
                    help='Selection settings as JSON or a JSON file, e.g. {"copy": {"all_files": "1"}}')
    ap.add_argument("--store", choices=("memory", "http"), default="memory",
                    help="Entity store: in-process memory or the HTTP store from CARTRIDGE_STORE_URL")
    ap.add_argument("--enable-qti", action="store_true", help="Convert assessments with --qti-command.")
    ap.add_argument("--qti-command", default=None,
                    help="External QTI converter command; receives the descriptor path, prints JSON.")
    ap.add_argument("--abort-on-error", action="store_true",
                    help="Fail the run on the first record the store rejects (default: skip and warn).")
    ap.add_argument("--work-dir", type=Path, default=None, help="Extract here instead of a temp dir.")
    ap.add_argument("--dry-run", action="store_true", help="Convert and count only; nothing is written.")
    ap.add_argument("--summary-json", type=Path, default=None,
                    help="If provided, write a JSON summary of the run here.")
    ap.add_argument("-v", "--verbose", action="count", default=0)

    args = ap.parse_args(argv)

    setup_logging(verbosity=args.verbose or 1)

    if args.enable_qti and not args.qti_command:
        ap.error("--enable-qti needs --qti-command")
    converter = CommandAssessmentConverter(args.qti_command.split()) if args.qti_command else None

    try:
        selection = _load_selection(args.selection)
    except (OSError, ValueError) as exc:
        print(f"ERROR: could not read --selection: {exc}", file=sys.stderr)
        return 2

    if args.dry_run:
        return _print_dry_run(args, selection, converter)

    if args.course_id is None:
        ap.error("--course-id is required unless --dry-run")

    try:
        store = _make_store(args.store)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    run = ImportRun(
        course_id=args.course_id,
        archive_path=args.cartridge,
        store=store,
        selection=selection,
        assessment_converter=converter,
        qti_enabled=args.enable_qti,
        continue_on_error=not args.abort_on_error,
        work_dir=args.work_dir,
    ).execute()

    summary: Dict[str, Any] = run.summary()
    summary["cartridge"] = str(args.cartridge)
    summary["store"] = args.store

    if args.summary_json:
        summary_path = args.summary_json
        if summary_path.exists() and summary_path.is_dir():
            summary_path = summary_path / "import_summary.json"
        atomic_write(summary_path, json_dumps_stable(summary))
        print(f"Wrote summary → {summary_path}")

    for w in run.warnings:
        print(f"WARNING: {w}")
    if run.state != "completed":
        print(f"Import failed: {run.error}", file=sys.stderr)
        return 1
    print("Import finished.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
