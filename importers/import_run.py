# importers/import_run.py
"""
One import of a cartridge into a course, tracked as a small state machine:

    pending -> converting -> filtering -> merging -> completed

with "failed" reachable from every non-terminal state.

ArchiveError, ManifestError and MergeAborted end the run in "failed" with the
error recorded; anything else also marks it failed and is re-raised.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Literal, Optional, Tuple

from cartridge.archive import ArchiveError, extract_archive
from cartridge.convert_assessments import AssessmentConverter
from cartridge.converter import convert_extracted
from cartridge.manifest import ManifestError
from importers.import_course import merge_into
from importers.persist import MergeAborted
from importers.selection import SelectionSpec, apply_selection
from logging_setup import get_logger
from models import CourseData, MergeReport
from store.base import EntityStore
from utils.dates import now_utc_iso

RunState = Literal["pending", "converting", "filtering", "merging", "completed", "failed"]

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"converting", "failed"}),
    "converting": frozenset({"filtering", "failed"}),
    "filtering": frozenset({"merging", "failed"}),
    "merging": frozenset({"completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}
TERMINAL = frozenset({"completed", "failed"})


class InvalidTransition(RuntimeError):
    pass


@dataclass
class ImportRun:
    course_id: int
    archive_path: Path
    store: EntityStore
    selection: Optional[SelectionSpec] = None
    assessment_converter: Optional[AssessmentConverter] = None
    qti_enabled: bool = False
    continue_on_error: bool = True
    work_dir: Optional[Path] = None
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: RunState = "pending"
    history: List[Tuple[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    report: Optional[MergeReport] = None
    course_data: Optional[CourseData] = None

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append((self.state, now_utc_iso()))

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL

    def transition(self, to: RunState) -> None:
        if to not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"cannot go from {self.state} to {to}")
        get_logger(artifact="run", course_id=self.course_id, run=self.run_id).debug("%s -> %s", self.state, to)
        self.state = to
        self.history.append((to, now_utc_iso()))

    def _fail(self, exc: BaseException) -> None:
        self.error = f"{type(exc).__name__}: {exc}"
        self.transition("failed")

    def execute(self) -> "ImportRun":
        """Run every stage once. Returns self, in state completed or failed."""
        if self.state != "pending":
            raise InvalidTransition(f"run {self.run_id} already started (state={self.state})")
        log = get_logger(artifact="run", course_id=self.course_id, run=self.run_id)
        log.info("import run started archive=%s", self.archive_path)

        try:
            self.transition("converting")
            with extract_archive(Path(self.archive_path), dest=self.work_dir) as archive:
                self.course_data = convert_extracted(
                    archive,
                    assessment_converter=self.assessment_converter,
                    qti_enabled=self.qti_enabled,
                )

                self.transition("filtering")
                selected = apply_selection(self.course_data, self.selection)

                self.transition("merging")
                self.report = merge_into(
                    self.course_id,
                    selected,
                    None,
                    self.store,
                    continue_on_error=self.continue_on_error,
                    run=self.run_id,
                )
            self.warnings = list(self.report.warnings)
            self.transition("completed")
        except (ArchiveError, ManifestError, MergeAborted) as e:
            log.error("import run failed in %s: %s", self.state, e)
            self._fail(e)
        except Exception as e:
            log.exception("import run crashed in %s", self.state)
            self._fail(e)
            raise

        log.info("import run %s warnings=%d", self.state, len(self.warnings))
        return self

    def summary(self) -> Dict[str, object]:
        return {
            "run_id": self.run_id,
            "course_id": self.course_id,
            "state": self.state,
            "history": [{"state": s, "at": at} for s, at in self.history],
            "warnings": list(self.warnings),
            "error": self.error,
            "counts": dict(self.report.counts) if self.report else {},
            "errors": list(self.report.errors) if self.report else [],
        }
