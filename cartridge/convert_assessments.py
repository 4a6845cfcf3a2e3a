# cartridge/convert_assessments.py
"""
Hand-off to an external QTI conversion engine.

QTI parsing is not done here. When enabled, an AssessmentConverter is called
once per assessment / question-bank resource and its output is appended to
the course data; when disabled, assessments are skipped entirely and module
items pointing at them produce no content tag.
"""
from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from logging_setup import get_logger
from models import AssessmentQuestionRecord, QuestionBankRecord, QuizRecord, ResourceDescriptor

log = get_logger(artifact="quizzes")

ASSESSMENT_KINDS = ("assessment", "question_bank")


@dataclass
class AssessmentBundle:
    quizzes: List[QuizRecord] = field(default_factory=list)
    question_banks: List[QuestionBankRecord] = field(default_factory=list)
    assessment_questions: List[AssessmentQuestionRecord] = field(default_factory=list)

    def extend(self, other: "AssessmentBundle") -> None:
        self.quizzes.extend(other.quizzes)
        self.question_banks.extend(other.question_banks)
        self.assessment_questions.extend(other.assessment_questions)


class AssessmentConverter(Protocol):
    def convert(self, resource: ResourceDescriptor, base_dir: Path) -> AssessmentBundle: ...


class AssessmentConversionError(RuntimeError):
    pass


def bundle_from_json(data: Dict[str, Any]) -> AssessmentBundle:
    """
    {"assessments": [...], "question_banks": [...], "assessment_questions": [...]}
    as emitted by the conversion command.
    """
    bundle = AssessmentBundle()
    for q in data.get("assessments") or []:
        bundle.quizzes.append(QuizRecord(
            migration_id=q["migration_id"],
            title=q.get("title") or "Quiz",
            quiz_type=q.get("quiz_type") or "assignment",
            description=q.get("description") or "",
            points_possible=q.get("points_possible"),
            allowed_attempts=q.get("allowed_attempts"),
            time_limit=q.get("time_limit"),
            question_migration_ids=list(q.get("question_migration_ids") or []),
        ))
    for b in data.get("question_banks") or []:
        bundle.question_banks.append(QuestionBankRecord(migration_id=b["migration_id"], title=b.get("title") or ""))
    for aq in data.get("assessment_questions") or []:
        bundle.assessment_questions.append(AssessmentQuestionRecord(
            migration_id=aq["migration_id"],
            bank_migration_id=aq.get("bank_migration_id"),
            question_data=dict(aq.get("question_data") or {}),
        ))
    return bundle


class CommandAssessmentConverter:
    """
    Runs an external QTI tool: `<command...> <descriptor path>` must print the
    bundle JSON on stdout.
    """

    def __init__(self, command: Sequence[str], *, timeout: float = 300) -> None:
        if not command:
            raise ValueError("assessment converter command is empty")
        self.command = list(command)
        self.timeout = timeout

    def convert(self, resource: ResourceDescriptor, base_dir: Path) -> AssessmentBundle:
        href = resource.main_href
        if not href:
            raise AssessmentConversionError(f"assessment {resource.identifier} has no descriptor file")
        cmd = self.command + [str(base_dir / href)]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout, check=True)
        except (OSError, subprocess.SubprocessError) as exc:
            raise AssessmentConversionError(f"QTI tool failed for {resource.identifier}: {exc}") from exc
        try:
            data = json.loads(proc.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise AssessmentConversionError(f"QTI tool printed invalid JSON for {resource.identifier}") from exc
        return bundle_from_json(data)


def convert_assessments(
    resources: Iterable[ResourceDescriptor],
    *,
    base_dir: Path,
    converter: Optional[AssessmentConverter],
    enabled: bool,
    warnings: List[str],
) -> AssessmentBundle:
    bundle = AssessmentBundle()
    candidates = [r for r in resources if r.kind in ASSESSMENT_KINDS]
    if not candidates:
        return bundle
    if not enabled or converter is None:
        log.info("assessment conversion disabled; skipping %d QTI resources", len(candidates))
        return bundle

    for res in candidates:
        try:
            bundle.extend(converter.convert(res, base_dir))
        except AssessmentConversionError as exc:
            log.warning("skipping assessment %s: %s", res.identifier, exc)
            warnings.append(f"Assessment {res.identifier} could not be converted.")
    log.info(
        "converted quizzes=%d question_banks=%d questions=%d",
        len(bundle.quizzes), len(bundle.question_banks), len(bundle.assessment_questions),
    )
    return bundle
