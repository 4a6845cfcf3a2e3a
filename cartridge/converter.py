# cartridge/converter.py
"""
Cartridge -> CourseData.

  extract archive -> parse manifest -> files -> topics -> tools/links
  -> assessments (optional) -> modules

The resulting CourseData can be written as course_export.json and merged later.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from cartridge.archive import ExtractedArchive, extract_archive
from cartridge.convert_assessments import AssessmentConverter, convert_assessments
from cartridge.convert_discussions import convert_discussions
from cartridge.convert_external_tools import convert_external_tools
from cartridge.convert_modules import convert_modules
from cartridge.convert_web_content import attachment_path_lookup, convert_web_content
from cartridge.convert_web_links import convert_web_links
from cartridge.manifest import parse_manifest, resource_titles
from logging_setup import get_logger
from models import CourseData
from utils.fs import atomic_write, json_dumps_stable

COURSE_EXPORT_NAME = "course_export.json"


def convert_extracted(
    archive: ExtractedArchive,
    *,
    assessment_converter: Optional[AssessmentConverter] = None,
    qti_enabled: bool = False,
) -> CourseData:
    """Convert an already extracted cartridge. ManifestError propagates."""
    log = get_logger(artifact="convert")
    manifest = parse_manifest(archive.read_manifest())
    base_dir = archive.base_dir
    resources = list(manifest.resources.values())
    titles = resource_titles(manifest.organizations)
    warnings: List[str] = []

    attachments, file_assignments = convert_web_content(resources, titles=titles)
    path_lookup = attachment_path_lookup(attachments)
    topics = convert_discussions(
        resources, base_dir=base_dir, path_lookup=path_lookup, titles=titles, warnings=warnings,
    )
    tools, tool_assignments = convert_external_tools(resources, base_dir=base_dir, titles=titles, warnings=warnings)
    web_links = convert_web_links(resources, base_dir=base_dir)
    assessments = convert_assessments(
        resources,
        base_dir=base_dir,
        converter=assessment_converter,
        enabled=qti_enabled,
        warnings=warnings,
    )
    modules = convert_modules(
        manifest.organizations,
        tools={t.migration_id: t for t in tools},
        tool_assignments={a.migration_id for a in tool_assignments},
        web_links=web_links,
        qti_enabled=qti_enabled and assessment_converter is not None,
    )

    course = CourseData(
        attachments=attachments,
        discussion_topics=topics,
        external_tools=tools,
        assignments=file_assignments + tool_assignments,
        quizzes=assessments.quizzes,
        question_banks=assessments.question_banks,
        assessment_questions=assessments.assessment_questions,
        modules=modules,
        archive_root=str(base_dir),
        warnings=warnings,
    )
    log.info(
        "conversion complete. attachments=%d topics=%d tools=%d assignments=%d quizzes=%d modules=%d warnings=%d",
        len(course.attachments), len(course.discussion_topics), len(course.external_tools),
        len(course.assignments), len(course.quizzes), len(course.modules), len(warnings),
    )
    return course


def convert_cartridge(
    archive_path: Path,
    *,
    work_dir: Path,
    assessment_converter: Optional[AssessmentConverter] = None,
    qti_enabled: bool = False,
) -> CourseData:
    """
    Extract into work_dir (kept, so attachments stay readable for the merge)
    and convert.
    """
    archive = extract_archive(Path(archive_path), dest=Path(work_dir))
    return convert_extracted(archive, assessment_converter=assessment_converter, qti_enabled=qti_enabled)


def write_course_json(course: CourseData, out_dir: Path) -> Path:
    path = Path(out_dir) / COURSE_EXPORT_NAME
    atomic_write(path, json_dumps_stable(course.to_dict()))
    return path


def load_course_json(path: Path) -> CourseData:
    return CourseData.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))
