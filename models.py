#models.py
from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple, get_args

from utils.fs import normalize_href

ResourceKind = Literal[
    "webcontent",
    "discussion_topic",
    "basic_lti",
    "web_link",
    "assessment",
    "question_bank",
    "unknown",
]

# Content-tag target kinds; the strings double as the stored content_type.
ContentKind = Literal[
    "Attachment",
    "DiscussionTopic",
    "Quiz",
    "Assignment",
    "ContextExternalTool",
    "ExternalUrl",
    "ContextModuleSubHeader",
]
CONTENT_KINDS: Tuple[str, ...] = get_args(ContentKind)

RecordType = Literal[
    "attachment",
    "discussion_topic",
    "external_tool",
    "assignment",
    "quiz",
    "question_bank",
    "assessment_question",
    "module",
    "module_item",
]


@dataclass(frozen=True, slots=True)
class FileRef:
    href: str

    def __post_init__(self):
        object.__setattr__(self, "href", normalize_href(self.href))


@dataclass(frozen=True, slots=True)
class ResourceDescriptor:
    identifier: str
    type: str                       # raw manifest type attribute
    kind: ResourceKind = "unknown"
    href: Optional[str] = None
    files: Tuple[FileRef, ...] = ()
    intended_use: Optional[str] = None
    dependencies: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.href is not None:
            object.__setattr__(self, "href", normalize_href(self.href))

    @property
    def main_href(self) -> Optional[str]:
        if self.href:
            return self.href
        return self.files[0].href if self.files else None


@dataclass(frozen=True, slots=True)
class OrganizationItem:
    identifier: str
    title: Optional[str] = None
    identifierref: Optional[str] = None
    resource: Optional[ResourceDescriptor] = None  # None when identifierref did not resolve
    children: Tuple["OrganizationItem", ...] = ()
    indent: int = 0

    @property
    def is_unresolved(self) -> bool:
        return bool(self.identifierref) and self.resource is None


@dataclass(frozen=True, slots=True)
class ContentRef:
    """Target of a content tag: {kind, migration id} or {kind, url}."""
    kind: ContentKind
    migration_id: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self):
        if self.kind not in CONTENT_KINDS:
            raise ValueError(f"unknown content kind {self.kind!r}")


@dataclass(frozen=True, slots=True)
class AttachmentRecord:
    record_type: ClassVar[str] = "attachment"
    migration_id: str
    path_name: str                  # relative path inside the cartridge
    display_name: str
    hidden: bool = False


@dataclass(frozen=True, slots=True)
class DiscussionTopicRecord:
    record_type: ClassVar[str] = "discussion_topic"
    migration_id: str
    title: str
    message: str                    # may contain pending file markers
    file_refs: Dict[str, str] = field(default_factory=dict)  # attachment migration_id -> original path
    attachment_migration_id: Optional[str] = None
    is_announcement: bool = False


@dataclass(frozen=True, slots=True)
class ExternalToolRecord:
    record_type: ClassVar[str] = "external_tool"
    migration_id: str
    title: str
    url: Optional[str]
    description: str = ""
    domain: Optional[str] = None
    custom_fields: Dict[str, str] = field(default_factory=dict)
    vendor_extensions: List[Dict[str, Any]] = field(default_factory=list)
    consumer_key: Optional[str] = None
    shared_secret: Optional[str] = None
    privacy_level: str = "anonymous"

    @property
    def has_security_parameters(self) -> bool:
        return bool(self.consumer_key) and bool(self.shared_secret)


@dataclass(frozen=True, slots=True)
class AssignmentRecord:
    record_type: ClassVar[str] = "assignment"
    migration_id: str
    title: str
    points_possible: Optional[float] = None
    description: str = ""
    submission_types: List[str] = field(default_factory=list)
    external_tool_migration_id: Optional[str] = None
    external_tool_url: Optional[str] = None
    attachment_migration_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class QuizRecord:
    record_type: ClassVar[str] = "quiz"
    migration_id: str
    title: str
    quiz_type: str = "assignment"   # "assignment", "practice_quiz", "graded_survey", "survey"
    description: str = ""
    points_possible: Optional[float] = None
    allowed_attempts: Optional[int] = None
    time_limit: Optional[int] = None
    question_migration_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class QuestionBankRecord:
    record_type: ClassVar[str] = "question_bank"
    migration_id: str
    title: str


@dataclass(frozen=True, slots=True)
class AssessmentQuestionRecord:
    record_type: ClassVar[str] = "assessment_question"
    migration_id: str
    bank_migration_id: Optional[str] = None
    question_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ModuleItemRecord:
    """A content tag. content is None for title-only entries."""
    record_type: ClassVar[str] = "module_item"
    migration_id: str
    title: Optional[str]
    indent: int = 0
    content: Optional[ContentRef] = None


@dataclass(frozen=True, slots=True)
class ModuleRecord:
    record_type: ClassVar[str] = "module"
    migration_id: str
    title: str
    items: List[ModuleItemRecord] = field(default_factory=list)


def _from_fields(cls, raw: Dict[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (raw or {}).items() if k in names})


def _module_from_dict(raw: Dict[str, Any]) -> ModuleRecord:
    items: List[ModuleItemRecord] = []
    for it in raw.get("items") or []:
        content = it.get("content")
        items.append(ModuleItemRecord(
            migration_id=it["migration_id"],
            title=it.get("title"),
            indent=int(it.get("indent") or 0),
            content=_from_fields(ContentRef, content) if content else None,
        ))
    return ModuleRecord(migration_id=raw["migration_id"], title=raw.get("title") or "", items=items)


@dataclass(frozen=True, slots=True)
class CourseData:
    """Conversion output handed to the merge stage."""
    attachments: List[AttachmentRecord] = field(default_factory=list)
    discussion_topics: List[DiscussionTopicRecord] = field(default_factory=list)
    external_tools: List[ExternalToolRecord] = field(default_factory=list)
    assignments: List[AssignmentRecord] = field(default_factory=list)
    quizzes: List[QuizRecord] = field(default_factory=list)
    question_banks: List[QuestionBankRecord] = field(default_factory=list)
    assessment_questions: List[AssessmentQuestionRecord] = field(default_factory=list)
    modules: List[ModuleRecord] = field(default_factory=list)
    archive_root: Optional[str] = None  # extracted cartridge dir; None when files are not available
    warnings: List[str] = field(default_factory=list)

    _SIMPLE: ClassVar[Dict[str, type]] = {
        "attachments": AttachmentRecord,
        "discussion_topics": DiscussionTopicRecord,
        "external_tools": ExternalToolRecord,
        "assignments": AssignmentRecord,
        "quizzes": QuizRecord,
        "question_banks": QuestionBankRecord,
        "assessment_questions": AssessmentQuestionRecord,
    }

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CourseData":
        kwargs: Dict[str, Any] = {}
        for key, rec_cls in cls._SIMPLE.items():
            kwargs[key] = [_from_fields(rec_cls, r) for r in raw.get(key) or []]
        kwargs["modules"] = [_module_from_dict(m) for m in raw.get("modules") or []]
        kwargs["archive_root"] = raw.get("archive_root")
        kwargs["warnings"] = list(raw.get("warnings") or [])
        return cls(**kwargs)

    def all_records(self) -> List[Any]:
        out: List[Any] = []
        for key in self._SIMPLE:
            out.extend(getattr(self, key))
        out.extend(self.modules)
        return out


@dataclass
class MergeReport:
    """Outcome of one merge: counters per record kind plus non-fatal warnings."""
    course_id: int
    counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return sum(c.get("imported", 0) for c in self.counts.values())

    def warn(self, message: str, *, unique: bool = True) -> None:
        """unique=False keeps repeats, for warnings that are counted per record."""
        if unique and message in self.warnings:
            return
        self.warnings.append(message)
