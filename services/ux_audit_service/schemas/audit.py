from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


DIMENSIONS: tuple[str, ...] = ("usability", "navigation", "clarity", "accessibility", "aesthetics")


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.CRITICAL: 4, Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}


class IssueCategory(str, Enum):
    USABILITY = "Usability"
    NAVIGATION = "Navigation"
    CLARITY = "Clarity"
    ACCESSIBILITY = "Accessibility"
    AESTHETICS = "Aesthetics"

    @property
    def dimension(self) -> str:
        return self.value.lower()


class ProjectStatus(str, Enum):
    QUEUED = "queued"
    CRAWLING = "crawling"
    ANALYZING = "analyzing"
    COMPILING = "compiling"
    GENERATING_REPORT = "generating_report"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectStatus.COMPLETED, ProjectStatus.FAILED, ProjectStatus.ERROR)


STATUS_STEPS = {
    ProjectStatus.QUEUED: 0,
    ProjectStatus.CRAWLING: 1,
    ProjectStatus.ANALYZING: 2,
    ProjectStatus.COMPILING: 3,
    ProjectStatus.GENERATING_REPORT: 4,
    ProjectStatus.COMPLETED: 5,
}


def _match_enum(enum_cls, value):
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == wanted:
                return member
    return value


class Issue(BaseModel):
    title: str | None = None
    description: str | None = None
    severity: Severity
    category: IssueCategory
    suggestion: str | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, v):
        return _match_enum(Severity, v)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, v):
        return _match_enum(IssueCategory, v)

    @model_validator(mode="after")
    def _fill_defaults(self) -> "Issue":
        if not (self.title or "").strip():
            self.title = f"{self.category.value} issue detected"
        if self.description is None:
            self.description = ""
        if not self.suggestion:
            self.suggestion = (
                f"Consider improving {self.category.dimension} by addressing this issue. "
                "Focus on clarity, consistency, and accessibility best practices."
            )
        return self


class PageAssessment(BaseModel):
    """Validated output of the assessment engine for one snapshot."""

    scores: dict[str, float] = Field(default_factory=dict)
    issues: list[Issue] = Field(default_factory=list)
    summary: str = ""
    positive_highlights: list[str] = Field(default_factory=list)


@dataclass
class AssessmentParseError:
    """The engine answered, but not with a usable structured assessment."""

    reason: str
    raw_text: str = ""


class AggregateResult(BaseModel):
    overall: int = Field(ge=0, le=100)
    breakdown: dict[str, int]
    pages_scored: int = 0


class RunResult(BaseModel):
    project_id: str
    pages_scanned: int
