from services.ux_audit_service.schemas.audit import (
    DIMENSIONS,
    STATUS_STEPS,
    AggregateResult,
    AssessmentParseError,
    Issue,
    IssueCategory,
    PageAssessment,
    ProjectStatus,
    RunResult,
    Severity,
)

__all__ = [
    "DIMENSIONS",
    "STATUS_STEPS",
    "AggregateResult",
    "AssessmentParseError",
    "Issue",
    "IssueCategory",
    "PageAssessment",
    "ProjectStatus",
    "RunResult",
    "Severity",
]
