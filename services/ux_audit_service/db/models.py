import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class AuditProject(Base):
    __tablename__ = "audit_projects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    seed_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="queued")
    progress_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    score_breakdown: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    pages: Mapped[list["AuditPage"]] = relationship(back_populates="project", order_by="AuditPage.crawl_order")


class AuditPage(Base):
    __tablename__ = "audit_pages"
    __table_args__ = (Index("idx_audit_pages_project_id", "project_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(String(64), ForeignKey("audit_projects.id", ondelete="CASCADE"), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    snapshot_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    crawl_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    project: Mapped[AuditProject] = relationship(back_populates="pages")
    analyses: Mapped[list["PageAnalysis"]] = relationship(back_populates="page", order_by="PageAnalysis.revision")


class PageAnalysis(Base):
    __tablename__ = "page_analyses"
    __table_args__ = (Index("idx_page_analyses_page_id", "page_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    page_id: Mapped[str] = mapped_column(String(64), ForeignKey("audit_pages.id", ondelete="CASCADE"), nullable=False)
    # 0 for the first analysis of a page, +1 for each re-analysis
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scores: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    overall: Mapped[int | None] = mapped_column(Integer, nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    positive_highlights: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    page: Mapped[AuditPage] = relationship(back_populates="analyses")
    issues: Mapped[list["UxIssue"]] = relationship(back_populates="analysis", order_by="UxIssue.position")


class UxIssue(Base):
    __tablename__ = "ux_issues"
    __table_args__ = (
        Index("idx_ux_issues_page_id", "page_id"),
        Index("idx_ux_issues_severity", "severity"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    page_id: Mapped[str] = mapped_column(String(64), ForeignKey("audit_pages.id", ondelete="CASCADE"), nullable=False)
    analysis_id: Mapped[str] = mapped_column(String(64), ForeignKey("page_analyses.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    suggestion: Mapped[str | None] = mapped_column(Text, nullable=True)

    analysis: Mapped[PageAnalysis] = relationship(back_populates="issues")
