from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from services.ux_audit_service.db.models import AuditPage, AuditProject, PageAnalysis, UxIssue
from services.ux_audit_service.db.session import get_sessionmaker
from services.ux_audit_service.errors import ProjectNotFoundError
from services.ux_audit_service.pipeline.aggregator import page_overall
from services.ux_audit_service.schemas.audit import PageAssessment, ProjectStatus, Severity


@dataclass
class PageScores:
    page_id: str
    url: str
    snapshot_url: str
    crawl_order: int
    analysis_id: str | None
    scores: dict | None
    overall: int | None


@dataclass
class IssueRecord:
    page_id: str
    url: str
    title: str
    description: str
    severity: Severity
    category: str
    suggestion: str | None


class SqlAuditRepository:
    """Project, page and analysis records on top of the async SQLAlchemy session."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession] | None = None):
        self._sessionmaker = sessionmaker or get_sessionmaker()

    async def create_project(self, seed_url: str) -> str:
        async with self._sessionmaker() as session:
            project = AuditProject(seed_url=seed_url, status=ProjectStatus.QUEUED.value, progress_step=0)
            session.add(project)
            await session.commit()
            return project.id

    async def get_project(self, project_id: str) -> AuditProject | None:
        async with self._sessionmaker() as session:
            return await session.get(AuditProject, project_id)

    async def create_page_record(self, project_id: str, url: str, snapshot_ref: str) -> str:
        async with self._sessionmaker() as session:
            if await session.get(AuditProject, project_id) is None:
                raise ProjectNotFoundError(project_id)
            res = await session.execute(select(func.count(AuditPage.id)).where(AuditPage.project_id == project_id))
            page = AuditPage(project_id=project_id, url=url, snapshot_url=snapshot_ref, crawl_order=res.scalar_one())
            session.add(page)
            await session.commit()
            return page.id

    async def save_analysis(self, page_id: str, assessment: PageAssessment) -> str:
        async with self._sessionmaker() as session:
            res = await session.execute(select(func.count(PageAnalysis.id)).where(PageAnalysis.page_id == page_id))
            analysis = PageAnalysis(
                page_id=page_id,
                revision=res.scalar_one(),
                scores=dict(assessment.scores),
                overall=page_overall(assessment.scores),
                summary=assessment.summary,
                positive_highlights=list(assessment.positive_highlights),
            )
            session.add(analysis)
            await session.flush()
            for position, issue in enumerate(assessment.issues):
                session.add(
                    UxIssue(
                        page_id=page_id,
                        analysis_id=analysis.id,
                        position=position,
                        title=issue.title,
                        description=issue.description or "",
                        severity=issue.severity.value,
                        category=issue.category.value,
                        suggestion=issue.suggestion,
                    )
                )
            await session.commit()
            return analysis.id

    async def update_project_status(self, project_id: str, status: ProjectStatus, step: int, message: str) -> None:
        async with self._sessionmaker() as session:
            project = await session.get(AuditProject, project_id)
            if project is None:
                raise ProjectNotFoundError(project_id)
            now = datetime.now(timezone.utc)
            project.status = status.value
            project.progress_step = step
            project.progress_message = message
            project.updated_at = now
            if status == ProjectStatus.COMPLETED:
                project.completed_at = now
            await session.commit()

    async def update_project_result(self, project_id: str, overall: int, breakdown: dict[str, int]) -> None:
        async with self._sessionmaker() as session:
            project = await session.get(AuditProject, project_id)
            if project is None:
                raise ProjectNotFoundError(project_id)
            project.score = overall
            project.score_breakdown = dict(breakdown)
            project.updated_at = datetime.now(timezone.utc)
            await session.commit()

    async def read_pages_with_analyses(self, project_id: str) -> list[PageScores]:
        pages = await self._load_pages(project_id, with_issues=False)
        out = []
        for page in pages:
            latest = page.analyses[-1] if page.analyses else None
            out.append(
                PageScores(
                    page_id=page.id,
                    url=page.url,
                    snapshot_url=page.snapshot_url,
                    crawl_order=page.crawl_order,
                    analysis_id=latest.id if latest else None,
                    scores=dict(latest.scores or {}) if latest else None,
                    overall=latest.overall if latest else None,
                )
            )
        return out

    async def list_project_issues(self, project_id: str, min_severity: Severity | None = None) -> list[IssueRecord]:
        """Issues of each page's newest analysis, most severe first, then in crawl order."""
        pages = await self._load_pages(project_id, with_issues=True)
        records = []
        for page in pages:
            if not page.analyses:
                continue
            for issue in page.analyses[-1].issues:
                severity = Severity(issue.severity)
                if min_severity is not None and severity.rank < min_severity.rank:
                    continue
                records.append(
                    IssueRecord(
                        page_id=page.id,
                        url=page.url,
                        title=issue.title,
                        description=issue.description,
                        severity=severity,
                        category=issue.category,
                        suggestion=issue.suggestion,
                    )
                )
        records.sort(key=lambda r: -r.severity.rank)
        return records

    async def _load_pages(self, project_id: str, with_issues: bool) -> list[AuditPage]:
        load = selectinload(AuditPage.analyses)
        if with_issues:
            load = load.selectinload(PageAnalysis.issues)
        stmt = (
            select(AuditPage)
            .where(AuditPage.project_id == project_id)
            .order_by(AuditPage.crawl_order)
            .options(load)
        )
        async with self._sessionmaker() as session:
            res = await session.execute(stmt)
            return list(res.scalars().all())
