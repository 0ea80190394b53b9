from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from services.ux_audit_service.db.models import PageAnalysis
from services.ux_audit_service.db.repository import SqlAuditRepository
from services.ux_audit_service.db.session import init_db
from services.ux_audit_service.errors import ProjectNotFoundError
from services.ux_audit_service.schemas.audit import Issue, PageAssessment, ProjectStatus, Severity


async def _repository(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
    await init_db(engine)
    return engine, SqlAuditRepository(async_sessionmaker(engine, expire_on_commit=False))


def _issue(title, severity, category="Usability"):
    return Issue(title=title, description="d", severity=severity, category=category)


@pytest.mark.asyncio
async def test_pages_get_sequential_crawl_order(tmp_path):
    engine, repo = await _repository(tmp_path)
    try:
        project_id = await repo.create_project("https://example.com/")
        await repo.create_page_record(project_id, "https://example.com/", "memory://0")
        await repo.create_page_record(project_id, "https://example.com/a", "memory://1")

        pages = await repo.read_pages_with_analyses(project_id)

        assert [(p.url, p.crawl_order) for p in pages] == [("https://example.com/", 0), ("https://example.com/a", 1)]
        assert all(p.scores is None and p.analysis_id is None for p in pages)
        assert (await repo.get_project(project_id)).status == "queued"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_page_record_requires_project(tmp_path):
    engine, repo = await _repository(tmp_path)
    try:
        with pytest.raises(ProjectNotFoundError):
            await repo.create_page_record("missing", "https://example.com/", "memory://0")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_save_analysis_stores_scores_and_issues(tmp_path):
    engine, repo = await _repository(tmp_path)
    try:
        project_id = await repo.create_project("https://example.com/")
        home = await repo.create_page_record(project_id, "https://example.com/", "memory://0")
        about = await repo.create_page_record(project_id, "https://example.com/about", "memory://1")

        await repo.save_analysis(home, PageAssessment(scores={"usability": 70}, issues=[_issue("old", "Critical")]))
        await repo.save_analysis(
            home,
            PageAssessment(
                scores={"usability": 60, "clarity": 90},
                issues=[_issue("Tiny tap targets", "Low"), _issue("No contrast", "Critical", "Accessibility")],
            ),
        )
        await repo.save_analysis(about, PageAssessment(scores={"usability": 80}, issues=[_issue("Wall of text", "High")]))

        pages = await repo.read_pages_with_analyses(project_id)
        assert pages[0].scores == {"usability": 60, "clarity": 90}
        assert pages[0].overall == 75
        assert pages[1].overall == 80

        issues = await repo.list_project_issues(project_id)
        assert [(i.title, i.severity) for i in issues] == [
            ("No contrast", Severity.CRITICAL),
            ("Wall of text", Severity.HIGH),
            ("Tiny tap targets", Severity.LOW),
        ]

        serious = await repo.list_project_issues(project_id, min_severity=Severity.HIGH)
        assert [i.title for i in serious] == ["No contrast", "Wall of text"]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_status_and_result_updates(tmp_path):
    engine, repo = await _repository(tmp_path)
    try:
        project_id = await repo.create_project("https://example.com/")

        await repo.update_project_status(project_id, status=ProjectStatus.CRAWLING, step=1, message="Scanned 1/5 pages")
        project = await repo.get_project(project_id)
        assert (project.status, project.progress_step, project.completed_at) == ("crawling", 1, None)

        await repo.update_project_result(project_id, overall=78, breakdown={"usability": 70, "clarity": 90})
        await repo.update_project_status(project_id, status=ProjectStatus.COMPLETED, step=5, message="done")

        project = await repo.get_project(project_id)
        assert project.status == "completed"
        assert project.completed_at is not None
        assert project.score == 78
        assert project.score_breakdown == {"usability": 70, "clarity": 90}

        with pytest.raises(ProjectNotFoundError):
            await repo.update_project_status("missing", status=ProjectStatus.FAILED, step=0, message="x")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_latest_analysis_follows_revision_not_timestamp(tmp_path):
    engine, repo = await _repository(tmp_path)
    try:
        project_id = await repo.create_project("https://example.com/")
        page_id = await repo.create_page_record(project_id, "https://example.com/", "memory://0")
        for score in (50, 60, 70):
            await repo.save_analysis(page_id, PageAssessment(scores={"usability": score}))

        tick = datetime(2026, 1, 1, tzinfo=timezone.utc)
        async with engine.begin() as conn:
            await conn.execute(update(PageAnalysis).values(created_at=tick))
            await conn.execute(
                update(PageAnalysis).where(PageAnalysis.revision == 0).values(created_at=tick + timedelta(days=1))
            )

        pages = await repo.read_pages_with_analyses(project_id)

        assert pages[0].scores == {"usability": 70}
        assert pages[0].overall == 70
    finally:
        await engine.dispose()
