import asyncio
import shutil
import time
from pathlib import Path
from typing import Awaitable, Callable

from config.logging_config import AuditLogger
from services.ux_audit_service.config import Settings, settings as default_settings
from services.ux_audit_service.crawler.frontier import FrontierCrawler
from services.ux_audit_service.crawler.urls import canonicalize
from services.ux_audit_service.errors import NoPagesCrawledError
from services.ux_audit_service.pipeline.aggregator import ScoreAggregator
from services.ux_audit_service.pipeline.lifecycle import ProjectLifecycle
from services.ux_audit_service.schemas.audit import AggregateResult, ProjectStatus, RunResult

ReportHook = Callable[[str, AggregateResult], Awaitable[None]]

_LATE_PHASES = (ProjectStatus.COMPILING, ProjectStatus.GENERATING_REPORT)


class AuditRunner:
    """Top-level entry point: one seed URL and one page budget make one run."""

    def __init__(
        self,
        repository,
        crawler: FrontierCrawler,
        aggregator: ScoreAggregator,
        renderer_factory,
        report_hook: ReportHook | None = None,
        settings: Settings = default_settings,
        audit_logger: AuditLogger | None = None,
    ):
        self._repository = repository
        self._crawler = crawler
        self._aggregator = aggregator
        self._renderer_factory = renderer_factory
        self._report_hook = report_hook
        self._settings = settings
        self._log = audit_logger or AuditLogger()

    async def run(self, seed_url: str, page_budget: int, project_id: str | None = None) -> RunResult:
        try:
            seed = validate_entry(seed_url, page_budget)
        except ValueError as e:
            if project_id is not None:
                await self._fail(ProjectLifecycle(self._repository, project_id, audit_logger=self._log), e)
            raise

        if project_id is None:
            project_id = await self._repository.create_project(seed)
            self._log.log_project_created(project_id, seed)

        lifecycle = ProjectLifecycle(self._repository, project_id, audit_logger=self._log)
        started = time.monotonic()
        self._log.log_run_started(project_id, seed, page_budget)

        try:
            await lifecycle.transition(ProjectStatus.CRAWLING)
            async with self._renderer_factory() as renderer:
                report = await self._crawler.crawl(renderer, seed, project_id, page_budget, lifecycle=lifecycle)

            if report.pages_created == 0 and self._settings.fail_on_empty_crawl:
                raise NoPagesCrawledError("No pages could be crawled.")

            await lifecycle.transition(ProjectStatus.COMPILING, f"Compiling insights from {report.pages_created} pages...")
            result = await self._aggregator.aggregate(project_id)

            if self._report_hook is not None:
                await lifecycle.transition(ProjectStatus.GENERATING_REPORT)
                await self._report_hook(project_id, result)

            await lifecycle.transition(
                ProjectStatus.COMPLETED,
                f"Audit completed: {report.pages_created} pages, score {result.overall}.",
            )
        except Exception as e:
            await self._fail(lifecycle, e)
            raise
        finally:
            await self._cleanup_local_snapshots(project_id)

        self._log.log_run_completed(project_id, report.pages_created, result.overall, time.monotonic() - started)
        return RunResult(project_id=project_id, pages_scanned=report.pages_created)

    async def _fail(self, lifecycle: ProjectLifecycle, error: Exception) -> None:
        self._log.log_run_failed(lifecycle.project_id, error)
        status = ProjectStatus.ERROR if lifecycle.status in _LATE_PHASES else ProjectStatus.FAILED
        try:
            await lifecycle.fail(str(error) or type(error).__name__, status=status)
        except Exception as status_error:
            self._log.log_status_write_failed(lifecycle.project_id, status_error)

    async def _cleanup_local_snapshots(self, project_id: str) -> None:
        if self._settings.keep_local_snapshots:
            return
        path = Path(self._settings.snapshot_dir) / project_id
        await asyncio.to_thread(shutil.rmtree, path, True)


def validate_entry(seed_url: str, page_budget: int) -> str:
    seed = canonicalize(seed_url)
    if seed is None:
        raise ValueError(f"invalid_seed_url: {seed_url!r}")
    if isinstance(page_budget, bool) or not isinstance(page_budget, int) or page_budget < 1:
        raise ValueError(f"invalid_page_budget: {page_budget!r}")
    return seed
