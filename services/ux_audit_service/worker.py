"""Run one audit to completion and exit.

    python -m services.ux_audit_service.worker https://example.com --pages 5

Without arguments the worker reads ``URL``, ``PROJECT_ID`` and ``PAGE_LIMIT``
from the environment, which is how the container job is launched.
"""
import argparse
import asyncio
import os
import sys

from config.logging_config import get_logger, setup_logging
from services.ux_audit_service.config import Settings, settings as default_settings
from services.ux_audit_service.crawler.browser import open_renderer
from services.ux_audit_service.crawler.frontier import FrontierCrawler
from services.ux_audit_service.db.repository import SqlAuditRepository
from services.ux_audit_service.db.session import dispose_engine, init_db
from services.ux_audit_service.integrations.assessment_engine import GeminiAssessmentEngine
from services.ux_audit_service.integrations.snapshot_store import build_snapshot_store
from services.ux_audit_service.pipeline.aggregator import ScoreAggregator
from services.ux_audit_service.pipeline.lifecycle import ProjectLifecycle
from services.ux_audit_service.pipeline.orchestrator import AuditRunner, validate_entry
from services.ux_audit_service.pipeline.page_processor import PageProcessor
from services.ux_audit_service.schemas.audit import RunResult

logger = get_logger(__name__)


def build_runner(settings: Settings = default_settings) -> AuditRunner:
    if not settings.gemini_api_key:
        logger.warning("UX_AUDIT_GEMINI_API_KEY is not set; pages will be saved without analysis")
    repository = SqlAuditRepository()
    processor = PageProcessor(
        repository,
        build_snapshot_store(settings),
        GeminiAssessmentEngine.from_settings(settings),
        settings=settings,
    )
    return AuditRunner(
        repository,
        crawler=FrontierCrawler(processor),
        aggregator=ScoreAggregator(repository),
        renderer_factory=lambda: open_renderer(settings),
        settings=settings,
    )


async def run_audit(seed_url: str, page_budget: int, project_id: str | None = None) -> RunResult:
    await init_db()
    try:
        return await build_runner().run(seed_url, page_budget, project_id=project_id)
    finally:
        await dispose_engine()


async def fail_project(project_id: str, error: Exception) -> None:
    await init_db()
    try:
        await ProjectLifecycle(SqlAuditRepository(), project_id).fail(str(error))
    finally:
        await dispose_engine()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crawl a site and run a UX audit on its pages.")
    parser.add_argument("url", nargs="?", default=os.getenv("URL"), help="seed URL (env: URL)")
    parser.add_argument("--project-id", default=os.getenv("PROJECT_ID"), help="existing project id (env: PROJECT_ID)")
    # string default so argparse applies type=int to PAGE_LIMIT as well
    parser.add_argument(
        "--pages",
        type=int,
        default=os.getenv("PAGE_LIMIT") or str(default_settings.default_page_budget),
        help="page budget (env: PAGE_LIMIT)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    setup_logging("ux_audit_worker")
    args = parse_args(argv)
    if not args.url:
        logger.error("Missing seed URL: pass it as an argument or set URL")
        return 2
    try:
        validate_entry(args.url, args.pages)
    except ValueError as e:
        logger.error(f"Invalid audit parameters: {e}")
        if args.project_id:
            try:
                asyncio.run(fail_project(args.project_id, e))
            except Exception as status_error:
                logger.error(f"Could not mark project {args.project_id} failed: {status_error}")
        return 2

    logger.info(f"Starting audit for {args.url} (limit: {args.pages} pages)")
    try:
        result = asyncio.run(run_audit(args.url, args.pages, project_id=args.project_id))
    except Exception as e:
        logger.error(f"Fatal error during audit: {e}", exc_info=True)
        return 1

    logger.info(f"Audit complete for project {result.project_id}: {result.pages_scanned} pages scanned")
    return 0


if __name__ == "__main__":
    sys.exit(main())
