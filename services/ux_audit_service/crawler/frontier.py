from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from config.logging_config import AuditLogger
from services.ux_audit_service.crawler.urls import canonicalize, is_same_site

if TYPE_CHECKING:
    from services.ux_audit_service.pipeline.lifecycle import ProjectLifecycle
    from services.ux_audit_service.pipeline.page_processor import PageProcessor


@dataclass
class CrawlState:
    """Frontier and visited set for a single crawl call."""

    seed_url: str
    budget: int
    frontier: deque = field(default_factory=deque)
    visited: set[str] = field(default_factory=set)
    queued: set[str] = field(default_factory=set)
    pages_created: int = 0

    @classmethod
    def seeded(cls, seed_url: str, budget: int) -> "CrawlState":
        state = cls(seed_url=seed_url, budget=budget)
        state.frontier.append(seed_url)
        return state

    @property
    def has_capacity(self) -> bool:
        return self.pages_created < self.budget

    def should_continue(self) -> bool:
        return bool(self.frontier) and self.has_capacity

    def pop_next(self) -> str | None:
        """Oldest frontier entry, or ``None`` when it is invalid or already visited."""
        raw = self.frontier.popleft()
        url = canonicalize(raw)
        if url is None or url in self.visited:
            return None
        self.visited.add(url)
        return url

    def enqueue_links(self, links: list[str]) -> int:
        added = 0
        for link in links:
            if not is_same_site(self.seed_url, link):
                continue
            url = canonicalize(link)
            if url is None or url in self.visited or url in self.queued:
                continue
            self.queued.add(url)
            self.frontier.append(url)
            added += 1
        return added


@dataclass
class CrawlReport:
    pages_created: int = 0
    pages_analyzed: int = 0
    urls_attempted: int = 0
    navigation_failures: int = 0
    persistence_failures: int = 0
    analysis_failures: int = 0
    page_ids: list[str] = field(default_factory=list)


class FrontierCrawler:
    """Breadth-first traversal of in-site links, bounded by a page budget."""

    def __init__(self, processor: "PageProcessor", audit_logger: AuditLogger | None = None):
        self._processor = processor
        self._log = audit_logger or AuditLogger()

    async def crawl(
        self,
        renderer,
        seed_url: str,
        project_id: str,
        budget: int,
        lifecycle: "ProjectLifecycle | None" = None,
    ) -> CrawlReport:
        state = CrawlState.seeded(seed_url, budget)
        report = CrawlReport()

        while state.should_continue():
            url = state.pop_next()
            if url is None:
                continue

            report.urls_attempted += 1
            self._log.log_page_visiting(project_id, url, state.pages_created + 1, budget)
            outcome = await self._processor.process(renderer, url, project_id)

            if not outcome.rendered:
                report.navigation_failures += 1
            elif outcome.page_id is None:
                report.persistence_failures += 1
            else:
                state.pages_created += 1
                report.pages_created += 1
                report.page_ids.append(outcome.page_id)
                if outcome.analyzed:
                    report.pages_analyzed += 1
                else:
                    report.analysis_failures += 1

            if lifecycle is not None:
                await lifecycle.report_progress(f"Scanned {state.pages_created}/{budget} pages ({url})")

            if outcome.rendered and state.has_capacity:
                await self._grow_frontier(renderer, state, project_id, url)

        self._log.log_crawl_finished(project_id, report.pages_created, report.urls_attempted, len(state.frontier))
        return report

    async def _grow_frontier(self, renderer, state: CrawlState, project_id: str, url: str) -> None:
        try:
            links = await renderer.extract_links()
        except Exception as e:
            self._log.log_link_extraction_failed(project_id, url, e)
            return
        added = state.enqueue_links(links)
        self._log.log_links_discovered(project_id, url, len(links), added)
