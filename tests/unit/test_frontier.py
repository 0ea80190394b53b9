import pytest

from services.ux_audit_service.crawler.frontier import CrawlState, FrontierCrawler
from services.ux_audit_service.pipeline.lifecycle import ProjectLifecycle
from services.ux_audit_service.pipeline.page_processor import PageProcessor
from services.ux_audit_service.schemas.audit import ProjectStatus

from conftest import FakeEngine, FakeRenderer, FakeRepository, FakeStore

SEED = "https://example.com/"

SITE = {
    "https://example.com/": ["/a", "/b", "https://blog.example.com/x", "/a#section", "mailto:hi@example.com"],
    "https://example.com/a": ["/", "/c", "/b/"],
    "https://example.com/b": ["/a"],
    "https://example.com/c": [],
}


def _crawler(repository, test_settings, store=None):
    processor = PageProcessor(repository, store or FakeStore(), FakeEngine(), settings=test_settings)
    return FrontierCrawler(processor)


@pytest.mark.asyncio
async def test_breadth_first_order_and_dedup(test_settings):
    repo = FakeRepository()
    renderer = FakeRenderer(SITE)

    report = await _crawler(repo, test_settings).crawl(renderer, SEED, "proj-1", budget=10)

    assert renderer.visits == [
        "https://example.com/",
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/c",
    ]
    assert repo.page_urls() == renderer.visits
    assert report.pages_created == 4
    assert report.pages_analyzed == 4


@pytest.mark.asyncio
async def test_cycles_do_not_revisit(test_settings):
    site = {
        "https://example.com/": ["/a", "/a/", "https://EXAMPLE.com/a#x"],
        "https://example.com/a": ["/", "/a", "/"],
    }
    repo = FakeRepository()
    renderer = FakeRenderer(site)

    await _crawler(repo, test_settings).crawl(renderer, SEED, "proj-1", budget=10)

    assert renderer.visits == ["https://example.com/", "https://example.com/a"]
    assert len(set(repo.page_urls())) == len(repo.page_urls())


@pytest.mark.asyncio
async def test_budget_bounds_pages_and_stops_link_extraction(test_settings):
    repo = FakeRepository()
    renderer = FakeRenderer(SITE)

    report = await _crawler(repo, test_settings).crawl(renderer, SEED, "proj-1", budget=2)

    assert report.pages_created == 2
    assert repo.page_urls() == ["https://example.com/", "https://example.com/a"]
    assert renderer.extracted_from == ["https://example.com/"]


@pytest.mark.asyncio
async def test_navigation_failure_does_not_consume_budget(test_settings):
    repo = FakeRepository()
    renderer = FakeRenderer(SITE, failing={"https://example.com/a"})

    report = await _crawler(repo, test_settings).crawl(renderer, SEED, "proj-1", budget=2)

    assert repo.page_urls() == ["https://example.com/", "https://example.com/b"]
    assert report.navigation_failures == 1
    assert report.urls_attempted == 3


@pytest.mark.asyncio
async def test_persistence_failure_still_grows_frontier(test_settings):
    repo = FakeRepository(fail_page_urls={"https://example.com/"})
    renderer = FakeRenderer(SITE)

    report = await _crawler(repo, test_settings).crawl(renderer, SEED, "proj-1", budget=10)

    assert report.persistence_failures == 1
    assert repo.page_urls() == ["https://example.com/a", "https://example.com/b", "https://example.com/c"]


@pytest.mark.asyncio
async def test_link_extraction_failure_is_contained(test_settings):
    repo = FakeRepository()
    renderer = FakeRenderer(SITE, link_failures={"https://example.com/"})

    report = await _crawler(repo, test_settings).crawl(renderer, SEED, "proj-1", budget=10)

    assert report.pages_created == 1
    assert renderer.visits == [SEED]


@pytest.mark.asyncio
async def test_progress_reported_per_url(test_settings):
    repo = FakeRepository()
    lifecycle = ProjectLifecycle(repo, "proj-1")
    await lifecycle.transition(ProjectStatus.CRAWLING)

    await _crawler(repo, test_settings).crawl(FakeRenderer(SITE), SEED, "proj-1", budget=2, lifecycle=lifecycle)

    messages = [m for _, _, m in repo.status_history[1:]]
    assert messages == [
        "Scanned 1/2 pages (https://example.com/)",
        "Scanned 2/2 pages (https://example.com/a)",
    ]
    assert all(status == ProjectStatus.CRAWLING for status, _, _ in repo.status_history)


def test_crawl_state_enqueue_filters_offsite_and_duplicates():
    state = CrawlState.seeded(SEED, budget=5)
    assert state.pop_next() == SEED

    added = state.enqueue_links([
        "https://example.com/a",
        "https://example.com/a/",
        "https://example.com/",
        "https://blog.example.com/x",
        "javascript:void(0)",
    ])

    assert added == 1
    assert list(state.frontier) == ["https://example.com/a"]
