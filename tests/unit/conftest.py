from contextlib import asynccontextmanager
from types import SimpleNamespace
from urllib.parse import urljoin

import pytest

from services.ux_audit_service.config import Settings
from services.ux_audit_service.crawler.frontier import FrontierCrawler
from services.ux_audit_service.errors import AssessmentEngineError, RendererError
from services.ux_audit_service.pipeline.aggregator import ScoreAggregator
from services.ux_audit_service.pipeline.orchestrator import AuditRunner
from services.ux_audit_service.pipeline.page_processor import PageProcessor
from services.ux_audit_service.schemas.audit import AssessmentParseError, PageAssessment


class FakeRenderer:
    """Serves a fixed site graph: canonical url -> list of raw hrefs."""

    def __init__(self, site, failing=(), link_failures=()):
        self.site = site
        self.failing = set(failing)
        self.link_failures = set(link_failures)
        self.visits = []
        self.extracted_from = []
        self.current = None

    async def goto(self, url, timeout_s):
        self.visits.append(url)
        if url in self.failing or url not in self.site:
            raise RendererError(url, "net::ERR_NAME_NOT_RESOLVED")
        self.current = url

    async def screenshot(self):
        return b"\x89PNG" + self.current.encode()

    async def extract_links(self):
        self.extracted_from.append(self.current)
        if self.current in self.link_failures:
            raise RuntimeError("page closed")
        return [urljoin(self.current, href) for href in self.site[self.current]]


def renderer_factory(renderer):
    @asynccontextmanager
    async def factory():
        yield renderer

    return factory


class FakeRepository:
    def __init__(self, fail_page_urls=(), fail_status_writes=False, fail_reads=False):
        self.fail_page_urls = set(fail_page_urls)
        self.fail_status_writes = fail_status_writes
        self.fail_reads = fail_reads
        self.projects = {}
        self.pages = []
        self.analyses = {}
        self.status_history = []
        self.results = {}

    async def create_project(self, seed_url):
        project_id = f"proj-{len(self.projects) + 1}"
        self.projects[project_id] = {"seed_url": seed_url, "status": "queued", "step": 0, "message": None}
        return project_id

    async def create_page_record(self, project_id, url, snapshot_ref):
        if url in self.fail_page_urls:
            raise RuntimeError("database unavailable")
        page = SimpleNamespace(
            id=f"page-{len(self.pages) + 1}",
            project_id=project_id,
            url=url,
            snapshot_url=snapshot_ref,
            crawl_order=len([p for p in self.pages if p.project_id == project_id]),
        )
        self.pages.append(page)
        return page.id

    async def save_analysis(self, page_id, assessment):
        self.analyses.setdefault(page_id, []).append(assessment)
        return f"analysis-{page_id}-{len(self.analyses[page_id])}"

    async def update_project_status(self, project_id, status, step, message):
        if self.fail_status_writes:
            raise RuntimeError("status write failed")
        self.status_history.append((status, step, message))
        self.projects.setdefault(project_id, {}).update(status=status.value, step=step, message=message)

    async def update_project_result(self, project_id, overall, breakdown):
        self.results[project_id] = (overall, dict(breakdown))

    async def read_pages_with_analyses(self, project_id):
        if self.fail_reads:
            raise RuntimeError("read failed")
        out = []
        for page in self.pages:
            if page.project_id != project_id:
                continue
            latest = self.analyses.get(page.id, [None])[-1]
            out.append(SimpleNamespace(page_id=page.id, url=page.url, scores=dict(latest.scores) if latest else None))
        return out

    def page_urls(self, project_id=None):
        return [p.url for p in self.pages if project_id is None or p.project_id == project_id]


class FakeStore:
    def __init__(self, fail_keys=()):
        self.fail_keys = set(fail_keys)
        self.objects = {}
        self.puts = []

    async def put(self, data, key):
        self.puts.append(key)
        if key in self.fail_keys:
            raise RuntimeError("upload failed")
        self.objects[key] = data
        return f"memory://{key}"


class FakeEngine:
    """Returns ``assessment`` for every call; ``errors`` maps call index -> outcome."""

    def __init__(self, assessment=None, errors=None):
        self.assessment = assessment or PageAssessment(
            scores={"usability": 80, "navigation": 70, "clarity": 90, "accessibility": 60, "aesthetics": 75}
        )
        self.errors = dict(errors or {})
        self.calls = 0

    async def analyze(self, snapshot):
        index = self.calls
        self.calls += 1
        outcome = self.errors.get(index)
        if outcome == "raise":
            raise AssessmentEngineError("gemini_http_503", status_code=503)
        if outcome == "parse":
            return AssessmentParseError(reason="invalid_json: Expecting value", raw_text="not json")
        return self.assessment


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        snapshot_dir=str(tmp_path / "screenshots"),
        settle_delay_s=0,
        navigation_timeout_s=1,
        keep_local_snapshots=False,
        fail_on_empty_crawl=True,
    )


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def build_runner(test_settings):
    def _build(renderer, repository, store=None, engine=None, report_hook=None, settings=None):
        settings = settings or test_settings
        processor = PageProcessor(repository, store or FakeStore(), engine or FakeEngine(), settings=settings)
        return AuditRunner(
            repository,
            crawler=FrontierCrawler(processor),
            aggregator=ScoreAggregator(repository),
            renderer_factory=renderer_factory(renderer),
            report_hook=report_hook,
            settings=settings,
        )

    return _build
