"""Per-page pipeline: snapshot -> persist -> analyze -> persist.

Each step is contained on its own. A failure logs and abandons the remaining
steps for that page only; nothing raised here reaches the crawl loop.
"""
import asyncio
import hashlib
from dataclasses import dataclass
from pathlib import Path

from config.logging_config import AuditLogger
from services.ux_audit_service.config import Settings, settings as default_settings
from services.ux_audit_service.crawler.urls import safe_filename
from services.ux_audit_service.schemas.audit import AssessmentParseError


@dataclass
class PageOutcome:
    url: str
    rendered: bool = False
    page_id: str | None = None
    analyzed: bool = False
    snapshot_path: str | None = None

    @property
    def skipped(self) -> bool:
        return self.page_id is None


def snapshot_key(project_id: str, url: str) -> str:
    # distinct urls get distinct keys even where safe_filename collides
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
    return f"{project_id}/{safe_filename(url)}_{digest}.png"


class PageProcessor:
    def __init__(
        self,
        repository,
        snapshot_store,
        engine,
        settings: Settings = default_settings,
        audit_logger: AuditLogger | None = None,
    ):
        self._repository = repository
        self._store = snapshot_store
        self._engine = engine
        self._settings = settings
        self._log = audit_logger or AuditLogger()

    async def process(self, renderer, url: str, project_id: str) -> PageOutcome:
        outcome = PageOutcome(url=url)
        key = snapshot_key(project_id, url)

        try:
            await renderer.goto(url, timeout_s=self._settings.navigation_timeout_s)
            data = await renderer.screenshot()
            outcome.snapshot_path = await self._write_local(key, data)
        except Exception as e:
            self._log.log_page_skipped(project_id, url, e)
            return outcome
        outcome.rendered = True

        try:
            snapshot_ref = await self._store.put(data, key)
            outcome.page_id = await self._repository.create_page_record(project_id, url, snapshot_ref)
        except Exception as e:
            self._log.log_page_dropped(project_id, url, e)
            return outcome
        self._log.log_page_persisted(project_id, outcome.page_id, url)

        try:
            result = await self._engine.analyze(data)
            if isinstance(result, AssessmentParseError):
                self._log.log_analysis_failed(project_id, outcome.page_id, f"unparsable_response: {result.reason}")
                return outcome
            await self._repository.save_analysis(outcome.page_id, result)
            outcome.analyzed = True
        except Exception as e:
            self._log.log_analysis_failed(project_id, outcome.page_id, e)

        return outcome

    async def _write_local(self, key: str, data: bytes) -> str:
        path = Path(self._settings.snapshot_dir) / key
        await asyncio.to_thread(_write_bytes, path, data)
        return str(path)


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
