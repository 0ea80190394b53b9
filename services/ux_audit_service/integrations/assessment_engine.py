"""Visual UX assessment of a page snapshot via the Gemini generateContent API."""
import base64
import json
import math
import re
import time

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from config.logging_config import get_logger, log_external_api_call
from services.ux_audit_service.config import Settings
from services.ux_audit_service.errors import AssessmentEngineError
from services.ux_audit_service.schemas.audit import (
    DIMENSIONS,
    AssessmentParseError,
    Issue,
    PageAssessment,
    Severity,
)

logger = get_logger(__name__)

SEVERITY_PENALTIES = {Severity.CRITICAL: 25, Severity.HIGH: 15, Severity.MEDIUM: 8, Severity.LOW: 3}

ASSESSMENT_PROMPT = """
You are an expert UX/UI auditor. Analyze this webpage screenshot for a professional design audit.

Evaluate the design on these dimensions, each scored from 1 to 100:
1. usability (ease of use, interaction patterns)
2. navigation (menu structure, wayfinding)
3. clarity (readability, content hierarchy, value proposition)
4. accessibility (contrast, text size, spacing, WCAG compliance)
5. aesthetics (visual polish, modern feel, consistency)

For every issue you identify return an object with:
- title: short punchy title
- description: clear explanation of the issue
- severity: Critical | High | Medium | Low
- category: Usability | Navigation | Clarity | Accessibility | Aesthetics
- suggestion: a concrete remediation

Return only valid JSON, without markdown, in this shape:
{
  "scores": {"usability": 0, "navigation": 0, "clarity": 0, "accessibility": 0, "aesthetics": 0},
  "issues": [{"title": "...", "description": "...", "severity": "High", "category": "Usability", "suggestion": "..."}],
  "summary": "A 2-3 sentence executive summary of the page's UX.",
  "positive_highlights": ["2-3 things done well"]
}
""".strip()

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)


def _valid_score(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and 0 < value <= 100
    )


def scores_from_issues(issues: list[Issue]) -> dict[str, float]:
    """Fallback dimension scores when the engine listed issues but gave no usable scores."""
    penalties = {d: 0 for d in DIMENSIONS}
    for issue in issues:
        penalties[issue.category.dimension] += SEVERITY_PENALTIES[issue.severity]
    derived = {d: float(max(0, 100 - p)) for d, p in penalties.items()}
    return {d: v for d, v in derived.items() if v > 0}


def parse_assessment(text: str) -> PageAssessment | AssessmentParseError:
    cleaned = _FENCE_RE.sub("", (text or "").strip())
    try:
        data = json.loads(cleaned)
    except ValueError as e:
        return AssessmentParseError(reason=f"invalid_json: {e}", raw_text=text or "")
    if not isinstance(data, dict):
        return AssessmentParseError(reason="not_an_object", raw_text=text)

    raw_scores = data.get("scores")
    if not isinstance(raw_scores, dict):
        raw_scores = data.get("dimensions") if isinstance(data.get("dimensions"), dict) else {}
    scores = {str(k).strip().lower(): float(v) for k, v in raw_scores.items() if _valid_score(v)}

    issues: list[Issue] = []
    raw_issues = data.get("issues")
    for item in raw_issues if isinstance(raw_issues, list) else []:
        try:
            issues.append(Issue.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Dropping malformed issue: {e.error_count()} errors")

    if not scores and issues:
        scores = scores_from_issues(issues)

    summary = data.get("summary")
    highlights = data.get("positive_highlights")
    return PageAssessment(
        scores=scores,
        issues=issues,
        summary=summary if isinstance(summary, str) else "",
        positive_highlights=[h for h in highlights if isinstance(h, str)] if isinstance(highlights, list) else [],
    )


def _response_text(body: dict) -> str | None:
    for candidate in body.get("candidates") or []:
        parts = ((candidate or {}).get("content") or {}).get("parts") or []
        texts = [p.get("text") for p in parts if isinstance(p, dict) and p.get("text")]
        if texts:
            return "".join(texts)
    return None


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, AssessmentEngineError) and exc.transient


class GeminiAssessmentEngine:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout_s: float = 60.0,
        retry_attempts: int = 2,
        retry_backoff_s: float = 1.0,
    ):
        self.api_key = api_key
        self.model = model.removeprefix("models/")
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.retry_attempts = retry_attempts
        self.retry_backoff_s = retry_backoff_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiAssessmentEngine":
        return cls(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout_s=settings.engine_timeout_s,
            retry_attempts=settings.engine_retry_attempts,
            retry_backoff_s=settings.engine_retry_backoff_s,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def build_payload(self, snapshot: bytes) -> dict:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": ASSESSMENT_PROMPT},
                        {"inline_data": {"mime_type": "image/png", "data": base64.b64encode(snapshot).decode("ascii")}},
                    ],
                }
            ],
            "generationConfig": {"responseMimeType": "application/json"},
        }

    async def analyze(self, snapshot: bytes) -> PageAssessment | AssessmentParseError:
        if not self.api_key:
            raise AssessmentEngineError("gemini_api_key_missing")
        payload = self.build_payload(snapshot)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff_s, max=10),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                body = await self._generate(payload)

        text = _response_text(body)
        if text is None:
            block = (body.get("promptFeedback") or {}).get("blockReason")
            return AssessmentParseError(reason=f"no_candidates{': ' + block if block else ''}", raw_text=json.dumps(body)[:2000])
        return parse_assessment(text)

    async def _generate(self, payload: dict) -> dict:
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                r = await client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log_external_api_call(logger, "gemini", self.model, time.monotonic() - started, None, error=e)
            raise AssessmentEngineError(f"gemini_transport_error: {e}") from e

        if r.status_code >= 400:
            err = AssessmentEngineError(f"gemini_http_{r.status_code}", status_code=r.status_code)
            log_external_api_call(logger, "gemini", self.model, time.monotonic() - started, r.status_code, error=err)
            raise err
        log_external_api_call(logger, "gemini", self.model, time.monotonic() - started, r.status_code)

        try:
            body = r.json()
        except ValueError as e:
            raise AssessmentEngineError(f"gemini_invalid_body: {e}", status_code=r.status_code) from e
        if not isinstance(body, dict):
            raise AssessmentEngineError("gemini_invalid_body", status_code=r.status_code)
        return body
