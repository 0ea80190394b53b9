import math
from typing import Iterable, Mapping

from config.logging_config import AuditLogger
from services.ux_audit_service.schemas.audit import DIMENSIONS, AggregateResult


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _usable(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def page_overall(scores: Mapping | None) -> int | None:
    """Mean of every numeric value the page reported, whatever the dimension set."""
    if not scores:
        return None
    values = [v for v in scores.values() if _usable(v)]
    if not values:
        return None
    return round_half_up(sum(values) / len(values))


def aggregate_scores(score_maps: Iterable[Mapping | None], dimensions: Iterable[str] = DIMENSIONS) -> AggregateResult:
    dimensions = tuple(dimensions)
    overalls: list[int] = []
    totals = {d: 0.0 for d in dimensions}
    counts = {d: 0 for d in dimensions}

    for scores in score_maps:
        overall = page_overall(scores)
        if overall is None:
            continue
        overalls.append(overall)
        for d in dimensions:
            v = scores.get(d)
            if _usable(v):
                totals[d] += v
                counts[d] += 1

    project_overall = round_half_up(sum(overalls) / len(overalls)) if overalls else 0
    # dimensions nobody reported are zero-filled here only, never per page
    breakdown = {d: round_half_up(totals[d] / counts[d]) if counts[d] else 0 for d in dimensions}
    return AggregateResult(overall=project_overall, breakdown=breakdown, pages_scored=len(overalls))


class ScoreAggregator:
    """Full recompute of a project's score from its persisted page analyses."""

    def __init__(self, repository, dimensions: Iterable[str] = DIMENSIONS, audit_logger: AuditLogger | None = None):
        self._repository = repository
        self._dimensions = tuple(dimensions)
        self._log = audit_logger or AuditLogger()

    async def aggregate(self, project_id: str) -> AggregateResult:
        pages = await self._repository.read_pages_with_analyses(project_id)
        result = aggregate_scores((p.scores for p in pages), self._dimensions)
        await self._repository.update_project_result(project_id, overall=result.overall, breakdown=result.breakdown)
        self._log.log_scores_aggregated(project_id, result.overall, result.breakdown, result.pages_scored, len(pages))
        return result
