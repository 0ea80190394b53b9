from services.ux_audit_service.pipeline.aggregator import ScoreAggregator, aggregate_scores, page_overall, round_half_up
from services.ux_audit_service.pipeline.lifecycle import ProjectLifecycle
from services.ux_audit_service.pipeline.orchestrator import AuditRunner
from services.ux_audit_service.pipeline.page_processor import PageOutcome, PageProcessor

__all__ = [
    "AuditRunner",
    "PageOutcome",
    "PageProcessor",
    "ProjectLifecycle",
    "ScoreAggregator",
    "aggregate_scores",
    "page_overall",
    "round_half_up",
]
