class UxAuditError(Exception):
    """Base class for errors raised by the audit pipeline."""


class RendererError(UxAuditError):
    """A page could not be navigated, rendered or rasterized."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class SnapshotStoreError(UxAuditError):
    pass


class AssessmentEngineError(UxAuditError):
    """Transport or HTTP level failure talking to the assessment engine."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def transient(self) -> bool:
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class InvalidTransitionError(UxAuditError):
    pass


class NoPagesCrawledError(UxAuditError):
    pass


class ProjectNotFoundError(UxAuditError):
    def __init__(self, project_id: str):
        super().__init__(f"project_not_found: {project_id}")
        self.project_id = project_id
