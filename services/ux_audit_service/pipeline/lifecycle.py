from config.logging_config import AuditLogger
from services.ux_audit_service.errors import InvalidTransitionError
from services.ux_audit_service.schemas.audit import STATUS_STEPS, ProjectStatus

DEFAULT_MESSAGES = {
    ProjectStatus.QUEUED: "Waiting to start...",
    ProjectStatus.CRAWLING: "Starting crawler...",
    ProjectStatus.ANALYZING: "Analyzing UX issues...",
    ProjectStatus.COMPILING: "Compiling insights...",
    ProjectStatus.GENERATING_REPORT: "Generating report...",
    ProjectStatus.COMPLETED: "Audit completed.",
    ProjectStatus.FAILED: "Audit failed.",
    ProjectStatus.ERROR: "Audit failed.",
}


class ProjectLifecycle:
    """Sole writer of a project's status, step and progress label for one run.

    Transitions move forward only. Once a terminal state is reached every
    further call is a no-op.
    """

    def __init__(
        self,
        repository,
        project_id: str,
        status: ProjectStatus = ProjectStatus.QUEUED,
        audit_logger: AuditLogger | None = None,
    ):
        self._repository = repository
        self.project_id = project_id
        self.status = status
        self.step = STATUS_STEPS.get(status, 0)
        self.message = DEFAULT_MESSAGES[status]
        self._log = audit_logger or AuditLogger()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    async def transition(self, status: ProjectStatus, message: str | None = None) -> bool:
        if self.is_terminal:
            self._log.log_transition_ignored(self.project_id, self.status.value, status.value)
            return False
        if status in (ProjectStatus.FAILED, ProjectStatus.ERROR):
            return await self.fail(message or DEFAULT_MESSAGES[status], status=status)

        step = STATUS_STEPS[status]
        if step < self.step:
            raise InvalidTransitionError(f"{self.status.value} -> {status.value}")

        await self._write(status, step, message or DEFAULT_MESSAGES[status])
        return True

    async def report_progress(self, message: str) -> bool:
        if self.is_terminal:
            return False
        await self._write(self.status, self.step, message)
        return True

    async def fail(self, message: str, status: ProjectStatus = ProjectStatus.FAILED) -> bool:
        if status not in (ProjectStatus.FAILED, ProjectStatus.ERROR):
            raise InvalidTransitionError(f"{status.value} is not a failure state")
        if self.is_terminal:
            self._log.log_transition_ignored(self.project_id, self.status.value, status.value)
            return False
        await self._write(status, self.step, message)
        return True

    async def _write(self, status: ProjectStatus, step: int, message: str) -> None:
        await self._repository.update_project_status(self.project_id, status=status, step=step, message=message)
        self.status = status
        self.step = step
        self.message = message
        self._log.log_status_transition(self.project_id, status.value, step, message)
