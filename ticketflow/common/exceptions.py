# ticketflow/common/exceptions.py
from typing import Optional


class TicketFlowException(Exception):
    """Base exception for the TicketFlow library."""

    pass


class TaskNotFoundError(TicketFlowException):
    """Raised when an operation references a task id that was never registered."""

    def __init__(self, task_id: str, message: Optional[str] = None):
        super().__init__(message or f"Task not found: {task_id}")
        self.task_id = task_id

    @classmethod
    def no_result(cls, task_id: str) -> "TaskNotFoundError":
        return cls(task_id, f"No execution result available for task: {task_id}")

    @classmethod
    def no_schedule(cls, task_id: str) -> "TaskNotFoundError":
        return cls(task_id, f"No active schedule found for task: {task_id}")


class DuplicateTaskError(TicketFlowException):
    """Raised when a task id is registered twice without ``replace=True``."""

    def __init__(self, task_id: str):
        super().__init__(f"Task already registered: {task_id}")
        self.task_id = task_id


class TaskAlreadyRunningError(TicketFlowException):
    """Raised only for callers that ask to be told about an in-flight execution."""

    def __init__(self, task_id: str):
        super().__init__(f"Task is already running: {task_id}")
        self.task_id = task_id


class TaskTimeoutError(TicketFlowException):
    """The caller's deadline elapsed. The execution itself keeps running."""

    def __init__(self, task_id: str, timeout_seconds: float):
        super().__init__(
            f"Task execution timed out after {timeout_seconds:g} seconds: {task_id}"
        )
        self.task_id = task_id
        self.timeout_seconds = timeout_seconds


class TaskExecutionError(TicketFlowException):
    """The execution behind an on-demand handle raised or was cancelled."""

    def __init__(self, task_id: str, reason: str):
        super().__init__(f"Task execution failed: {reason}")
        self.task_id = task_id
        self.reason = reason


class SchedulerStoppedError(TicketFlowException):
    """Raised when work is submitted after the scheduler has been shut down."""

    pass


class IssueTrackerError(TicketFlowException):
    """Network, timeout or HTTP failure talking to the issue tracker."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WikiError(TicketFlowException):
    """Network, timeout or HTTP failure talking to the wiki."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StartupValidationError(TicketFlowException):
    """Raised when the issue tracker fails the startup checks."""

    pass


class InvalidRequestError(TicketFlowException):
    """A request to the HTTP facade is missing or has malformed input."""

    pass


class ServiceNotConfiguredError(TicketFlowException):
    """The request needs a collaborator (e.g. the wiki) that is not configured."""

    pass
