# ticketflow/common/result.py
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


class TaskStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class TaskResult:
    """
    The outcome of a single task execution.

    Results are immutable. ``duration_ms`` is derived from the two timestamps and
    cannot be passed in. Use the ``success``/``failure``/``skipped`` factories rather
    than the constructor; they stamp ``ended_at`` and never produce an end time that
    precedes the start time.
    """

    task_id: str
    status: TaskStatus
    started_at: datetime
    ended_at: datetime
    message: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)
    duration_ms: int = field(init=False)

    def __post_init__(self):
        if not self.task_id:
            raise ValueError("TaskResult requires a task_id")
        if not isinstance(self.status, TaskStatus):
            raise ValueError(f"Invalid task status: {self.status!r}")
        if self.started_at is None or self.ended_at is None:
            raise ValueError("TaskResult requires both started_at and ended_at")
        if self.ended_at < self.started_at:
            raise ValueError("ended_at must not precede started_at")

        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))
        object.__setattr__(
            self,
            "duration_ms",
            (self.ended_at - self.started_at) // timedelta(milliseconds=1),
        )

    @classmethod
    def _build(
        cls,
        status: TaskStatus,
        task_id: str,
        started_at: datetime,
        message: str,
        metadata: Optional[Mapping[str, Any]],
        ended_at: Optional[datetime],
    ) -> "TaskResult":
        ended_at = ended_at or datetime.now(UTC)
        # Wall clock may step backwards between the two readings.
        if ended_at < started_at:
            ended_at = started_at
        return cls(
            task_id=task_id,
            status=status,
            started_at=started_at,
            ended_at=ended_at,
            message=message,
            metadata=metadata or {},
        )

    @classmethod
    def success(
        cls,
        task_id: str,
        started_at: datetime,
        message: str = "",
        metadata: Optional[Mapping[str, Any]] = None,
        ended_at: Optional[datetime] = None,
    ) -> "TaskResult":
        return cls._build(TaskStatus.SUCCESS, task_id, started_at, message, metadata, ended_at)

    @classmethod
    def failure(
        cls,
        task_id: str,
        started_at: datetime,
        message: str = "",
        metadata: Optional[Mapping[str, Any]] = None,
        ended_at: Optional[datetime] = None,
    ) -> "TaskResult":
        return cls._build(TaskStatus.FAILURE, task_id, started_at, message, metadata, ended_at)

    @classmethod
    def skipped(
        cls,
        task_id: str,
        started_at: datetime,
        message: str = "",
        metadata: Optional[Mapping[str, Any]] = None,
        ended_at: Optional[datetime] = None,
    ) -> "TaskResult":
        return cls._build(TaskStatus.SKIPPED, task_id, started_at, message, metadata, ended_at)

    def serialize_data(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "status": self.status.value,
            "message": self.message,
            "startTime": self.started_at.isoformat(),
            "endTime": self.ended_at.isoformat(),
            "durationMs": self.duration_ms,
            "metadata": dict(self.metadata),
        }
