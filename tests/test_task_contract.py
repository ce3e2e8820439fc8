import pytest
from datetime import datetime, timedelta, UTC
from pydantic import ValidationError

from ticketflow.common.result import TaskResult, TaskStatus
from ticketflow.common.task import Task, TaskCategory, TaskConfig, execute_task

from tests.fakes import CountingBody, make_task


# --- Helper bodies ---
def failing_body(started_at):
    raise ValueError("boom")


def wrong_return_body(started_at):
    return {"status": "SUCCESS"}


# --- Task contract ---

def test_execute_returns_body_result():
    body = CountingBody("counter")
    task = make_task("counter", body)

    result = task.execute()

    assert result.status == TaskStatus.SUCCESS
    assert result.task_id == "counter"
    assert body.calls == 1


def test_execute_converts_body_exception_to_failure():
    task = make_task("failing", failing_body)

    result = execute_task(task)

    assert result.status == TaskStatus.FAILURE
    assert result.message == "Exception: boom"
    assert result.started_at <= result.ended_at
    assert result.duration_ms >= 0


def test_execute_rejects_non_result_return_value():
    result = make_task("bad-return", wrong_return_body).execute()

    assert result.status == TaskStatus.FAILURE
    assert "did not return a result" in result.message


def test_disabled_task_is_skipped_without_calling_body():
    body = CountingBody("disabled")
    task = make_task("disabled", body, enabled=False)

    result = task.execute()

    assert result.status == TaskStatus.SKIPPED
    assert result.message == "Task is disabled"
    assert body.calls == 0


@pytest.mark.parametrize("enabled", [True, False])
@pytest.mark.parametrize("body", [CountingBody("any"), failing_body, wrong_return_body])
def test_execute_is_total(enabled, body):
    task = make_task("any", body, enabled=enabled)

    result = task.execute()

    assert isinstance(result, TaskResult)
    assert isinstance(result.status, TaskStatus)
    assert result.started_at <= result.ended_at


def test_task_defaults_without_config():
    task = make_task("defaults", CountingBody("defaults"))

    assert task.config is None
    assert task.enabled is True
    assert task.interval_minutes == 60
    assert task.initial_delay_minutes == 1


def test_task_reads_schedule_from_config():
    task = make_task("configured", CountingBody("configured"), interval_minutes=5, initial_delay_minutes=0)

    assert task.interval_minutes == 5
    assert task.initial_delay_minutes == 0


def test_task_requires_id_and_category():
    with pytest.raises(ValueError):
        Task(task_id="  ", task_name="blank", category=TaskCategory.SYNC, body=failing_body)
    with pytest.raises(ValueError):
        Task(task_id="x", task_name="x", category="SYNC", body=failing_body)


def test_task_config_is_immutable_and_validated():
    config = TaskConfig(interval_minutes=10)
    with pytest.raises(ValidationError):
        config.interval_minutes = 20
    with pytest.raises(ValidationError):
        TaskConfig(interval_minutes=0)
    with pytest.raises(ValidationError):
        TaskConfig(unknown_field=True)


# --- TaskResult ---

def test_result_duration_is_derived():
    start = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
    result = TaskResult.success("t", start, "done", ended_at=start + timedelta(seconds=2, milliseconds=5))

    assert result.duration_ms == 2005


def test_result_rejects_end_before_start():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    with pytest.raises(ValueError):
        TaskResult("t", TaskStatus.SUCCESS, start, start - timedelta(seconds=1))


def test_result_factory_clamps_backwards_clock():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    result = TaskResult.failure("t", start, ended_at=start - timedelta(seconds=1))

    assert result.ended_at == start
    assert result.duration_ms == 0


def test_result_metadata_is_read_only():
    metadata = {"count": 1}
    result = TaskResult.success("t", datetime.now(UTC), metadata=metadata)
    metadata["count"] = 2

    assert result.metadata["count"] == 1
    with pytest.raises(TypeError):
        result.metadata["count"] = 3


def test_result_serialize_data():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    data = TaskResult.skipped("t", start, "skipped", {"k": "v"}, ended_at=start).serialize_data()

    assert data == {
        "taskId": "t",
        "status": "SKIPPED",
        "message": "skipped",
        "startTime": start.isoformat(),
        "endTime": start.isoformat(),
        "durationMs": 0,
        "metadata": {"k": "v"},
    }
