import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from ticketflow.common.exceptions import (
    SchedulerStoppedError,
    TaskAlreadyRunningError,
    TaskExecutionError,
    TaskNotFoundError,
    TaskTimeoutError,
)
from ticketflow.common.result import TaskStatus
from ticketflow.execution.engine import ExecutionEngine
from ticketflow.server.registry import TaskRegistry

from tests.fakes import CountingBody, ExplodingTask, GatedBody, make_task


# --- Fixtures ---
@pytest.fixture
def pools():
    periodic = ThreadPoolExecutor(max_workers=2)
    on_demand = ThreadPoolExecutor(max_workers=2)
    yield periodic, on_demand
    periodic.shutdown(wait=True, cancel_futures=True)
    on_demand.shutdown(wait=True, cancel_futures=True)


@pytest.fixture
def registry():
    return TaskRegistry()


@pytest.fixture
def engine(registry, pools):
    periodic, on_demand = pools
    return ExecutionEngine(registry, periodic, on_demand)


# --- On-demand runs ---

def test_on_demand_run_stores_last_result(engine, registry):
    registry.register(make_task("count", CountingBody("count")))

    result = engine.run_on_demand("count").result(timeout=5)

    assert result.status == TaskStatus.SUCCESS
    assert engine.get_last_result("count") is result


def test_concurrent_on_demand_requests_share_one_execution(engine, registry):
    body = GatedBody("gated")
    registry.register(make_task("gated", body))

    first = engine.run_on_demand("gated")
    assert body.started.wait(5)
    second = engine.run_on_demand("gated")

    assert second is first
    assert engine.is_running("gated")

    body.release.set()
    first.result(timeout=5)
    assert body.calls == 1


def test_on_demand_reject_if_running(engine, registry):
    body = GatedBody("gated")
    registry.register(make_task("gated", body))
    engine.run_on_demand("gated")
    assert body.started.wait(5)

    with pytest.raises(TaskAlreadyRunningError):
        engine.run_on_demand("gated", reject_if_running=True)
    body.release.set()


def test_new_execution_allowed_after_previous_completes(engine, registry):
    body = CountingBody("count")
    registry.register(make_task("count", body))

    first = engine.run_on_demand("count")
    first.result(timeout=5)
    # The done-callback clears the running handle.
    deadline = time.monotonic() + 5
    while engine.is_running("count") and time.monotonic() < deadline:
        time.sleep(0.01)

    second = engine.run_on_demand("count")
    second.result(timeout=5)

    assert second is not first
    assert body.calls == 2


def test_unknown_task_is_reported(engine):
    with pytest.raises(TaskNotFoundError):
        engine.run_on_demand("missing")
    with pytest.raises(TaskNotFoundError):
        engine.run_on_demand_sync("missing", 1)


def test_sync_run_returns_result(engine, registry):
    registry.register(make_task("count", CountingBody("count")))

    result = engine.run_on_demand_sync("count", timeout_seconds=5)

    assert result.status == TaskStatus.SUCCESS


def test_sync_run_times_out_without_cancelling_execution(engine, registry):
    # Holds the worker for up to 5 seconds unless released.
    body = GatedBody("slow", timeout=5)
    registry.register(make_task("slow", body))

    started = time.monotonic()
    with pytest.raises(TaskTimeoutError) as exc_info:
        engine.run_on_demand_sync("slow", timeout_seconds=1)
    elapsed = time.monotonic() - started

    assert 0.9 <= elapsed < 3
    assert exc_info.value.timeout_seconds == 1
    assert engine.is_running("slow")
    body.release.set()


def test_timed_out_execution_still_records_result(engine, registry):
    body = GatedBody("gated")
    registry.register(make_task("gated", body))

    with pytest.raises(TaskTimeoutError):
        engine.run_on_demand_sync("gated", timeout_seconds=0.1)

    body.release.set()
    assert body.finished.wait(5)
    deadline = time.monotonic() + 5
    while engine.get_last_result("gated") is None and time.monotonic() < deadline:
        time.sleep(0.01)
    assert engine.get_last_result("gated").status == TaskStatus.SUCCESS


def test_sync_run_surfaces_execution_failure(engine, registry):
    registry.register(ExplodingTask())

    with pytest.raises(TaskExecutionError, match="execute\\(\\) escaped"):
        engine.run_on_demand_sync("exploding", timeout_seconds=5)


def test_sync_run_of_failing_body_returns_failure_result(engine, registry):
    def failing(started_at):
        raise RuntimeError("broken")

    registry.register(make_task("failing", failing))

    result = engine.run_on_demand_sync("failing", timeout_seconds=5)

    assert result.status == TaskStatus.FAILURE
    assert result.message == "Exception: broken"


# --- Scheduled path ---

def test_run_scheduled_never_raises(engine):
    assert engine.run_scheduled(ExplodingTask()) is None
    assert engine.get_last_result("exploding") is None


def test_scheduled_fire_skipped_while_on_demand_running(engine, registry):
    body = GatedBody("gated")
    task = make_task("gated", body)
    registry.register(task)
    engine.run_on_demand("gated")
    assert body.started.wait(5)

    assert engine.submit_scheduled(task) is None

    body.release.set()
    assert body.finished.wait(5)
    assert body.calls == 1


def test_on_demand_attaches_to_scheduled_execution(engine, registry):
    body = GatedBody("gated")
    task = make_task("gated", body)
    registry.register(task)

    scheduled = engine.submit_scheduled(task)
    assert body.started.wait(5)

    assert engine.run_on_demand("gated") is scheduled
    body.release.set()
    scheduled.result(timeout=5)
    assert body.calls == 1


def test_submit_after_executor_shutdown(engine, registry, pools):
    registry.register(make_task("count", CountingBody("count")))
    for pool in pools:
        pool.shutdown(wait=True)

    with pytest.raises(SchedulerStoppedError):
        engine.run_on_demand("count")
