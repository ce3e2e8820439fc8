# main.py
import time
from datetime import datetime

from ticketflow import Scheduler, Task, TaskCategory, TaskConfig, TaskResult
from ticketflow.log import configure_logging
from ticketflow.server.lifecycle import LifecycleController


def count_open_items(started_at: datetime) -> TaskResult:
    print(f"Counting open items (run started at {started_at:%H:%M:%S})")
    return TaskResult.success("count-open-items", started_at, "Counted 3 items", {"count": 3})


if __name__ == "__main__":
    configure_logging()

    # 1. Register a task on a scheduler
    scheduler = Scheduler()
    scheduler.register_task(
        Task(
            task_id="count-open-items",
            task_name="Count open items",
            category=TaskCategory.REPORTING,
            body=count_open_items,
            config=TaskConfig(interval_minutes=5, initial_delay_minutes=1),
        )
    )

    # 2. Start the timers
    lifecycle = LifecycleController(scheduler, grace_seconds=5)
    lifecycle.start()

    # 3. Run it once on demand and wait for the result
    result = scheduler.run_task_sync("count-open-items", timeout_seconds=10)
    print(f"\nOn-demand result: {result.serialize_data()}")

    # 4. Look it up again the way the API does
    time.sleep(0.1)
    print(f"Last result status: {scheduler.get_last_result('count-open-items').status.value}")

    lifecycle.stop()
    print("\nDemonstration finished.")
