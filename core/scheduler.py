import asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from typing import Callable, Coroutine, Any

class MaintenanceScheduler:
    """Runs housekeeping coroutines on the event loop, off the request path."""

    def __init__(self):
        self.scheduler = AsyncIOScheduler()

    def add_interval_job(
        self,
        func: Callable[..., Coroutine[Any, Any, Any]],
        seconds: float,
        job_id: str,
        *args: Any
    ) -> None:
        """Registers *func* to run every *seconds*; a still-running job is never doubled up."""
        trigger = IntervalTrigger(seconds=seconds)
        self.scheduler.add_job(
            func,
            trigger,
            args=args,
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def start(self) -> None:
        """Starts the scheduler on the running event loop."""
        if not self.scheduler.running:
            self.scheduler.start()

    async def shutdown(self) -> None:
        """Stops the scheduler without waiting for in-flight jobs."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # AsyncIOScheduler queues the stop on the loop; let it run before returning.
            await asyncio.sleep(0)
