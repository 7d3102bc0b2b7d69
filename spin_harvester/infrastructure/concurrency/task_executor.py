# spin_harvester/infrastructure/concurrency/task_executor.py
import asyncio
import logging
from enum import Enum, auto
from typing import List, Callable, Awaitable, TypeVar, Any, Optional

T = TypeVar("T")


class ExecutionMode(Enum):
    SEQUENTIAL = auto()
    CONCURRENT = auto()


class TaskExecutor:
    """
    Runs coroutine factories with a bounded number in flight.

    Admission blocks on a semaphore until a slot frees; results come back
    in submission order. A failing task never cancels its siblings: its
    exception is returned in place of the result.
    """
    def __init__(self, mode: ExecutionMode = ExecutionMode.CONCURRENT, max_workers: Optional[int] = None):
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.mode = mode
        self.max_workers = 1 if mode == ExecutionMode.SEQUENTIAL else max_workers
        self.logger = logging.getLogger("infrastructure.task_executor")

    async def execute(self, tasks: List[Callable[[], Awaitable[T]]]) -> List[Any]:
        return await self.execute_with_progress(tasks)

    async def execute_with_progress(self, tasks: List[Callable[[], Awaitable[T]]],
                                    progress_callback: Callable[[int, int], Any] = None) -> List[Any]:
        task_count = len(tasks)
        limit = self.max_workers or task_count or 1
        self.logger.info(f"Executing {task_count} tasks in {self.mode.name} mode (limit {limit})")

        semaphore = asyncio.Semaphore(limit)
        completed = 0

        async def run(task: Callable[[], Awaitable[T]]) -> Any:
            nonlocal completed
            async with semaphore:
                try:
                    return await task()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.logger.error(f"Task failed: {type(e).__name__}: {e}")
                    return e
                finally:
                    completed += 1
                    if progress_callback:
                        progress_callback(completed, task_count)

        return await asyncio.gather(*(run(task) for task in tasks))
