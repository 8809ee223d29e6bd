"""
周期任务调度器

每个任务按固定频率触发，同步函数在工作线程中执行：
- 同一任务上一次执行未结束时，本次触发直接跳过
- 任务抛出的异常只记录日志，不影响后续触发
- 事件循环落后整数个周期时，跳过错过的触发点而不是集中补发
"""

import asyncio
import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """周期任务状态"""

    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.runs = 0
        self.failures = 0
        self.skipped = 0
        self._current: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._current is not None and not self._current.done()

    async def invoke(self):
        """执行一次任务（在线程中运行同步函数）"""
        try:
            await asyncio.to_thread(self.func)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(f"Task {self.name} failed: {e}", exc_info=True)
        finally:
            self.runs += 1

    def fire(self) -> bool:
        """
        触发一次执行

        Returns:
            是否真正启动（上一次未结束时返回 False）
        """
        if self.running:
            self.skipped += 1
            logger.warning(f"Task {self.name} still running, skipping this firing")
            return False
        self._current = asyncio.create_task(self.invoke(), name=f"periodic:{self.name}")
        return True

    def cancel(self):
        if self.running:
            self._current.cancel()


class Scheduler:
    """进程内的周期任务调度器"""

    def __init__(self):
        self.tasks: List[PeriodicTask] = []

    def add_task(self, name: str, interval: float, func: Callable[[], object]) -> PeriodicTask:
        """注册周期任务（interval 单位：秒）"""
        task = PeriodicTask(name, interval, func)
        self.tasks.append(task)
        return task

    async def _run_task(self, task: PeriodicTask):
        loop = asyncio.get_running_loop()
        next_fire = loop.time()

        logger.info(f"Starting task {task.name} (interval={task.interval}s)")

        try:
            while True:
                delay = next_fire - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)

                task.fire()

                next_fire += task.interval
                now = loop.time()
                if next_fire <= now:
                    missed = int((now - next_fire) // task.interval) + 1
                    next_fire += missed * task.interval
                    logger.warning(f"Task {task.name} fell behind, skipped {missed} firing(s)")
        except asyncio.CancelledError:
            logger.info(f"Task {task.name} cancelled")
            task.cancel()
            raise

    async def run(self):
        """运行所有任务，直到被取消"""
        if not self.tasks:
            logger.warning("Scheduler started with no tasks")
            return
        await asyncio.gather(*(self._run_task(task) for task in self.tasks))
