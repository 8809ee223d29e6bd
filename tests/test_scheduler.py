"""
单元测试：周期任务调度器

测试覆盖：
- 按间隔重复触发
- 同一任务不重叠执行（跳过触发）
- 任务异常不影响后续触发
- 写入失败后下一次写入 tick 正常
"""

import asyncio
import sys
import threading
import time
from datetime import timedelta
from pathlib import Path

import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from event_aggregator.exceptions import WriteFailure
from event_aggregator.memory import InMemoryStore
from event_aggregator.models import EVENT_TABLE
from event_aggregator.scheduler import PeriodicTask, Scheduler
from event_aggregator.utils import utcnow
from event_aggregator.writer import EventWriter


def run_for(scheduler: Scheduler, seconds: float):
    """运行调度器指定时长后取消"""

    async def _runner():
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(seconds)
        runner.cancel()
        try:
            await runner
        except asyncio.CancelledError:
            pass

    asyncio.run(_runner())


class Counter:
    """线程安全计数器，记录最大并发数"""

    def __init__(self, duration=0.0, fail_first=0):
        self.duration = duration
        self.fail_first = fail_first
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.calls += 1
            call_no = self.calls
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.duration:
                time.sleep(self.duration)
            if call_no <= self.fail_first:
                raise RuntimeError("boom")
        finally:
            with self._lock:
                self.active -= 1


class TestScheduler:
    """调度器测试"""

    def test_fires_repeatedly(self):
        counter = Counter()
        scheduler = Scheduler()
        task = scheduler.add_task("counter", 0.02, counter)

        run_for(scheduler, 0.2)

        assert counter.calls >= 3
        assert task.failures == 0

    def test_no_self_overlap(self):
        """测试：上一次未结束时跳过触发，最大并发为 1"""
        counter = Counter(duration=0.1)
        scheduler = Scheduler()
        task = scheduler.add_task("slow", 0.02, counter)

        run_for(scheduler, 0.35)

        assert counter.max_active == 1
        assert task.skipped > 0
        assert counter.calls >= 2

    def test_exception_does_not_stop_task(self):
        """测试：任务异常只记录日志，后续触发照常执行"""
        counter = Counter(fail_first=1)
        scheduler = Scheduler()
        task = scheduler.add_task("flaky", 0.02, counter)

        run_for(scheduler, 0.2)

        assert task.failures == 1
        assert counter.calls >= 3

    def test_tasks_run_independently(self):
        """测试：慢任务不阻塞其他任务"""
        slow = Counter(duration=0.15)
        fast = Counter()
        scheduler = Scheduler()
        scheduler.add_task("slow", 0.02, slow)
        scheduler.add_task("fast", 0.02, fast)

        run_for(scheduler, 0.2)

        assert fast.calls >= 4
        assert slow.max_active == 1

    def test_failed_write_then_fresh_record(self):
        """测试：一次写入失败不影响下一次调度的写入"""

        class FailOnce(InMemoryStore):
            failed = False

            def append(self, record):
                if not self.failed:
                    self.failed = True
                    raise WriteFailure("store unreachable", table=EVENT_TABLE)
                super().append(record)

        store = FailOnce()
        writer = EventWriter(store, "load")
        scheduler = Scheduler()
        scheduler.add_task("event-writer", 0.02, writer.tick)

        started = utcnow()
        run_for(scheduler, 0.2)

        rows = list(store.range_query(EVENT_TABLE, "load", started - timedelta(minutes=1)))
        assert store.failed
        assert len(rows) >= 2

    def test_empty_scheduler_returns(self):
        asyncio.run(Scheduler().run())

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
