"""
单元测试：事件写入与采样器
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from event_aggregator.exceptions import WriteFailure
from event_aggregator.memory import InMemoryStore
from event_aggregator.models import EVENT_TABLE
from event_aggregator.samplers import cpu_sampler, get_sampler, uniform_sampler
from event_aggregator.writer import EventWriter

T = datetime(2026, 1, 20, 10, 0, 0, tzinfo=timezone.utc)


class FlakyStore(InMemoryStore):
    """前 fail_times 次写入失败"""

    def __init__(self, fail_times=1):
        super().__init__()
        self.fail_times = fail_times
        self.attempts = 0

    def append(self, record):
        self.attempts += 1
        if self.attempts <= self.fail_times:
            raise WriteFailure("connection refused", table=EVENT_TABLE, category=record.category)
        super().append(record)


def all_events(store, category="load"):
    return list(store.range_query(EVENT_TABLE, category, T - timedelta(days=1)))


class TestEventWriter:
    """事件写入测试"""

    def test_tick_appends_one_event(self):
        store = InMemoryStore()
        writer = EventWriter(store, "load", sampler=lambda: 42.0, clock=lambda: T)

        record = writer.tick()

        assert record.category == "load"
        assert record.start_time == T
        assert record.value == 42.0
        assert all_events(store) == [record]

    def test_same_timestamp_distinct_rows(self):
        """测试：同一时钟读数的多次写入通过 id 区分为不同行"""
        store = InMemoryStore()
        writer = EventWriter(store, "load", sampler=lambda: 1.0, clock=lambda: T)

        first = writer.tick()
        second = writer.tick()

        assert first.id != second.id
        assert len(all_events(store)) == 2

    def test_failed_append_does_not_block_next_tick(self):
        """测试：写入失败后下一次 tick 正常写入新记录"""
        store = FlakyStore(fail_times=1)
        writer = EventWriter(store, "load", sampler=lambda: 5.0, clock=lambda: T)

        assert writer.tick() is None
        record = writer.tick()

        assert record is not None
        assert all_events(store) == [record]

    def test_default_sampler_is_uniform(self):
        store = InMemoryStore()
        writer = EventWriter(store, "load", clock=lambda: T)

        for _ in range(50):
            record = writer.tick()
            assert 0.0 <= record.value < 1000.0


class TestSamplers:
    """采样器测试"""

    def test_uniform_range(self):
        sample = uniform_sampler(10.0, 20.0)
        values = [sample() for _ in range(200)]

        assert all(10.0 <= v < 20.0 for v in values)

    def test_cpu_sampler_percent(self):
        sample = cpu_sampler()

        assert 0.0 <= sample() <= 100.0

    def test_get_sampler_by_name(self):
        assert 0.0 <= get_sampler("uniform", 0.0, 1.0)() < 1.0
        assert 0.0 <= get_sampler("cpu")() <= 100.0

    def test_unknown_sampler(self):
        with pytest.raises(ValueError):
            get_sampler("thermometer")


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
