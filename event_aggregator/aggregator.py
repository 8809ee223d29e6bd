"""
窗口均值聚合任务

每个 tick 读取最近 window 内的事件，计算均值并写入 average 表。

窗口对齐：
- align_windows=True：窗口终点对齐到以 interval 为步长的固定网格，
  相邻两次窗口首尾相接，不受触发时刻抖动影响
- align_windows=False：窗口为 (now - window, +inf)，均值时间为 now
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from .exceptions import ReadFailure, WriteFailure
from .models import EVENT_TABLE, AverageRecord
from .store import TimeSeriesStore
from .utils import align_to_grid, format_ts, utcnow

logger = logging.getLogger(__name__)


class AverageAggregator:
    """计算并保存某一类型事件的滑动窗口均值"""

    def __init__(
        self,
        store: TimeSeriesStore,
        category: str,
        window: timedelta = timedelta(seconds=20),
        interval: Optional[timedelta] = None,
        align_windows: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.category = category
        self.window = window
        self.interval = interval or window
        self.align_windows = align_windows
        self.clock = clock
        # 对齐模式下最后处理过的窗口终点
        self._last_end: Optional[datetime] = None

    def window_bounds(self, now: datetime) -> Tuple[datetime, Optional[datetime]]:
        """
        计算 now 所在的窗口边界

        Returns:
            (下界（不含）, 上界（含），未对齐时为 None)
        """
        if not self.align_windows:
            return now - self.window, None
        end = align_to_grid(now, self.interval)
        return end - self.window, end

    def pending_window_ends(self, now: datetime) -> List[datetime]:
        """
        对齐模式下本次需要计算的窗口终点

        从上一次处理的终点起，逐个网格点补齐到 now 所在的终点，
        触发时刻跨过网格点时不会漏算窗口；终点未前进时返回空列表。
        """
        end = align_to_grid(now, self.interval)
        if self._last_end is None:
            return [end]
        ends = []
        next_end = self._last_end + self.interval
        while next_end <= end:
            ends.append(next_end)
            next_end += self.interval
        return ends

    def _aggregate_window(
        self,
        lower: datetime,
        upper: Optional[datetime],
        computed_at: datetime,
    ) -> Optional[AverageRecord]:
        """计算并写入一个窗口的均值；空窗口返回 None，存储错误向上抛出"""
        mean = self.store.range_query_mean(EVENT_TABLE, self.category, lower, upper)
        if mean is None:
            logger.info(
                f"No events for '{self.category}' in window "
                f"{_describe(lower, upper)}, skipping"
            )
            return None

        record = AverageRecord(category=self.category, computed_at=computed_at, value=mean)
        self.store.append(record)
        logger.info(f"Average value for '{self.category}' is {mean:.3f}")
        return record

    def tick(self, now: Optional[datetime] = None) -> Optional[AverageRecord]:
        """
        执行一次聚合

        对齐模式下会补算自上次以来所有完整的网格窗口；
        某个窗口读写失败时放弃本次剩余窗口，之后也不再重试。

        Args:
            now: 当前时间，默认取时钟

        Returns:
            最后写入的均值记录；空窗口或失败时返回 None
        """
        if now is None:
            now = self.clock()

        if not self.align_windows:
            lower = now - self.window
            try:
                return self._aggregate_window(lower, None, now)
            except (ReadFailure, WriteFailure) as e:
                logger.error(
                    f"Failed to aggregate window {_describe(lower, None)} "
                    f"for '{self.category}': {e}"
                )
                return None

        ends = self.pending_window_ends(now)
        if not ends:
            logger.debug(
                f"Window ending {format_ts(self._last_end)} for '{self.category}' "
                f"already aggregated, skipping"
            )
            return None

        latest = None
        try:
            for end in ends:
                record = self._aggregate_window(end - self.window, end, end)
                if record is not None:
                    latest = record
        except (ReadFailure, WriteFailure) as e:
            logger.error(
                f"Failed to aggregate window ending {format_ts(end)} "
                f"for '{self.category}': {e}"
            )
        finally:
            self._last_end = ends[-1]
        return latest


def _describe(lower: datetime, upper: Optional[datetime]) -> str:
    return f"({format_ts(lower)}, {format_ts(upper) if upper else 'now'}]"
