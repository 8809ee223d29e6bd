"""
事件写入任务

每个 tick 生成一条事件并追加到存储；写入失败只记录日志，不重试。
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from .exceptions import WriteFailure
from .models import EventRecord
from .samplers import Sampler, uniform_sampler
from .store import TimeSeriesStore
from .utils import format_ts, utcnow

logger = logging.getLogger(__name__)


class EventWriter:
    """按固定类型写入观测事件"""

    def __init__(
        self,
        store: TimeSeriesStore,
        category: str,
        sampler: Optional[Sampler] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.category = category
        self.sampler = sampler or uniform_sampler()
        self.clock = clock

    def tick(self) -> Optional[EventRecord]:
        """
        写入一条事件

        Returns:
            写入成功的记录；失败时返回 None
        """
        record = EventRecord(
            category=self.category,
            start_time=self.clock(),
            id=uuid.uuid4(),
            value=self.sampler(),
        )

        try:
            self.store.append(record)
        except WriteFailure as e:
            logger.error(
                f"Failed to append event {record.id} for '{self.category}' "
                f"at {format_ts(record.start_time)}: {e}"
            )
            return None

        logger.debug(f"Event created: {self.category}={record.value:.3f}")
        return record
