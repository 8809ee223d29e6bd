"""InMemoryStore 实现"""

import threading
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import WriteFailure
from .models import AVERAGE_TABLE, EVENT_TABLE, AverageRecord, EventRecord
from .store import Record, TimeSeriesStore
from .utils import ensure_utc


def _record_time(record: Record) -> datetime:
    if isinstance(record, EventRecord):
        return record.start_time
    return record.computed_at


def _clustering_sorted(rows: List[Record]) -> List[Record]:
    # 时间倒序；同一时间按 id 升序（与 SQLite 的 TEXT 排序一致）
    rows = sorted(rows, key=lambda r: str(r.id) if isinstance(r, EventRecord) else "")
    return sorted(rows, key=_record_time, reverse=True)


class InMemoryStore(TimeSeriesStore):
    """测试用内存存储，可被多个工作线程同时访问。"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # (table, category) -> {clustering key: record}
        self._partitions: Dict[Tuple[str, str], Dict[tuple, Record]] = {}

    def append(self, record: Record) -> None:
        if isinstance(record, EventRecord):
            table = EVENT_TABLE
            key: tuple = (record.start_time, record.id)
        elif isinstance(record, AverageRecord):
            table = AVERAGE_TABLE
            key = (record.computed_at,)
        else:
            raise TypeError(f"Unsupported record type: {type(record).__name__}")

        with self._lock:
            partition = self._partitions.setdefault((table, record.category), {})
            if table == EVENT_TABLE and key in partition:
                raise WriteFailure(
                    f"Duplicate event key for '{record.category}': {key}",
                    table=table,
                    category=record.category,
                )
            partition[key] = record

    def _matching(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime],
    ) -> List[Record]:
        if table not in (EVENT_TABLE, AVERAGE_TABLE):
            raise ValueError(f"Unknown table: {table}")
        lower = ensure_utc(lower_bound)
        upper = ensure_utc(upper_bound) if upper_bound is not None else None

        with self._lock:
            rows = list(self._partitions.get((table, category), {}).values())

        return [
            r for r in rows
            if _record_time(r) > lower and (upper is None or _record_time(r) <= upper)
        ]

    def range_query(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime] = None,
    ) -> Iterator[Record]:
        rows = self._matching(table, category, lower_bound, upper_bound)
        return iter(_clustering_sorted(rows))

    def range_query_mean(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime] = None,
    ) -> Optional[float]:
        values = [r.value for r in self._matching(table, category, lower_bound, upper_bound)]
        if not values:
            return None
        return sum(values) / len(values)
