"""
时序存储抽象

写入方与聚合方只依赖这里定义的接口，不关心底层是 SQLite 还是内存。
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterator, Optional, Union

from .models import AverageRecord, EventRecord

Record = Union[EventRecord, AverageRecord]


class TimeSeriesStore(ABC):
    """按分区键 + 聚簇键组织的只追加存储"""

    @abstractmethod
    def append(self, record: Record) -> None:
        """
        追加一条记录，表由记录类型决定

        Raises:
            WriteFailure: 连接、序列化错误或主键冲突
        """

    @abstractmethod
    def range_query(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime] = None,
    ) -> Iterator[Record]:
        """
        范围查询：lower_bound < t [<= upper_bound]

        按时间倒序（同一时间按 id 升序）惰性返回记录，无匹配时返回空迭代器。

        Raises:
            ReadFailure: 连接或查询错误
        """

    @abstractmethod
    def range_query_mean(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime] = None,
    ) -> Optional[float]:
        """
        范围内 value 的算术平均值

        Returns:
            均值；没有匹配行时返回 None

        Raises:
            ReadFailure: 连接或查询错误
        """
