"""
数据模型定义

包括：
- 存储记录（EventRecord / AverageRecord），构造后不可变
- Pydantic 响应模型（用于 API）
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import ensure_utc, format_ts

# 表名
EVENT_TABLE = "event"
AVERAGE_TABLE = "average"


# =============================================================================
# 存储记录
# =============================================================================

class EventRecord(BaseModel):
    """
    单条观测事件

    主键：(category, start_time DESC, id ASC)
    category 为分区键，start_time + id 为聚簇键；
    id 用于区分同一时间戳下的多条记录。
    """
    model_config = ConfigDict(frozen=True)

    category: str
    start_time: datetime
    id: UUID
    value: float

    @field_validator("start_time")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class AverageRecord(BaseModel):
    """
    一次窗口均值计算结果

    主键：(category, computed_at DESC)，相同主键后写覆盖先写。
    """
    model_config = ConfigDict(frozen=True)

    category: str
    computed_at: datetime
    value: float

    @field_validator("computed_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


# =============================================================================
# Pydantic 响应模型（用于 API）
# =============================================================================

class EventResponse(BaseModel):
    """事件响应模型"""
    category: str
    start_time: str
    id: str
    value: float

    @classmethod
    def from_record(cls, record: EventRecord) -> "EventResponse":
        return cls(
            category=record.category,
            start_time=format_ts(record.start_time),
            id=str(record.id),
            value=record.value,
        )


class EventListResponse(BaseModel):
    """最近窗口内的事件列表"""
    category: str
    window_start: str
    data: List[EventResponse] = Field(default_factory=list)


class WindowMeanResponse(BaseModel):
    """即时窗口均值（空窗口时 mean 为 None）"""
    category: str
    window_start: str
    mean: Optional[float] = None


class AverageResponse(BaseModel):
    """均值记录响应模型"""
    category: str
    computed_at: str
    value: float

    @classmethod
    def from_record(cls, record: AverageRecord) -> "AverageResponse":
        return cls(
            category=record.category,
            computed_at=format_ts(record.computed_at),
            value=record.value,
        )


class AverageListResponse(BaseModel):
    """均值历史响应"""
    category: str
    data: List[AverageResponse] = Field(default_factory=list)
