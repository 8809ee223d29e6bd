"""
事件 API

查询最近窗口内的原始事件及即时均值。
"""

from datetime import timedelta
from itertools import islice

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...exceptions import ReadFailure
from ...models import EVENT_TABLE, EventListResponse, EventResponse, WindowMeanResponse
from ...store import TimeSeriesStore
from ...utils import format_ts, utcnow
from ..dependencies import get_store

router = APIRouter(tags=["events"])

# 查询窗口上限：一年
MAX_WINDOW_SECONDS = 365 * 24 * 3600


@router.get("/api/events/{category}", response_model=EventListResponse)
async def get_recent_events(
    category: str,
    seconds: float = Query(20, gt=0, le=MAX_WINDOW_SECONDS, description="窗口长度（秒）"),
    limit: int = Query(500, ge=1, le=10000, description="返回条数上限"),
    store: TimeSeriesStore = Depends(get_store)
):
    """
    获取最近 seconds 秒内的事件

    按时间倒序返回。
    """
    window_start = utcnow() - timedelta(seconds=seconds)

    try:
        rows = store.range_query(EVENT_TABLE, category, window_start)
        data = [EventResponse.from_record(r) for r in islice(rows, limit)]
    except ReadFailure as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e)
        )

    return EventListResponse(
        category=category,
        window_start=format_ts(window_start),
        data=data
    )


@router.get("/api/events/{category}/mean", response_model=WindowMeanResponse)
async def get_window_mean(
    category: str,
    seconds: float = Query(20, gt=0, le=MAX_WINDOW_SECONDS, description="窗口长度（秒）"),
    store: TimeSeriesStore = Depends(get_store)
):
    """即时计算最近 seconds 秒的均值（不写入存储）"""
    window_start = utcnow() - timedelta(seconds=seconds)

    try:
        mean = store.range_query_mean(EVENT_TABLE, category, window_start)
    except ReadFailure as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e)
        )

    return WindowMeanResponse(
        category=category,
        window_start=format_ts(window_start),
        mean=mean
    )
