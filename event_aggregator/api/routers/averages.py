"""
均值 API

提供已保存的窗口均值查询。
"""

from datetime import datetime, timedelta
from itertools import islice
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...exceptions import ReadFailure
from ...models import AVERAGE_TABLE, AverageListResponse, AverageResponse
from ...store import TimeSeriesStore
from ...utils import ensure_utc, utcnow
from ..dependencies import get_store

router = APIRouter(tags=["averages"])


@router.get("/api/averages/{category}", response_model=AverageListResponse)
async def get_averages(
    category: str,
    from_ts: Optional[datetime] = Query(None, alias="from", description="开始时间（ISO 8601，不含）"),
    to_ts: Optional[datetime] = Query(None, alias="to", description="结束时间（ISO 8601，含）"),
    limit: int = Query(100, ge=1, le=10000, description="返回条数上限"),
    store: TimeSeriesStore = Depends(get_store)
):
    """
    查询均值历史

    默认返回最近一天内的记录，按时间倒序。
    """
    try:
        # 无时区的参数按 UTC 处理
        if to_ts is not None:
            to_ts = ensure_utc(to_ts)
        if from_ts is not None:
            from_ts = ensure_utc(from_ts)
        else:
            from_ts = (to_ts or utcnow()) - timedelta(days=1)
    except OverflowError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Time range is out of range"
        )

    if to_ts is not None and to_ts <= from_ts:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'to' must be later than 'from'"
        )

    try:
        rows = store.range_query(AVERAGE_TABLE, category, from_ts, to_ts)
        data = [AverageResponse.from_record(r) for r in islice(rows, limit)]
    except ReadFailure as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e)
        )

    return AverageListResponse(category=category, data=data)
