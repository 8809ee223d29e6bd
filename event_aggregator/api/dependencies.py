"""
依赖注入模块

提供 FastAPI 依赖项。
"""

from .. import database
from ..store import TimeSeriesStore


async def get_store() -> TimeSeriesStore:
    """获取存储实例"""
    return database.get_store()
