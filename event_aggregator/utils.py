"""
工具函数模块

统一时间戳的生成、格式化与解析（全部使用 UTC）。
"""

from datetime import datetime, timedelta, timezone

# 固定宽度格式，保证字符串字典序 == 时间顺序
TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    """当前 UTC 时间（带时区）"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """无时区的时间按 UTC 处理，有时区的转换到 UTC"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_ts(dt: datetime) -> str:
    """格式化为存储用的时间戳字符串"""
    return ensure_utc(dt).strftime(TS_FORMAT)


def parse_ts(value: str) -> datetime:
    """解析存储中的时间戳字符串"""
    return datetime.strptime(value, TS_FORMAT).replace(tzinfo=timezone.utc)


def align_to_grid(dt: datetime, period: timedelta) -> datetime:
    """
    将时间向下对齐到以 epoch 为起点、period 为步长的网格

    例如 period=20s 时，10:00:37 -> 10:00:20
    """
    if period <= timedelta(0):
        raise ValueError("period must be positive")
    steps = (ensure_utc(dt) - EPOCH) // period
    return EPOCH + steps * period
