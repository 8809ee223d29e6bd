"""
采样器

采样器是无参可调用对象，每次调用返回一个观测值。
"""

import random
from typing import Callable

import psutil

Sampler = Callable[[], float]


def uniform_sampler(low: float = 0.0, high: float = 1000.0) -> Sampler:
    """均匀分布 [low, high)"""
    span = high - low

    def sample() -> float:
        return low + random.random() * span

    return sample


def cpu_sampler() -> Sampler:
    """
    系统 CPU 使用率（0~100）

    psutil 的首次非阻塞调用总是返回 0.0，这里先预热一次，
    之后每次返回距上次调用期间的使用率。
    """
    psutil.cpu_percent(interval=None)

    def sample() -> float:
        return float(psutil.cpu_percent(interval=None))

    return sample


def get_sampler(name: str, low: float = 0.0, high: float = 1000.0) -> Sampler:
    """按名称创建采样器"""
    if name == "uniform":
        return uniform_sampler(low, high)
    if name == "cpu":
        return cpu_sampler()
    raise ValueError(f"Unknown sampler: {name}")
