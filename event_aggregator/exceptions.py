"""
存储层异常定义

WriteFailure / ReadFailure 都视为瞬时错误：调用方记录日志后放弃本次 tick。
"""

from typing import Optional


class StoreError(Exception):
    """存储层错误基类"""

    def __init__(self, message: str, table: Optional[str] = None, category: Optional[str] = None):
        self.table = table
        self.category = category
        super().__init__(message)


class WriteFailure(StoreError):
    """写入失败（连接、序列化或主键冲突）"""


class ReadFailure(StoreError):
    """读取失败（连接或查询错误）"""
