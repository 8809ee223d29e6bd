"""
SQLite 时序存储

两张 WITHOUT ROWID 表，主键即 分区键 + 聚簇键，
因此“某类型最近 N 秒”是一次主键范围扫描，而不是全表扫描。
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple
from uuid import UUID

from .config import get_config
from .exceptions import ReadFailure, WriteFailure
from .memory import InMemoryStore
from .models import AVERAGE_TABLE, EVENT_TABLE, AverageRecord, EventRecord
from .store import Record, TimeSeriesStore
from .utils import format_ts, parse_ts

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS event (
    type TEXT NOT NULL,
    start_time TEXT NOT NULL,
    id TEXT NOT NULL,
    value REAL NOT NULL,
    PRIMARY KEY (type, start_time DESC, id ASC)
) WITHOUT ROWID;

CREATE TABLE IF NOT EXISTS average (
    type TEXT NOT NULL,
    time TEXT NOT NULL,
    value REAL NOT NULL,
    PRIMARY KEY (type, time DESC)
) WITHOUT ROWID;
"""

# 表名 -> (时间列, 查询列, 聚簇顺序)
_TABLES = {
    EVENT_TABLE: ("start_time", "type, start_time, id, value", "start_time DESC, id ASC"),
    AVERAGE_TABLE: ("time", "type, time, value", "time DESC"),
}


def _row_to_record(table: str, row: sqlite3.Row) -> Record:
    if table == EVENT_TABLE:
        return EventRecord(
            category=row["type"],
            start_time=parse_ts(row["start_time"]),
            id=UUID(row["id"]),
            value=row["value"],
        )
    return AverageRecord(
        category=row["type"],
        computed_at=parse_ts(row["time"]),
        value=row["value"],
    )


class Database(TimeSeriesStore):
    """SQLite 存储实现（每次调用使用独立连接，可跨线程使用）"""

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[float] = None):
        """
        初始化数据库

        Args:
            db_path: 数据库文件路径，不指定则从配置加载
            timeout: 等待写锁的超时时间（秒）
        """
        if db_path is None or timeout is None:
            config = get_config()
            db_path = db_path or config.database.path
            timeout = timeout if timeout is not None else config.database.timeout

        self.db_path = Path(db_path)
        self.timeout = timeout

        # 确保目录存在
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    @contextmanager
    def get_conn(self):
        """
        获取数据库连接（上下文管理器）

        使用方式：
            with db.get_conn() as conn:
                cursor = conn.execute("SELECT ...")
        """
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self):
        """建表（幂等），并开启 WAL 以便读写并发"""
        with self.get_conn() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)

    # =========================================================================
    # 写入
    # =========================================================================

    def append(self, record: Record) -> None:
        if isinstance(record, EventRecord):
            table = EVENT_TABLE
            sql = "INSERT INTO event (type, start_time, id, value) VALUES (?, ?, ?, ?)"
            params: Tuple[Any, ...] = (
                record.category, format_ts(record.start_time), str(record.id), record.value
            )
        elif isinstance(record, AverageRecord):
            # 相同 (type, time) 后写覆盖
            table = AVERAGE_TABLE
            sql = "INSERT OR REPLACE INTO average (type, time, value) VALUES (?, ?, ?)"
            params = (record.category, format_ts(record.computed_at), record.value)
        else:
            raise TypeError(f"Unsupported record type: {type(record).__name__}")

        try:
            with self.get_conn() as conn:
                conn.execute(sql, params)
        except sqlite3.Error as e:
            raise WriteFailure(
                f"Failed to write {table} record for '{record.category}': {e}",
                table=table,
                category=record.category,
            ) from e

    # =========================================================================
    # 查询
    # =========================================================================

    def _range_clause(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime],
    ) -> Tuple[str, List[Any]]:
        if table not in _TABLES:
            raise ValueError(f"Unknown table: {table}")
        time_col = _TABLES[table][0]
        where = f"type = ? AND {time_col} > ?"
        params: List[Any] = [category, format_ts(lower_bound)]
        if upper_bound is not None:
            where += f" AND {time_col} <= ?"
            params.append(format_ts(upper_bound))
        return where, params

    def range_query(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime] = None,
    ) -> Iterator[Record]:
        where, params = self._range_clause(table, category, lower_bound, upper_bound)
        _, columns, order = _TABLES[table]
        sql = f"SELECT {columns} FROM {table} WHERE {where} ORDER BY {order}"
        return self._iter_records(table, category, sql, params)

    def _iter_records(self, table: str, category: str, sql: str, params: List[Any]) -> Iterator[Record]:
        try:
            with self.get_conn() as conn:
                for row in conn.execute(sql, params):
                    yield _row_to_record(table, row)
        except sqlite3.Error as e:
            raise ReadFailure(
                f"Failed to read {table} rows for '{category}': {e}",
                table=table,
                category=category,
            ) from e

    def range_query_mean(
        self,
        table: str,
        category: str,
        lower_bound: datetime,
        upper_bound: Optional[datetime] = None,
    ) -> Optional[float]:
        where, params = self._range_clause(table, category, lower_bound, upper_bound)
        sql = f"SELECT AVG(value) AS mean, COUNT(*) AS n FROM {table} WHERE {where}"

        try:
            with self.get_conn() as conn:
                row = conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise ReadFailure(
                f"Failed to average {table} rows for '{category}': {e}",
                table=table,
                category=category,
            ) from e

        if row is None or row["n"] == 0:
            return None
        return float(row["mean"])


# 全局数据库实例（延迟加载）
_db: Optional[Database] = None


def get_db() -> Database:
    """获取全局数据库实例"""
    global _db
    if _db is None:
        _db = Database()
        logger.info(f"Database initialized: {_db.db_path}")
    return _db


_store: Optional[TimeSeriesStore] = None


def get_store() -> TimeSeriesStore:
    """
    按 database.backend 获取全局存储实例

    memory 后端不落盘，进程退出后数据丢失。
    """
    global _store
    if _store is None:
        if get_config().database.backend == "memory":
            _store = InMemoryStore()
            logger.warning("Using in-memory store, data will not survive a restart")
        else:
            _store = get_db()
    return _store


def reset_db():
    """重置数据库与存储实例（主要用于测试）"""
    global _db, _store
    _db = None
    _store = None
