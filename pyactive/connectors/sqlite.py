"""
Pyactive SQLite 连接器

基于标准库 sqlite3 的参考连接实现
"""

import logging
import sqlite3
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from .base import Connection
from ..common.exceptions import DatabaseError
from ..common.options import SqliteConnectorOptions, get_default_connector_options

logger = logging.getLogger(__name__)


class SqliteConnection(Connection):
    """SQLite 数据库连接"""

    DB_TYPE = 'sqlite'

    def __init__(self, database: str = ':memory:', options: Optional[SqliteConnectorOptions] = None):
        """
        初始化 SQLite 连接

        Args:
            database: 数据库文件路径，默认为内存数据库
            options: SQLite 连接器配置选项
        """
        self.database = database
        self.options = options or get_default_connector_options(self.DB_TYPE)
        self._last_insert_id: Optional[int] = None

        kwargs: Dict[str, Any] = {
            'check_same_thread': self.options.check_same_thread,
            'isolation_level': self.options.isolation_level,
        }
        if self.options.timeout is not None:
            kwargs['timeout'] = self.options.timeout

        try:
            self.conn: Optional[sqlite3.Connection] = sqlite3.connect(database, **kwargs)
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to connect to SQLite database '{database}': {e}") from e

        self.conn.row_factory = sqlite3.Row
        if self.options.foreign_keys:
            self.conn.execute('PRAGMA foreign_keys = ON')

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise DatabaseError("SQLite connection is closed")
        return self.conn

    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """执行查询并返回行字典列表"""
        logger.debug("sqlite query: %s %s", sql, list(bindings))
        try:
            cursor = self._connection().execute(sql, tuple(bindings))
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise DatabaseError(f"{e} [SQL: {sql}]") from e

    def run(self, sql: str, bindings: Sequence[Any] = ()) -> int:
        """执行写语句，INSERT 时记录 lastrowid"""
        logger.debug("sqlite statement: %s %s", sql, list(bindings))
        try:
            cursor = self._connection().execute(sql, tuple(bindings))
        except sqlite3.Error as e:
            raise DatabaseError(f"{e} [SQL: {sql}]") from e

        if sql.lstrip().upper().startswith('INSERT'):
            self._last_insert_id = cursor.lastrowid
        return cursor.rowcount

    def executescript(self, script: str) -> None:
        """批量执行 DDL 脚本"""
        try:
            self._connection().executescript(script)
        except sqlite3.Error as e:
            raise DatabaseError(str(e)) from e

    def escape(self, value: Any) -> str:
        """
        将 Python 值转义为 SQLite 字面值

        Args:
            value: 待转义的值

        Returns:
            SQL 字面值字符串
        """
        if value is None:
            return 'NULL'
        if isinstance(value, bool):
            return '1' if value else '0'
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        if isinstance(value, bytes):
            return f"X'{value.hex()}'"
        if isinstance(value, datetime):
            value = value.isoformat(sep=' ')
        elif isinstance(value, (date, time)):
            value = value.isoformat()
        text = str(value).replace("'", "''")
        return f"'{text}'"

    def insert_id(self) -> Optional[int]:
        return self._last_insert_id

    def field_exists(self, field: str, table: str) -> bool:
        """通过 PRAGMA table_info 检查列是否存在"""
        rows = self.execute(f"PRAGMA table_info({table})")
        return any(row['name'] == field for row in rows)

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __repr__(self) -> str:
        return f"SqliteConnection(database={self.database!r})"
