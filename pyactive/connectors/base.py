"""
Pyactive 连接器抽象

定义 ORM 核心与底层数据库之间的边界：
- Connection：执行语句、转义字面值、返回自增主键、检查列是否存在
- QueryHandle：可变的底层查询状态，负责把片段编译为 SQL
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple


class Connection(ABC):
    """
    数据库连接抽象基类

    ORM 核心只通过该接口访问数据库，不关心连接池、事务与方言。
    """

    # 连接器名称，子类必须覆盖
    DB_TYPE: str = ''

    # 参数占位符
    PLACEHOLDER: str = '?'

    def table(self, name: str) -> 'QueryHandle':
        """
        绑定表并返回新的查询句柄

        Args:
            name: 表名

        Returns:
            QueryHandle 实例
        """
        return QueryHandle(self, name)

    @abstractmethod
    def execute(self, sql: str, bindings: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """
        执行查询语句，按顺序返回列字典

        Args:
            sql: SQL 语句
            bindings: 绑定参数

        Returns:
            行字典列表
        """
        pass

    @abstractmethod
    def run(self, sql: str, bindings: Sequence[Any] = ()) -> int:
        """
        执行写语句（INSERT/UPDATE/DELETE/DDL）

        Returns:
            受影响的行数
        """
        pass

    @abstractmethod
    def escape(self, value: Any) -> str:
        """将标量转义为可直接嵌入 SQL 的字面值"""
        pass

    @abstractmethod
    def insert_id(self) -> Optional[Any]:
        """返回最近一次 INSERT 生成的主键（无则返回 None）"""
        pass

    @abstractmethod
    def field_exists(self, field: str, table: str) -> bool:
        """检查表中是否存在指定列"""
        pass

    def close(self) -> None:
        """关闭连接"""
        pass

    def __enter__(self) -> 'Connection':
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class QueryHandle:
    """
    底层查询句柄

    保存一次查询链的全部可变状态。WHERE 片段由上层 Builder 预先转义后传入，
    INSERT/UPDATE 的值使用驱动绑定参数。
    """

    def __init__(self, connection: Connection, table: str):
        self.connection = connection
        self.table = table
        self.columns: List[str] = []
        self.joins: List[str] = []
        self.wheres: List[str] = []
        self.groups: List[str] = []
        self.orders: List[str] = []
        self.limit_value: Optional[int] = None
        self.offset_value: Optional[int] = None

    # ========== 状态构建 ==========

    def select(self, *columns: str) -> 'QueryHandle':
        """追加查询列"""
        for column in columns:
            if column and column not in self.columns:
                self.columns.append(column)
        return self

    def from_(self, table: str) -> 'QueryHandle':
        self.table = table
        return self

    def join(
        self,
        table: str,
        condition: Optional[str] = None,
        join_type: str = 'inner',
        using: Optional[str] = None
    ) -> 'QueryHandle':
        """
        添加 JOIN

        Args:
            table: 关联表名
            condition: ON 条件（已编译）
            join_type: inner / left / right
            using: 无 ON 条件时使用的 USING 列
        """
        clause = f"{join_type.upper()} JOIN {table}"
        if condition:
            clause += f" ON {condition}"
        elif using:
            clause += f" USING ({using})"
        self.joins.append(clause)
        return self

    def _push(self, conjunction: str, fragment: str) -> None:
        # 分组开头或首个条件不需要连接词
        if not self.wheres or self.wheres[-1].endswith('('):
            self.wheres.append(fragment)
        else:
            self.wheres.append(f"{conjunction} {fragment}")

    def where(self, fragment: str) -> 'QueryHandle':
        self._push('AND', fragment)
        return self

    def or_where(self, fragment: str) -> 'QueryHandle':
        self._push('OR', fragment)
        return self

    def group_start(self) -> 'QueryHandle':
        self._push('AND', '(')
        return self

    def or_group_start(self) -> 'QueryHandle':
        self._push('OR', '(')
        return self

    def group_end(self) -> 'QueryHandle':
        if self.wheres and self.wheres[-1].endswith('('):
            # 空分组
            self.wheres.pop()
        else:
            self.wheres.append(')')
        return self

    def group_by(self, field: str) -> 'QueryHandle':
        self.groups.append(field)
        return self

    def order_by(self, field: str, direction: str = 'ASC') -> 'QueryHandle':
        direction = direction.upper()
        if direction not in ('ASC', 'DESC'):
            raise ValueError(f"Invalid order direction: '{direction}'")
        self.orders.append(f"{field} {direction}")
        return self

    def limit(self, value: Optional[int], offset: Optional[int] = None) -> 'QueryHandle':
        self.limit_value = value
        if offset is not None:
            self.offset_value = offset
        return self

    def offset(self, value: int) -> 'QueryHandle':
        self.offset_value = value
        return self

    # ========== 编译 ==========

    def compile_where(self) -> str:
        if not self.wheres:
            return ''
        # '(' 之后与 ')' 之前不加空格，得到 "(a OR b)" 形式
        parts: List[str] = []
        for token in self.wheres:
            if parts and not parts[-1].endswith('(') and token != ')':
                parts.append(' ')
            parts.append(token)
        return f" WHERE {''.join(parts)}"

    def compile_select(self, columns: Sequence[str] = ()) -> str:
        """
        编译 SELECT 语句

        Args:
            columns: 临时覆盖的查询列

        Returns:
            SQL 字符串
        """
        select_list = ', '.join(columns or self.columns) or '*'
        sql = f"SELECT {select_list} FROM {self.table}"
        if self.joins:
            sql += ' ' + ' '.join(self.joins)
        sql += self.compile_where()
        if self.groups:
            sql += ' GROUP BY ' + ', '.join(self.groups)
        if self.orders:
            sql += ' ORDER BY ' + ', '.join(self.orders)
        if self.limit_value is not None:
            sql += f" LIMIT {int(self.limit_value)}"
            if self.offset_value:
                sql += f" OFFSET {int(self.offset_value)}"
        elif self.offset_value:
            # SQLite 的 OFFSET 必须跟随 LIMIT
            sql += f" LIMIT -1 OFFSET {int(self.offset_value)}"
        return sql

    def compile_insert(self, data: Dict[str, Any]) -> Tuple[str, List[Any]]:
        keys = list(data.keys())
        placeholders = ', '.join(self.connection.PLACEHOLDER for _ in keys)
        sql = f"INSERT INTO {self.table} ({', '.join(keys)}) VALUES ({placeholders})"
        return sql, [data[k] for k in keys]

    def compile_update(self, data: Dict[str, Any]) -> Tuple[str, List[Any]]:
        assignments = ', '.join(f"{k} = {self.connection.PLACEHOLDER}" for k in data)
        sql = f"UPDATE {self.table} SET {assignments}" + self.compile_where()
        return sql, list(data.values())

    def compile_delete(self) -> str:
        return f"DELETE FROM {self.table}" + self.compile_where()

    # ========== 执行 ==========

    def get(self, columns: Sequence[str] = ()) -> List[Dict[str, Any]]:
        return self.connection.execute(self.compile_select(columns))

    def get_row(self, columns: Sequence[str] = ()) -> Optional[Dict[str, Any]]:
        rows = self.get(columns)
        return rows[0] if rows else None

    def insert(self, data: Dict[str, Any]) -> int:
        sql, bindings = self.compile_insert(data)
        return self.connection.run(sql, bindings)

    def update(self, data: Dict[str, Any]) -> int:
        sql, bindings = self.compile_update(data)
        return self.connection.run(sql, bindings)

    def delete(self) -> int:
        return self.connection.run(self.compile_delete())

    def clone(self) -> 'QueryHandle':
        """复制查询状态（共享连接，不共享可变列表）"""
        handle = QueryHandle(self.connection, self.table)
        handle.columns = list(self.columns)
        handle.joins = list(self.joins)
        handle.wheres = list(self.wheres)
        handle.groups = list(self.groups)
        handle.orders = list(self.orders)
        handle.limit_value = self.limit_value
        handle.offset_value = self.offset_value
        return handle

    __copy__ = clone

    def __repr__(self) -> str:
        return f"QueryHandle({self.compile_select()!r})"
