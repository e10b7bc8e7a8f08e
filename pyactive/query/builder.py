"""
Pyactive 查询构建器

Builder 绑定一个模型实例与一个底层 QueryHandle，负责：
- 把 where / join / order 等意图转义后写入 QueryHandle
- 在终结读取与聚合之前施加软删除过滤
- 把结果行实例化为模型记录，并传递预加载请求

所有构建方法都返回 Builder 本身，支持链式调用：
    posts = Post.query().where('user_id', 1).order_by('id', 'desc').limit(10).get()
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union, TYPE_CHECKING

from ..common.exceptions import DatabaseError, ModelError, RecordNotFoundError
from ..core.collection import Collection
from ..core.eager import EagerLoadPlanner

if TYPE_CHECKING:
    from ..connectors.base import Connection, QueryHandle
    from ..core.orm import Model

logger = logging.getLogger(__name__)


# 软删除模式
TRASHED_EXCLUDE = 'exclude'
TRASHED_WITH = 'with'
TRASHED_ONLY = 'only'

# 比较运算符（join 时用于区分 "key, value" 与 "key, operator, value"）
OPERATORS = frozenset({
    '=', '!=', '<>', '<', '>', '<=', '>=',
    'LIKE', 'NOT LIKE', 'IN', 'NOT IN', 'IS', 'IS NOT',
})


class _Missing:
    """未传参占位"""

    def __repr__(self) -> str:
        return '<missing>'


_MISSING: Any = _Missing()


def _is_callback(value: Any) -> bool:
    # 类型本身（如 int）不视为回调
    return callable(value) and not isinstance(value, (str, type))


class Builder:
    """
    模型查询构建器

    一个 Builder 对应一条查询链，不能在多个逻辑查询之间共享；
    需要分叉时使用 clone()。
    """

    def __init__(self, connection: 'Connection', model: 'Model'):
        """
        Args:
            connection: 数据库连接
            model: 所属模型实例（create/update 作用于该实例）
        """
        self.connection = connection
        self.model = model
        self.table = model.get_table()
        self._handle: 'QueryHandle' = connection.table(self.table)
        self._escape_value = True
        self._trashed = TRASHED_EXCLUDE
        self._soft_delete_applied = False
        self._eager: Dict[str, Any] = {}

    # ========== WHERE ==========

    def where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> 'Builder':
        """
        添加 AND 条件

        用法：
            where('name', 'Alice')           # name = 'Alice'
            where('age', '>', 18)            # age > 18
            where('id', 'IN', lambda q: q.select('user_id'))   # 子查询
            where(lambda q: q.where('a', 1).or_where('b', 2))  # 分组
            where('score > 10')              # 原样片段

        Args:
            column: 列名、原样片段或分组回调
            operator: 运算符；只给两个参数时作为值，运算符默认为 '='
            value: 值或子查询回调

        Returns:
            Builder 本身
        """
        return self._add_where('AND', column, operator, value)

    def or_where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> 'Builder':
        """添加 OR 条件，参数同 where()"""
        return self._add_where('OR', column, operator, value)

    def _add_where(self, conjunction: str, column: Any, operator: Any, value: Any) -> 'Builder':
        if _is_callback(column):
            return self._group(conjunction, column)

        if operator is _MISSING:
            self._push(conjunction, str(column))
            return self

        if value is _MISSING:
            operator, value = '=', operator

        if _is_callback(value):
            literal = self._sub_query(value)
        else:
            literal = self._compile_value(value)
        self._push(conjunction, f"{column} {operator} {literal}")
        return self

    def _push(self, conjunction: str, fragment: str) -> None:
        if conjunction == 'OR':
            self._handle.or_where(fragment)
        else:
            self._handle.where(fragment)

    def _group(self, conjunction: str, callback: Callable[['Builder'], Any]) -> 'Builder':
        if conjunction == 'OR':
            self._handle.or_group_start()
        else:
            self._handle.group_start()
        callback(self)
        self._handle.group_end()
        return self

    def new_sub_query(self) -> 'Builder':
        """返回目标模型的全新 Builder（用于子查询）"""
        return Builder(self.connection, self.model.new_instance())

    def _sub_query(self, callback: Callable[['Builder'], Any]) -> str:
        """
        编译子查询

        回调接收一个全新的同类 Builder，可以返回它或返回 None；
        编译得到的 SELECT 加括号后作为值原样嵌入，该值不再转义。
        """
        previous = self._escape_value
        self._escape_value = False
        try:
            sub = self.new_sub_query()
            result = callback(sub)
            if not isinstance(result, Builder):
                result = sub
            return self._compile_value(f"({result.to_sql()})")
        finally:
            self._escape_value = previous

    def _compile_value(self, value: Any) -> str:
        if not self._escape_value:
            return str(value)
        if isinstance(value, (list, tuple, set, frozenset)):
            return '(' + ', '.join(self.connection.escape(item) for item in value) + ')'
        return self.connection.escape(value)

    def where_in(self, column: str, values: Any = None) -> 'Builder':
        """
        添加 IN 条件

        空集合会被替换为 [0]，生成合法且恒不成立的 IN (0)。
        values 也可以是子查询回调。
        """
        return self._add_where_in('AND', column, values, 'IN')

    def or_where_in(self, column: str, values: Any = None) -> 'Builder':
        return self._add_where_in('OR', column, values, 'IN')

    def where_not_in(self, column: str, values: Any = None) -> 'Builder':
        return self._add_where_in('AND', column, values, 'NOT IN')

    def or_where_not_in(self, column: str, values: Any = None) -> 'Builder':
        return self._add_where_in('OR', column, values, 'NOT IN')

    def _add_where_in(self, conjunction: str, column: str, values: Any, operator: str) -> 'Builder':
        if _is_callback(values):
            literal = self._sub_query(values)
        else:
            if values is None or isinstance(values, (str, bytes)):
                values = [] if values is None else [values]
            values = list(values) or [0]
            literal = self._compile_value(values)
        self._push(conjunction, f"{column} {operator} {literal}")
        return self

    def where_null(self, column: str) -> 'Builder':
        self._push('AND', f"{column} IS NULL")
        return self

    def where_not_null(self, column: str) -> 'Builder':
        self._push('AND', f"{column} IS NOT NULL")
        return self

    def where_raw(self, sql: str) -> 'Builder':
        """添加原样 SQL 片段（不转义）"""
        self._push('AND', sql)
        return self

    # ========== JOIN / SELECT / ORDER ==========

    def join(
        self,
        table: Any,
        key: str,
        operator: Optional[str] = None,
        value: Optional[str] = None,
        join_type: str = 'inner'
    ) -> 'Builder':
        """
        添加 JOIN

        用法：
            join('roles_users', 'roles.id', '=', 'roles_users.role_id')
            join(Country, 'countries.id', 'users.country_id')   # 运算符默认 '='
            join('profiles', 'user_id')                          # USING (user_id)

        Args:
            table: 表名，或模型类/实例（取其表名）
            key: 左侧列，或 USING 列
            operator: 运算符
            value: 右侧列（作为列引用，不转义）
            join_type: inner / left / right
        """
        if hasattr(table, 'get_table'):
            table = table.get_table()

        if value is None and operator is not None and operator.upper() not in OPERATORS:
            operator, value = '=', operator

        if value is None:
            self._handle.join(table, join_type=join_type, using=key)
        else:
            self._handle.join(table, f"{key} {operator} {value}", join_type=join_type)
        return self

    def left_join(self, table: Any, key: str, operator: Optional[str] = None, value: Optional[str] = None) -> 'Builder':
        return self.join(table, key, operator, value, join_type='left')

    def right_join(self, table: Any, key: str, operator: Optional[str] = None, value: Optional[str] = None) -> 'Builder':
        return self.join(table, key, operator, value, join_type='right')

    def select(self, *columns: Union[str, Sequence[str]]) -> 'Builder':
        for column in columns:
            if isinstance(column, (list, tuple)):
                self._handle.select(*column)
            else:
                self._handle.select(column)
        return self

    def from_(self, table: Any) -> 'Builder':
        """切换 FROM 表（模型的表名不变）"""
        if hasattr(table, 'get_table'):
            table = table.get_table()
        self._handle.from_(table)
        return self

    def order_by(self, column: str, direction: str = 'ASC') -> 'Builder':
        self._handle.order_by(column, direction)
        return self

    def group_by(self, *columns: str) -> 'Builder':
        for column in columns:
            self._handle.group_by(column)
        return self

    def limit(self, value: Optional[int], offset: Optional[int] = None) -> 'Builder':
        self._handle.limit(value, offset)
        return self

    def offset(self, value: int) -> 'Builder':
        self._handle.offset(value)
        return self

    skip = offset
    take = limit

    # ========== 软删除 ==========

    def with_trashed(self) -> 'Builder':
        """包含已软删除的行"""
        self._trashed = TRASHED_WITH
        return self

    def only_trashed(self) -> 'Builder':
        """只返回已软删除的行"""
        self._trashed = TRASHED_ONLY
        return self

    def _apply_soft_delete(self) -> None:
        if self._soft_delete_applied:
            return
        self._soft_delete_applied = True

        if self._trashed == TRASHED_WITH:
            return

        delete_key = self.model.get_delete_key()
        if not self.connection.field_exists(delete_key, self.table):
            return

        column = f"{self.table}.{delete_key}"
        logger.debug("soft delete filter on %s (%s)", column, self._trashed)
        if self._trashed == TRASHED_ONLY:
            self.where_not_null(column)
        else:
            self.where_null(column)

    # ========== 预加载 ==========

    def with_(self, *relations: Any, **named: Any) -> 'Builder':
        """
        请求预加载关联

        用法：
            with_('author', 'comments.user')
            with_({'comments': lambda post: post.relation('comments').where('approved', 1)})
            with_(score=lambda post: 10)     # 计算字段
            with_(source='import')           # 静态字段
        """
        self._eager.update(EagerLoadPlanner.parse(*relations, **named))
        return self

    def get_eager_loads(self) -> Dict[str, Any]:
        return self._eager

    # ========== 读取 ==========

    def get(self, columns: Optional[Sequence[str]] = None) -> Collection:
        """执行查询并实例化全部结果"""
        self._apply_soft_delete()
        rows = self._handle.get(columns or ())
        return self._hydrate(rows)

    def all(self, columns: Optional[Sequence[str]] = None) -> Collection:
        return self.get(columns)

    def first(self, columns: Optional[Sequence[str]] = None) -> Optional['Model']:
        """取第一条记录，没有时返回 None"""
        self._handle.limit(1)
        return self.get(columns).first()

    def first_or_fail(self, columns: Optional[Sequence[str]] = None) -> 'Model':
        """
        取第一条记录

        Raises:
            RecordNotFoundError: 没有匹配的行
        """
        instance = self.first(columns)
        if instance is None:
            raise RecordNotFoundError(type(self.model).__name__)
        return instance

    def first_or(self, callback: Callable[[], Any], columns: Optional[Sequence[str]] = None) -> Any:
        """取第一条记录，没有时返回 callback() 的结果"""
        instance = self.first(columns)
        if instance is None:
            return callback()
        return instance

    def first_or_new(self, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> 'Model':
        """按属性查找第一条记录，没有时返回未保存的新实例"""
        for key, value in attributes.items():
            self.where(key, '=', value)
        instance = self.first()
        if instance is None:
            instance = self.model.new_instance({**attributes, **(values or {})})
        return instance

    def find(self, ids: Any) -> Any:
        """
        按主键查找

        Args:
            ids: 单个主键或主键序列

        Returns:
            单个主键返回记录或 None，序列返回 Collection
        """
        key = f"{self.table}.{self.model.get_key_name()}"
        if isinstance(ids, (list, tuple, set, frozenset)):
            return self.where_in(key, list(ids)).get()
        return self.where(key, '=', ids).first()

    def find_or_fail(self, ids: Any) -> Any:
        result = self.find(ids)
        if result is None:
            raise RecordNotFoundError(type(self.model).__name__, ids)
        return result

    def _hydrate(self, rows: List[Dict[str, Any]]) -> Collection:
        return Collection(self.model.new_from_query(row, self._eager) for row in rows)

    # ========== 聚合 ==========

    def _aggregate(self, function: str, column: str) -> int:
        self._apply_soft_delete()
        handle = self._handle.clone()
        row = handle.get_row([f"{function}({column}) AS aggregate"])
        value = row.get('aggregate') if row else None
        return int(float(value or 0))

    def count(self, column: str = '*') -> int:
        return self._aggregate('COUNT', column)

    def avg(self, column: str) -> int:
        return self._aggregate('AVG', column)

    def max(self, column: str) -> int:
        return self._aggregate('MAX', column)

    def min(self, column: str) -> int:
        return self._aggregate('MIN', column)

    def sum(self, column: str) -> int:
        return self._aggregate('SUM', column)

    # ========== 写入 ==========

    def create(self, data: Dict[str, Any]) -> 'Model':
        """
        插入一行并把生成的主键写回所属模型

        Args:
            data: 列名到值的映射

        Returns:
            所属模型实例

        Raises:
            ModelError: data 为空
            DatabaseError: 连接没有返回生成的主键
        """
        if not data:
            raise ModelError(f"There is no data to insert into '{self.table}'")

        self.connection.table(self.table).insert(data)
        insert_id = self.connection.insert_id()
        if not insert_id:
            raise DatabaseError('Failed to insert data into the database.')

        key_name = self.model.get_key_name()
        if data.get(key_name) is None:
            self.model.set_attribute(key_name, insert_id)
        return self.model

    def update(self, data: Dict[str, Any]) -> 'Model':
        """
        按所属模型当前主键更新一行

        Raises:
            ModelError: data 为空
        """
        if not data:
            raise ModelError(f"There is no data to update in '{self.table}'")

        key_name = self.model.get_key_name()
        handle = self.connection.table(self.table)
        handle.where(f"{key_name} = {self.connection.escape(self.model.get_key())}")
        handle.update(data)
        return self.model

    def delete(self) -> int:
        """物理删除所有匹配的行，返回删除行数"""
        return self._handle.delete()

    # ========== 其他 ==========

    def to_sql(self) -> str:
        """返回当前状态编译出的 SELECT（不施加软删除过滤）"""
        return self._handle.compile_select()

    def clone(self) -> 'Builder':
        """复制 Builder，副本与原对象不共享可变查询状态"""
        builder = Builder.__new__(Builder)
        builder.connection = self.connection
        builder.model = self.model
        builder.table = self.table
        builder._handle = self._handle.clone()
        builder._escape_value = self._escape_value
        builder._trashed = self._trashed
        builder._soft_delete_applied = self._soft_delete_applied
        builder._eager = dict(self._eager)
        return builder

    __copy__ = clone

    def get_model(self) -> 'Model':
        return self.model

    def __repr__(self) -> str:
        return f"<Builder {type(self.model).__name__}: {self.to_sql()}>"
