"""
Pyactive 多对多关联

通过中间表（pivot）连接两张表：
    related JOIN pivot ON related.related_key = pivot.related_pivot_key
    WHERE pivot.foreign_pivot_key = parent.parent_key
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, TYPE_CHECKING

from .base import Relation
from ..core.collection import Collection

if TYPE_CHECKING:
    from ..core.orm import Model
    from ..query.builder import Builder


class BelongsToMany(Relation):
    """多对多关联"""

    supports_lazy_loading = True

    def __init__(
        self,
        query: 'Builder',
        parent: 'Model',
        table: str,
        foreign_pivot_key: str,
        related_pivot_key: str,
        parent_key: str,
        related_key: str,
        relation_name: Optional[str] = None
    ):
        """
        Args:
            query: 目标模型的查询构建器
            parent: 父记录
            table: 中间表名
            foreign_pivot_key: 中间表中指向父记录的列
            related_pivot_key: 中间表中指向目标记录的列
            parent_key: 父记录上被引用的列
            related_key: 目标记录上被引用的列
            relation_name: 关联名
        """
        self.table = table
        self.foreign_pivot_key = foreign_pivot_key
        self.related_pivot_key = related_pivot_key
        self.parent_key = parent_key
        self.related_key = related_key
        self.relation_name = relation_name
        super().__init__(query, parent)

    def prepare(self) -> None:
        related_table = self.related.get_table()
        self.query.join(
            self.table,
            f"{related_table}.{self.related_key}",
            '=',
            self.get_qualified_related_pivot_key()
        ).select(f"{related_table}.*")

    def add_conditions(self) -> None:
        self.query.where(self.get_qualified_foreign_pivot_key(), '=', self.get_parent_key())

    def get_parent_key(self) -> Any:
        return self.parent.get_attribute(self.parent_key)

    def get_qualified_foreign_pivot_key(self) -> str:
        return f"{self.table}.{self.foreign_pivot_key}"

    def get_qualified_related_pivot_key(self) -> str:
        return f"{self.table}.{self.related_pivot_key}"

    def get_results(self) -> Collection:
        return self.query.get()

    # ========== 中间表维护 ==========

    def _parse_ids(self, ids: Any) -> List[Any]:
        if ids is None:
            return []
        if not isinstance(ids, (list, tuple, set, Collection)):
            ids = [ids]
        parsed: List[Any] = []
        for item in ids:
            if hasattr(item, 'get_attribute'):
                item = item.get_attribute(self.related_key)
            parsed.append(item)
        return parsed

    def attach(self, ids: Any, **pivot_attributes: Any) -> None:
        """
        向中间表插入关联行

        Args:
            ids: 目标主键、模型，或它们的序列
            pivot_attributes: 中间表的额外列
        """
        connection = self.query.connection
        for related_id in self._parse_ids(ids):
            row = {
                self.foreign_pivot_key: self.get_parent_key(),
                self.related_pivot_key: related_id,
            }
            row.update(pivot_attributes)
            connection.table(self.table).insert(row)

    def detach(self, ids: Any = None) -> int:
        """
        删除中间表关联行

        Args:
            ids: 目标主键、模型或其序列；None 表示删除父记录的全部关联

        Returns:
            删除的行数
        """
        connection = self.query.connection
        handle = connection.table(self.table)
        handle.where(f"{self.foreign_pivot_key} = {connection.escape(self.get_parent_key())}")
        if ids is not None:
            values = self._parse_ids(ids) or [0]
            handle.where(f"{self.related_pivot_key} IN ({', '.join(connection.escape(v) for v in values)})")
        return handle.delete()

    def save(self, model: 'Model', **pivot_attributes: Any) -> 'Model':
        """保存目标记录并写入中间表"""
        model.save()
        self.attach(model, **pivot_attributes)
        return model

    def save_many(self, models: Iterable['Model']) -> Iterable['Model']:
        for model in models:
            self.save(model)
        return models

    def create(self, pivot: Optional[Dict[str, Any]] = None, **attributes: Any) -> 'Model':
        instance = self.related.new_instance(attributes)
        return self.save(instance, **(pivot or {}))

    # ========== 批量预取 ==========

    def get_pivot_alias(self) -> str:
        return f"pivot_{self.foreign_pivot_key}"

    def add_lazy_conditions(self, models: Sequence['Model']) -> None:
        self.query.select(f"{self.get_qualified_foreign_pivot_key()} AS {self.get_pivot_alias()}")
        self.query.where_in(self.get_qualified_foreign_pivot_key(), self._get_keys(models, self.parent_key))

    def match(self, models: Sequence['Model'], results: Sequence['Model'], name: str) -> None:
        alias = self.get_pivot_alias()
        grouped: Dict[Any, List['Model']] = {}
        for result in results:
            key = self._dictionary_key(result.get_attribute(alias))
            grouped.setdefault(key, []).append(result)
            # 分组列不属于目标表
            del result[alias]

        for model in models:
            value = model.get_attribute(self.parent_key)
            matches = grouped.get(self._dictionary_key(value), []) if value is not None else []
            model.set_relation(name, Collection(matches))
