"""
Pyactive 一对一 / 一对多关联

外键保存在目标表中：目标.foreign_key = 父记录.local_key
"""

from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from .base import Relation
from ..core.collection import Collection

if TYPE_CHECKING:
    from ..core.orm import Model
    from ..query.builder import Builder


class HasOneOrMany(Relation):
    """HasOne 与 HasMany 的公共实现"""

    supports_lazy_loading = True

    def __init__(self, query: 'Builder', parent: 'Model', foreign_key: str, local_key: str):
        """
        Args:
            query: 目标模型的查询构建器
            parent: 父记录
            foreign_key: 目标表外键（可带表名前缀，如 'posts.user_id'）
            local_key: 父记录上被引用的列（通常为主键）
        """
        self.foreign_key = foreign_key
        self.local_key = local_key
        super().__init__(query, parent)

    def add_conditions(self) -> None:
        self.query.where(self.foreign_key, '=', self.get_parent_key())

    def get_parent_key(self) -> Any:
        return self.parent.get_attribute(self.local_key)

    def get_plain_foreign_key(self) -> str:
        return self.foreign_key.split('.')[-1]

    def _set_foreign_attributes(self, model: 'Model') -> None:
        model.set_attribute(self.get_plain_foreign_key(), self.get_parent_key())

    def save(self, model: 'Model') -> 'Model':
        """设置外键后保存关联记录"""
        self._set_foreign_attributes(model)
        model.save()
        return model

    def save_many(self, models: Sequence['Model']) -> Sequence['Model']:
        for model in models:
            self.save(model)
        return models

    def create(self, **attributes: Any) -> 'Model':
        """创建并保存一条关联记录（属性受 __fillable__ 约束）"""
        instance = self.related.new_instance(attributes)
        self._set_foreign_attributes(instance)
        instance.save()
        return instance

    def first_or_create(self, **attributes: Any) -> 'Model':
        query = self.query.clone()
        for key, value in attributes.items():
            query.where(key, '=', value)
        instance = query.first()
        if instance is None:
            instance = self.create(**attributes)
        return instance

    # ========== 批量预取 ==========

    def add_lazy_conditions(self, models: Sequence['Model']) -> None:
        self.query.where_in(self.foreign_key, self._get_keys(models, self.local_key))

    def match(self, models: Sequence['Model'], results: Sequence['Model'], name: str) -> None:
        grouped: Dict[Any, List['Model']] = {}
        for result in results:
            key = self._dictionary_key(result.get_attribute(self.get_plain_foreign_key()))
            grouped.setdefault(key, []).append(result)

        for model in models:
            value = model.get_attribute(self.local_key)
            matches = grouped.get(self._dictionary_key(value), []) if value is not None else []
            model.set_relation(name, self._match_value(matches))

    def _match_value(self, matches: List['Model']) -> Any:
        return Collection(matches)


class HasOne(HasOneOrMany):
    """一对一关联"""

    single = True

    def add_conditions(self) -> None:
        super().add_conditions()
        self.query.limit(1)

    def get_results(self) -> Optional['Model']:
        return self.query.first()

    def _match_value(self, matches: List['Model']) -> Optional['Model']:
        return matches[0] if matches else None


class HasMany(HasOneOrMany):
    """一对多关联"""

    def get_results(self) -> Collection:
        return self.query.get()
