"""
Pyactive 多态一对一 / 一对多关联

目标表通过类型列 + id 列指向不同种类的父记录，
类型标记取自父模型的 get_morph_class()（默认为小写类名）。
"""

from typing import Any, Sequence, TYPE_CHECKING

from .has_one_or_many import HasOneOrMany, HasOne, HasMany

if TYPE_CHECKING:
    from ..core.orm import Model
    from ..query.builder import Builder


class MorphOneOrMany(HasOneOrMany):
    """MorphOne 与 MorphMany 的公共实现"""

    def __init__(self, query: 'Builder', parent: 'Model', morph_type: str, foreign_key: str, local_key: str):
        """
        Args:
            query: 目标模型的查询构建器
            parent: 父记录
            morph_type: 目标表类型列（可带表名前缀）
            foreign_key: 目标表 id 列（可带表名前缀）
            local_key: 父记录上被引用的列
        """
        self.morph_type = morph_type
        self.morph_class = parent.get_morph_class().lower()
        super().__init__(query, parent, foreign_key, local_key)

    def add_conditions(self) -> None:
        self.query.where(self.morph_type, '=', self.morph_class)
        self.query.where(self.foreign_key, '=', self.get_parent_key())

    def get_plain_morph_type(self) -> str:
        return self.morph_type.split('.')[-1]

    def _set_foreign_attributes(self, model: 'Model') -> None:
        model.set_attribute(self.get_plain_morph_type(), self.morph_class)
        super()._set_foreign_attributes(model)

    def add_lazy_conditions(self, models: Sequence['Model']) -> None:
        self.query.where(self.morph_type, '=', self.morph_class)
        super().add_lazy_conditions(models)


class MorphOne(MorphOneOrMany, HasOne):
    """多态一对一关联"""

    def add_conditions(self) -> None:
        MorphOneOrMany.add_conditions(self)
        self.query.limit(1)


class MorphMany(MorphOneOrMany, HasMany):
    """多态一对多关联"""
