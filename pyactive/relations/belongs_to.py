"""
Pyactive 从属关联（BelongsTo / MorphTo）

外键保存在当前记录上：目标.owner_key = 当前记录.foreign_key
"""

from typing import Any, Dict, Optional, Sequence, TYPE_CHECKING

from .base import Relation

if TYPE_CHECKING:
    from ..core.orm import Model
    from ..query.builder import Builder


class BelongsTo(Relation):
    """多对一（反向）关联"""

    single = True
    supports_lazy_loading = True

    def __init__(
        self,
        query: 'Builder',
        child: 'Model',
        foreign_key: str,
        owner_key: str,
        relation_name: Optional[str] = None
    ):
        """
        Args:
            query: 所属模型的查询构建器
            child: 持有外键的记录
            foreign_key: 当前记录上的外键列
            owner_key: 所属模型上被引用的列
            relation_name: 关联名（associate 时写入关联缓存）
        """
        self.foreign_key = foreign_key
        self.owner_key = owner_key
        self.relation_name = relation_name
        super().__init__(query, child)

    def get_qualified_owner_key(self) -> str:
        return f"{self.related.get_table()}.{self.owner_key}"

    def add_conditions(self) -> None:
        self.query.where(self.get_qualified_owner_key(), '=', self.parent.get_attribute(self.foreign_key))

    def get_results(self) -> Optional['Model']:
        return self.query.first()

    def associate(self, model: Optional['Model']) -> 'Model':
        """把当前记录的外键指向 model（不保存）"""
        owner_value = model.get_attribute(self.owner_key) if model is not None else None
        self.parent.set_attribute(self.foreign_key, owner_value)
        if self.relation_name:
            self.parent.set_relation(self.relation_name, model)
        return self.parent

    def dissociate(self) -> 'Model':
        return self.associate(None)

    def save(self, model: 'Model') -> 'Model':
        """保存所属记录并关联到当前记录"""
        model.save()
        self.associate(model)
        return model

    # ========== 批量预取 ==========

    def add_lazy_conditions(self, models: Sequence['Model']) -> None:
        self.query.where_in(self.get_qualified_owner_key(), self._get_keys(models, self.foreign_key))

    def match(self, models: Sequence['Model'], results: Sequence['Model'], name: str) -> None:
        owners: Dict[Any, 'Model'] = {}
        for result in results:
            owners[self._dictionary_key(result.get_attribute(self.owner_key))] = result

        for model in models:
            value = model.get_attribute(self.foreign_key)
            owner = owners.get(self._dictionary_key(value)) if value is not None else None
            model.set_relation(name, owner)


class MorphTo(BelongsTo):
    """
    多态反向关联

    当前记录的类型列保存目标模型名，id 列保存目标主键。
    目标模型在构造描述符之前已由 KindRegistry 解析完成。
    """

    supports_lazy_loading = False

    def __init__(
        self,
        query: 'Builder',
        child: 'Model',
        foreign_key: str,
        owner_key: str,
        morph_type: str,
        relation_name: Optional[str] = None
    ):
        self.morph_type = morph_type
        super().__init__(query, child, foreign_key, owner_key, relation_name)

    def associate(self, model: Optional['Model']) -> 'Model':
        self.parent.set_attribute(self.morph_type, model.get_morph_class().lower() if model is not None else None)
        return super().associate(model)
