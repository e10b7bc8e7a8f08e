"""
Pyactive 关联关系基类

每个关联描述符在构造时立即把基础约束施加到自己的 Builder 上（constructing -> ready），
之后未知的方法调用都委托给内部 Builder，因此可以继续链式追加条件。

描述符是一次性的：它绑定了某一条父记录，不能复用于另一条父记录。
"""

import functools
from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable, List, Optional, Sequence, TYPE_CHECKING

from ..common.exceptions import LogicError

if TYPE_CHECKING:
    from ..core.orm import Model
    from ..query.builder import Builder


class Relation(ABC):
    """
    关联关系抽象基类

    子类需要实现：
    - add_conditions(): 针对单条父记录的基础约束
    - get_results(): 实际取出关联结果
    """

    # 结果形状：True 返回单条记录，False 返回集合
    single: bool = False

    # 是否支持批量预取（add_lazy_conditions + match）
    supports_lazy_loading: bool = False

    # 构造时是否施加基础约束（由 no_conditions 临时关闭）
    _constraints: bool = True

    def __init__(self, query: 'Builder', parent: 'Model'):
        """
        Args:
            query: 目标模型的查询构建器
            parent: 拥有该关联的记录
        """
        self._ready = False
        self.query = query
        self.parent = parent
        self.related = query.get_model()

        self.prepare()
        if Relation._constraints:
            self.add_conditions()
        self._ready = True

    def prepare(self) -> None:
        """与父记录无关的约束（如 JOIN），总是施加"""
        pass

    @abstractmethod
    def add_conditions(self) -> None:
        """施加针对单条父记录的基础约束"""
        pass

    @abstractmethod
    def get_results(self) -> Any:
        """
        获取关联结果

        Returns:
            单条形状返回 Model 或 None，集合形状返回 Collection
        """
        pass

    def add_lazy_conditions(self, models: Sequence['Model']) -> None:
        """针对一组父记录施加批量约束"""
        raise LogicError(f"{type(self).__name__} does not support batched loading")

    def match(self, models: Sequence['Model'], results: Sequence['Model'], name: str) -> None:
        """把批量查询结果分配回各父记录的关联缓存"""
        raise LogicError(f"{type(self).__name__} does not support batched loading")

    @staticmethod
    def no_conditions(callback: Callable[[], Any]) -> Any:
        """
        在不施加基础约束的情况下执行回调

        回调中构造的描述符只执行 prepare()，用于批量预取。
        """
        previous = Relation._constraints
        Relation._constraints = False
        try:
            return callback()
        finally:
            Relation._constraints = previous

    def get_lazy(self) -> Any:
        return self.query.get()

    def get_query(self) -> 'Builder':
        return self.query

    def get_parent(self) -> 'Model':
        return self.parent

    def get_related(self) -> 'Model':
        return self.related

    @staticmethod
    def _get_keys(models: Sequence['Model'], key: Optional[str] = None) -> List[Any]:
        """收集记录上的键值（去重、去 None、保持顺序）"""
        keys: List[Any] = []
        for model in models:
            value = model.get_attribute(key) if key else model.get_key()
            if value is not None and value not in keys:
                keys.append(value)
        return keys

    @staticmethod
    def _dictionary_key(value: Any) -> Hashable:
        # 驱动可能把整数列返回为字符串
        return str(value)

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_') or not self.__dict__.get('_ready'):
            raise AttributeError(name)

        target = getattr(self.query, name)
        if not callable(target):
            return target

        @functools.wraps(target)
        def forward(*args: Any, **kwargs: Any) -> Any:
            result = target(*args, **kwargs)
            if result is self.query:
                return self
            return result

        return forward

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {type(self.parent).__name__} -> {type(self.related).__name__}>"
