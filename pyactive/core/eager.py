"""
Pyactive 预加载规划

把调用方请求的关联（关联名、点分路径、回调、静态值）解析到每条刚实例化的记录上。

请求形式：
    'author'                         关联名
    'author.country'                 点分路径，结果挂在 author 下
    {'comments': fn}                 回调 fn(record)
    {'source': 'import'}             静态字段
"""

import logging
from typing import Any, Dict, List, TYPE_CHECKING

from ..common.exceptions import MissingMorphTypeError

if TYPE_CHECKING:
    from .orm import Model

logger = logging.getLogger(__name__)


class _LoadRelation:
    """关联加载请求标记"""

    def __repr__(self) -> str:
        return '<load>'


LOAD = _LoadRelation()


class EagerLoadPlanner:
    """预加载规划器"""

    def __init__(self, requests: Dict[str, Any]):
        """
        Args:
            requests: 请求名到回调、静态值或 LOAD 标记的映射
        """
        self.requests = dict(requests)

    @staticmethod
    def parse(*relations: Any, **named: Any) -> Dict[str, Any]:
        """
        规范化预加载请求

        Args:
            relations: 关联名 / 点分路径字符串、字典或它们的列表
            named: 名称到回调或静态值的映射

        Returns:
            请求字典
        """
        requests: Dict[str, Any] = {}
        for item in relations:
            if isinstance(item, str):
                requests[item] = LOAD
            elif isinstance(item, dict):
                requests.update(item)
            elif isinstance(item, (list, tuple)):
                requests.update(EagerLoadPlanner.parse(*item))
            else:
                raise TypeError(f"Unsupported eager load request: {item!r}")
        requests.update(named)
        return requests

    def load(self, record: 'Model') -> 'Model':
        """把全部请求解析到一条记录上"""
        paths: Dict[str, List[str]] = {}

        for name, value in self.requests.items():
            if value is not LOAD and callable(value) and not isinstance(value, type):
                self._load_callback(record, name, value)
                continue

            head, _, rest = name.partition('.')
            if head in type(record).__relations__:
                rests = paths.setdefault(head, [])
                if rest:
                    rests.append(rest)
            elif value is LOAD:
                logger.debug("skipping unknown eager load path %r on %s", name, type(record).__name__)
            else:
                record.boot_attribute(name, value)

        for head, rests in paths.items():
            self._load_relation(record, head, rests)
        return record

    @staticmethod
    def _load_relation(record: 'Model', name: str, nested: List[str]) -> None:
        try:
            descriptor = record.relation(name)
        except MissingMorphTypeError:
            record.set_relation(name, None)
            return
        if nested:
            descriptor.with_(*nested)
        result = descriptor.first() if descriptor.single else descriptor.get()
        record.set_relation(name, result)

    @staticmethod
    def _load_callback(record: 'Model', name: str, callback: Any) -> None:
        from .collection import Collection
        from .orm import Model
        from ..query.builder import Builder
        from ..relations.base import Relation

        result = callback(record)
        if result is None:
            result = record.get_attribute(name)
        elif isinstance(result, (Builder, Relation)):
            result = result.get()

        if isinstance(result, (Model, Collection)):
            record.set_relation(name, result)
        else:
            record.boot_attribute(name, result)
