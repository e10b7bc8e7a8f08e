"""
Pyactive 关系预取 API

对已获取的记录列表批量加载关联，每一层关联只执行一次查询：

    from pyactive import prefetch

    users = User.all()
    prefetch(users, 'posts')               # 单次查询加载所有用户的 posts
    prefetch(users, 'posts.comments')      # 每层一次查询
    prefetch(users, 'posts', 'country')    # 支持多个关系名

不支持批量约束的关联（MorphTo）退化为逐条加载。
"""

from typing import Any, List, Optional, Sequence, TYPE_CHECKING

from .collection import Collection
from ..common.exceptions import MissingMorphTypeError
from ..relations.base import Relation

if TYPE_CHECKING:
    from .orm import Model


def prefetch(instances: Sequence['Model'], *rel_names: str) -> None:
    """
    批量预取关联数据

    Args:
        instances: 模型实例序列（必须为同一模型类）
        *rel_names: 关系名或点分路径

    Raises:
        ValueError: 未给出关系名，或模型没有该关系
        TypeError: 关系名不是字符串
    """
    if not rel_names:
        raise ValueError(
            "prefetch() requires at least one relationship name. "
            "Usage: prefetch(instances, 'rel_name1', 'rel_name2', ...)"
        )
    for name in rel_names:
        if not isinstance(name, str):
            raise TypeError(f"Relationship name must be str, got {type(name).__name__}")

    records = list(instances)
    if not records:
        return

    for name in rel_names:
        _prefetch_path(records, name)


def _prefetch_path(records: List['Model'], path: str) -> None:
    """
    预取一条点分路径

    Args:
        records: 父记录列表
        path: 关系名或点分路径
    """
    head, _, rest = path.partition('.')
    owner_class = type(records[0])
    if head not in owner_class.__relations__:
        raise ValueError(
            f"'{owner_class.__name__}' has no relationship '{head}'. "
            f"Available relationships: {list(owner_class.__relations__.keys())}"
        )

    descriptor: Optional[Relation]
    try:
        descriptor = Relation.no_conditions(lambda: records[0].relation(head))
    except MissingMorphTypeError:
        descriptor = None

    if descriptor is None or not descriptor.supports_lazy_loading:
        for record in records:
            record.load(path)
        return

    # 1. 批量约束 + 单次查询
    descriptor.add_lazy_conditions(records)
    results = descriptor.get_lazy()

    # 2. 按键分配回各父记录
    descriptor.match(records, results, head)

    # 3. 下一层
    if rest:
        children = _collect_children(records, head)
        if children:
            _prefetch_path(children, rest)


def _collect_children(records: Sequence['Model'], name: str) -> List['Model']:
    """收集各记录上已加载的关联结果（按对象去重）"""
    children: List['Model'] = []
    seen = set()
    for record in records:
        loaded: Any = record.get_relation(name)
        items = loaded if isinstance(loaded, Collection) else [loaded]
        for item in items:
            if item is not None and id(item) not in seen:
                seen.add(id(item))
                children.append(item)
    return children
