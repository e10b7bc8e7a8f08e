"""
Pyactive 属性存储

每条记录持有一个 AttributeStore：
- attributes：当前列值（有序字典）
- original：最近一次 sync() 时的快照
- relations：已解析的关联结果缓存
- bootable：由预加载写入的计算字段（不参与脏检查）
"""

import copy
import re
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Set


_NUMERIC_PATTERN = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$')


def is_numeric(value: Any) -> bool:
    """判断值是否为数字或数字字符串（bool 不算数字）"""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    if isinstance(value, str):
        return _NUMERIC_PATTERN.match(value) is not None
    return False


def _numeric_text(value: Any) -> str:
    # 整数值的浮点数与整数同形：3.0 -> "3"
    if isinstance(value, float):
        text = repr(value)
        return text[:-2] if text.endswith('.0') else text
    return str(value)


def numerically_equivalent(current: Any, original: Any) -> bool:
    """
    判断新旧值是否数值等价

    两者都必须是数字（或数字字符串），且规范化后的字符串逐字节相同。
    例如 3 与 "3" 等价，"3.0" 与 "3" 不等价。
    """
    return (
        is_numeric(current)
        and is_numeric(original)
        and _numeric_text(current) == _numeric_text(original)
    )


def _same_value(current: Any, original: Any) -> bool:
    return type(current) is type(original) and current == original


class AttributeStore:
    """记录属性存储与脏检查"""

    def __init__(self, attributes: Optional[Dict[str, Any]] = None):
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.original: Dict[str, Any] = {}
        self.relations: Dict[str, Any] = {}
        self.bootable: Set[str] = set()

    def set(self, key: str, value: Any) -> None:
        """覆盖属性值，不做类型转换，不修改 original"""
        self.attributes[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        读取属性值

        先查 attributes，再查 relations，都不存在时返回 default。
        关系方法的回退由 Model.get_attribute 负责。
        """
        if key in self.attributes:
            return self.attributes[key]
        if key in self.relations:
            return self.relations[key]
        return default

    def has(self, key: str) -> bool:
        return key in self.attributes or key in self.relations

    def unset(self, key: str) -> None:
        """移除属性及其快照"""
        self.attributes.pop(key, None)
        self.original.pop(key, None)
        self.relations.pop(key, None)
        self.bootable.discard(key)

    def set_raw(self, attributes: Dict[str, Any], sync: bool = False) -> None:
        """整体替换 attributes，可选同步快照"""
        self.attributes = dict(attributes)
        if sync:
            self.sync()

    def boot(self, key: str, value: Any) -> None:
        """写入预加载的计算字段"""
        self.attributes[key] = value
        self.bootable.add(key)

    def sync(self) -> None:
        """original = deepcopy(attributes)，可变的列值（dict/list）不与快照共享"""
        self.original = copy.deepcopy(self.attributes)

    def dirty(self) -> Dict[str, Any]:
        """
        计算脏属性集合

        Returns:
            自上次 sync() 以来值发生变化的属性（排除 bootable 字段）
        """
        dirty: Dict[str, Any] = {}
        for key, value in self.attributes.items():
            if key in self.bootable:
                continue
            if key not in self.original:
                dirty[key] = value
                continue
            original = self.original[key]
            if not _same_value(value, original) and not numerically_equivalent(value, original):
                dirty[key] = value
        return dirty

    def is_dirty(self, keys: Iterable[str] = ()) -> bool:
        dirty = self.dirty()
        keys = list(keys)
        if not keys:
            return len(dirty) > 0
        return any(key in dirty for key in keys)

    def copy(self) -> 'AttributeStore':
        store = AttributeStore(self.attributes)
        store.original = copy.deepcopy(self.original)
        store.relations = dict(self.relations)
        store.bootable = set(self.bootable)
        return store

    def __repr__(self) -> str:
        return f"AttributeStore({self.attributes!r})"
