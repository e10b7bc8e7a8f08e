"""
Pyactive 结果集合

查询结果的有序列表封装
"""

import json
from typing import Any, Dict, List, Optional


class Collection(list):
    """有序模型集合"""

    def first(self) -> Optional[Any]:
        return self[0] if self else None

    def last(self) -> Optional[Any]:
        return self[-1] if self else None

    def is_empty(self) -> bool:
        return len(self) == 0

    def pluck(self, key: str) -> List[Any]:
        """取出每个元素的某个属性值"""
        return [item.get_attribute(key) for item in self]

    def to_list(self) -> List[Dict[str, Any]]:
        return [item.to_dict() if hasattr(item, 'to_dict') else item for item in self]

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_list(), default=str, **kwargs)

    def __repr__(self) -> str:
        return f"Collection({list.__repr__(self)})"
