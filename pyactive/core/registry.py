"""
Pyactive 模型类注册表

每个 declarative_base() 持有一个 KindRegistry，作为多态关联的类型解析能力：
将类型列中保存的名称（如 'post'）映射回具体模型类。
"""

import logging
import re
from typing import Dict, Iterator, List, Optional, Type, TYPE_CHECKING

from ..common.exceptions import KindNotFoundError

if TYPE_CHECKING:
    from .orm import Model

logger = logging.getLogger(__name__)


_WORD_SPLIT = re.compile(r'[_\-\s]+')
_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def snake_case(name: str) -> str:
    """BlogPost -> blog_post"""
    return _CAMEL_BOUNDARY.sub('_', name).replace('-', '_').lower()


def camel_case(name: str) -> str:
    """blog_post -> blogPost"""
    words = [w for w in _WORD_SPLIT.split(name) if w]
    if not words:
        return ''
    return words[0][0].lower() + words[0][1:] + ''.join(w[0].upper() + w[1:] for w in words[1:])


def studly_case(name: str) -> str:
    """blog_post -> BlogPost"""
    camel = camel_case(name)
    return camel[:1].upper() + camel[1:]


class KindRegistry:
    """
    模型类注册表

    以类名和 "模块.类名" 两种键登记模型类，解析时优先使用调用方的模块（命名空间）。
    """

    def __init__(self) -> None:
        self._kinds: Dict[str, Type['Model']] = {}

    def register(self, model_class: Type['Model']) -> None:
        """登记模型类（同名后注册者覆盖先注册者）"""
        self._kinds[model_class.__name__] = model_class
        self._kinds[f"{model_class.__module__}.{model_class.__name__}"] = model_class

    def get(self, name: str, namespace: Optional[str] = None) -> Optional[Type['Model']]:
        """
        按名称查找模型类

        Args:
            name: 类名或 "模块.类名"
            namespace: 优先查找的模块名

        Returns:
            模型类，不存在时返回 None
        """
        if namespace:
            found = self._kinds.get(f"{namespace}.{name}")
            if found is not None:
                return found
        return self._kinds.get(name)

    def resolve(self, tag: str, namespace: Optional[str] = None) -> Type['Model']:
        """
        将多态类型标记解析为模型类

        先按原样查找；找不到时规范化为 StudlyCase（'blog_post' -> 'BlogPost'）再查找。

        Raises:
            KindNotFoundError: 没有对应的已注册模型类
        """
        found = self.get(tag, namespace)
        if found is not None:
            return found

        normalized = studly_case(tag)
        logger.debug("normalized morph type %r to %r", tag, normalized)
        found = self.get(normalized, namespace)
        if found is not None:
            return found

        # 小写化的类型标记：'blogpost' -> BlogPost
        for kind in self.kinds():
            if kind.get_morph_class().lower() == tag.lower():
                return kind
        raise KindNotFoundError(tag, namespace)

    def kinds(self) -> List[Type['Model']]:
        """返回已注册的模型类（去重，保持注册顺序）"""
        seen: List[Type['Model']] = []
        for kind in self._kinds.values():
            if kind not in seen:
                seen.append(kind)
        return seen

    def __contains__(self, name: str) -> bool:
        return name in self._kinds

    def __iter__(self) -> Iterator[Type['Model']]:
        return iter(self.kinds())

    def __len__(self) -> int:
        return len(self.kinds())
