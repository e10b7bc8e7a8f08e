"""
Pyactive 核心模块

包含模型、属性存储、预加载、注册表与事件等核心功能
"""

from .attributes import AttributeStore, is_numeric, numerically_equivalent
from .collection import Collection
from .registry import KindRegistry, snake_case, camel_case, studly_case
from .eager import EagerLoadPlanner
from .orm import (
    Column,
    Model,
    PermanentDeleteMixin,
    RelationProperty,
    declarative_base,
    relation,
)
from .prefetch import prefetch
from .event import event, EventManager

__all__ = [
    # ORM
    'Column',
    'Model',
    'PermanentDeleteMixin',
    'RelationProperty',
    'declarative_base',
    'relation',
    # Attributes
    'AttributeStore',
    'is_numeric',
    'numerically_equivalent',
    # Support
    'Collection',
    'KindRegistry',
    'snake_case',
    'camel_case',
    'studly_case',
    'EagerLoadPlanner',
    'prefetch',
    'event',
    'EventManager',
]
