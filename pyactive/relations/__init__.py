"""
Pyactive 关联关系

包含关联描述符基类与七种关联
"""

from .base import Relation
from .has_one_or_many import HasOneOrMany, HasOne, HasMany
from .belongs_to import BelongsTo, MorphTo
from .belongs_to_many import BelongsToMany
from .morph_one_or_many import MorphOneOrMany, MorphOne, MorphMany

__all__ = [
    'Relation',
    'HasOneOrMany',
    'HasOne',
    'HasMany',
    'BelongsTo',
    'MorphTo',
    'BelongsToMany',
    'MorphOneOrMany',
    'MorphOne',
    'MorphMany',
]
