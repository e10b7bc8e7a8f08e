"""
Pyactive 查询子系统

包含模型查询构建器
"""

from .builder import Builder, TRASHED_EXCLUDE, TRASHED_WITH, TRASHED_ONLY

__all__ = [
    'Builder',
    'TRASHED_EXCLUDE',
    'TRASHED_WITH',
    'TRASHED_ONLY',
]
