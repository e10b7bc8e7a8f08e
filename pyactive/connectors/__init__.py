"""
Pyactive 连接器模块

提供连接抽象与 SQLite 参考实现
"""

from .base import Connection, QueryHandle
from .sqlite import SqliteConnection

__all__ = [
    'Connection',
    'QueryHandle',
    'SqliteConnection',
]
