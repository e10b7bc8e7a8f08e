"""
Pyactive - 轻量级 Active Record ORM

记录即对象：声明模型与关联，用链式查询代替手写 SQL。

    from pyactive import declarative_base, Column, relation, SqliteConnection

    db = SqliteConnection('blog.db')
    Base = declarative_base(db)

    class Post(Base):
        __fillable__ = ['title', 'user_id']
        id = Column('id', int, primary_key=True)
        title = Column('title', str)
        user_id = Column('user_id', int)

        @relation
        def author(self):
            return self.belongs_to('User', foreign_key='user_id')

    posts = Post.with_('author').where('title', 'LIKE', '%orm%').get()
"""

from .core import (
    AttributeStore,
    Collection,
    Column,
    EagerLoadPlanner,
    EventManager,
    KindRegistry,
    Model,
    PermanentDeleteMixin,
    declarative_base,
    event,
    prefetch,
    relation,
)
from .query import Builder
from .relations import (
    Relation,
    HasOne,
    HasMany,
    BelongsTo,
    BelongsToMany,
    MorphOne,
    MorphMany,
    MorphTo,
)
from .connectors import Connection, QueryHandle, SqliteConnection
from .common.options import SqliteConnectorOptions, ConnectorOptions
from .common.exceptions import (
    PyactiveException,
    MassAssignmentError,
    ModelError,
    DatabaseError,
    RecordNotFoundError,
    LogicError,
    KindNotFoundError,
    MissingMorphTypeError,
    ConfigurationError,
)

__version__ = '0.1.0'

__all__ = [
    # ORM
    'Model',
    'Column',
    'relation',
    'declarative_base',
    'PermanentDeleteMixin',
    'AttributeStore',
    'Collection',
    'KindRegistry',
    'EagerLoadPlanner',
    'prefetch',
    'event',
    'EventManager',
    # Query
    'Builder',
    # Relations
    'Relation',
    'HasOne',
    'HasMany',
    'BelongsTo',
    'BelongsToMany',
    'MorphOne',
    'MorphMany',
    'MorphTo',
    # Connectors
    'Connection',
    'QueryHandle',
    'SqliteConnection',
    'SqliteConnectorOptions',
    'ConnectorOptions',
    # Exceptions
    'PyactiveException',
    'MassAssignmentError',
    'ModelError',
    'DatabaseError',
    'RecordNotFoundError',
    'LogicError',
    'KindNotFoundError',
    'MissingMorphTypeError',
    'ConfigurationError',
]
