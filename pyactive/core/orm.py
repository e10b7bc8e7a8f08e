"""
Pyactive ORM 核心

提供模型基类、列描述符与关联声明：

    Base = declarative_base(connection)

    class User(Base):
        __tablename__ = 'users'
        __fillable__ = ['name', 'country_id']

        id = Column('id', int, primary_key=True)
        name = Column('name', str)
        country_id = Column('country_id', int)

        @relation
        def posts(self):
            return self.has_many('Post')

        @relation
        def country(self):
            return self.belongs_to('Country')
"""

import functools
import json
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Type, TypeVar, Union

from .attributes import AttributeStore
from .collection import Collection
from .eager import EagerLoadPlanner
from .event import event
from .registry import KindRegistry, camel_case, snake_case
from ..common.exceptions import (
    ConfigurationError,
    LogicError,
    MassAssignmentError,
    MissingMorphTypeError,
    RecordNotFoundError,
)
from ..connectors.base import Connection
from ..query.builder import Builder
from ..relations import (
    Relation,
    HasOne,
    HasMany,
    BelongsTo,
    BelongsToMany,
    MorphOne,
    MorphMany,
    MorphTo,
)


T = TypeVar('T', bound='Model')

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def _now() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class Column:
    """
    列描述符

    读取返回存储中的属性值（不存在时为 None），写入调用 set_attribute，不做类型转换。

    用法：
        id = Column('id', int, primary_key=True)
        name = Column(str)                 # 列名取属性名
        meta = Column(dict)                # to_dict() 时解码 JSON 文本
    """

    def __init__(
        self,
        *args: Any,
        name: Optional[str] = None,
        primary_key: bool = False,
        default: Any = None,
        nullable: bool = True
    ):
        """
        Args:
            args: 可选的列名（str）与列类型
            name: 列名，默认为属性名
            primary_key: 是否为主键
            default: 新建实例时的默认值
            nullable: 是否允许为空（仅作声明）
        """
        values = list(args)
        if values and isinstance(values[0], str):
            name = values.pop(0)
        self.col_type: Optional[type] = values.pop(0) if values else None
        if values:
            raise TypeError(f"Column() got unexpected arguments: {values!r}")

        self.name = name
        self.primary_key = primary_key
        self.default = default
        self.nullable = nullable
        self.attr_name: Optional[str] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.attr_name = name
        if self.name is None:
            self.name = name

    def __get__(self, instance: Optional['Model'], owner: type) -> Any:
        if instance is None:
            return self
        return instance.get_attribute(self.name)

    def __set__(self, instance: 'Model', value: Any) -> None:
        instance.set_attribute(self.name, value)

    def __repr__(self) -> str:
        type_name = self.col_type.__name__ if self.col_type else 'Any'
        return f"Column(name='{self.name}', type={type_name}, pk={self.primary_key})"


class RelationProperty:
    """
    关联声明

    被装饰的方法必须返回 Relation 描述符。声明在建类时收集到 __relations__，
    读取属性时解析关联并缓存结果；record.relation(name) 每次返回新的描述符。
    """

    def __init__(self, method: Callable[[Any], Relation]):
        self.method = method
        self.name = method.__name__
        functools.update_wrapper(self, method)  # type: ignore[arg-type]

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Optional['Model'], owner: type) -> Any:
        if instance is None:
            return self
        return instance.get_attribute(self.name)

    def __set__(self, instance: 'Model', value: Any) -> None:
        instance.set_relation(self.name, value)

    def build(self, instance: 'Model') -> Any:
        """调用关联方法；调用期间记录关联名，供 belongs_to / morph_to 推导默认键"""
        previous = instance.__dict__.get('_declaring_relation')
        instance.__dict__['_declaring_relation'] = self.name
        try:
            return self.method(instance)
        finally:
            instance.__dict__['_declaring_relation'] = previous


relation = RelationProperty


class Model:
    """
    模型基类

    类级配置：
        __tablename__: 表名，默认为 snake_case 类名 + 's'
        __primary_key__: 主键列，默认 'id'
        __fillable__: 允许批量赋值的列
        __protect_fields__: 未配置 __fillable__ 时是否拒绝批量赋值
        __hidden__: to_dict() 时移除的列
        __timestamps__: 是否自动维护 created_at / updated_at
        __soft_deletes__: delete() 是否只写入删除标记
        __delete_key__: 删除标记列
        __morph_name__: 多态类型标记，默认为类名
    """

    __abstract__: bool = True
    __tablename__: Optional[str] = None
    __primary_key__: str = 'id'
    __fillable__: Sequence[str] = ()
    __protect_fields__: bool = True
    __hidden__: Sequence[str] = ()
    __timestamps__: bool = False
    __soft_deletes__: bool = False
    __delete_key__: str = 'deleted_at'
    __morph_name__: Optional[str] = None

    __connection__: Optional[Connection] = None
    __registry__: Optional[KindRegistry] = None
    __columns__: Dict[str, Column] = {}
    __relations__: Dict[str, RelationProperty] = {}

    CREATED_AT: Optional[str] = 'created_at'
    UPDATED_AT: Optional[str] = 'updated_at'

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        columns: Dict[str, Column] = {}
        relations: Dict[str, RelationProperty] = {}
        for klass in reversed(cls.__mro__):
            for attr_name, value in vars(klass).items():
                if isinstance(value, Column):
                    columns[attr_name] = value
                elif isinstance(value, RelationProperty):
                    relations[attr_name] = value
        cls.__columns__ = columns
        cls.__relations__ = relations

        if '__primary_key__' not in cls.__dict__:
            for column in columns.values():
                if column.primary_key and column.name:
                    cls.__primary_key__ = column.name
                    break

        if cls.__dict__.get('__abstract__', False):
            return

        if not cls.__dict__.get('__tablename__'):
            cls.__tablename__ = snake_case(cls.__name__) + 's'

        if cls.__registry__ is not None:
            cls.__registry__.register(cls)

    def __init__(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any):
        """
        Args:
            attributes: 初始属性（经过批量赋值规则）
            kwargs: 同 attributes
        """
        self._store = AttributeStore()
        self.exists = False
        self._store.sync()

        for column in type(self).__columns__.values():
            if column.default is not None and column.name:
                value = column.default() if callable(column.default) else column.default
                self._store.set(column.name, value)

        data = dict(attributes or {})
        data.update(kwargs)
        self.fill(data)

    # ========== 批量赋值 ==========

    def fill(self: T, attributes: Dict[str, Any]) -> T:
        """
        按批量赋值规则写入属性

        Raises:
            MassAssignmentError: 未配置 __fillable__ 且 __protect_fields__ 为 True
        """
        if not attributes:
            return self

        cls = type(self)
        if cls.__protect_fields__:
            if not cls.__fillable__:
                raise MassAssignmentError(cls.__name__, next(iter(attributes)))
            attributes = {k: v for k, v in attributes.items() if k in cls.__fillable__}

        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    def force_fill(self: T, attributes: Dict[str, Any]) -> T:
        """跳过批量赋值规则写入属性"""
        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    # ========== 属性访问 ==========

    def get_attribute(self, key: str) -> Any:
        """
        读取属性

        依次查找列值、已缓存的关联结果、同名（或 camelCase 同名）的关联声明；
        关联声明会被解析并缓存。都不存在时返回 None，没有所属对象的多态反向关联也解析为 None。

        Raises:
            LogicError: 关联方法返回的不是 Relation
        """
        if self._store.has(key):
            return self._store.get(key)

        relations = type(self).__relations__
        name = key if key in relations else camel_case(key)
        if name not in relations:
            return None

        try:
            value = self.relation(name).get_results()
        except MissingMorphTypeError:
            value = None
        self.set_relation(key, value)
        return value

    def set_attribute(self, key: str, value: Any) -> None:
        self._store.set(key, value)

    def boot_attribute(self, key: str, value: Any) -> None:
        """写入预加载的计算字段（不参与脏检查）"""
        self._store.boot(key, value)

    def has_attribute(self, key: str) -> bool:
        return self._store.has(key)

    def get_attributes(self) -> Dict[str, Any]:
        return dict(self._store.attributes)

    def set_raw_attributes(self, attributes: Dict[str, Any], sync: bool = False) -> None:
        self._store.set_raw(attributes, sync)

    def get_original(self, key: Optional[str] = None) -> Any:
        if key is None:
            return dict(self._store.original)
        return self._store.original.get(key)

    def get_dirty(self) -> Dict[str, Any]:
        return self._store.dirty()

    def is_dirty(self, *keys: str) -> bool:
        return self._store.is_dirty(keys)

    def sync_original(self) -> None:
        self._store.sync()

    def get_key(self) -> Any:
        return self._store.get(self.get_key_name())

    # ========== 关联缓存 ==========

    def relation(self, name: str) -> Relation:
        """
        构造名为 name 的关联描述符

        Raises:
            LogicError: 未声明该关联，或关联方法返回的不是 Relation
        """
        declared = type(self).__relations__.get(name)
        if declared is None:
            raise LogicError(f"{type(self).__name__} has no relation '{name}'")

        result = declared.build(self)
        if not isinstance(result, Relation):
            raise LogicError('Relationship method must return an object of type Relation')
        return result

    def set_relation(self, name: str, value: Any) -> None:
        self._store.relations[name] = value

    def get_relation(self, name: str) -> Any:
        return self._store.relations.get(name)

    def relation_loaded(self, name: str) -> bool:
        return name in self._store.relations

    def get_relations(self) -> Dict[str, Any]:
        return dict(self._store.relations)

    def load(self: T, *relations: Any, **named: Any) -> T:
        """在已有记录上执行预加载"""
        EagerLoadPlanner(EagerLoadPlanner.parse(*relations, **named)).load(self)
        return self

    # ========== 类级信息 ==========

    @classmethod
    def get_table(cls) -> str:
        return cls.__tablename__ or snake_case(cls.__name__) + 's'

    @classmethod
    def get_key_name(cls) -> str:
        return cls.__primary_key__

    @classmethod
    def get_delete_key(cls) -> str:
        return cls.__delete_key__

    @classmethod
    def get_morph_class(cls) -> str:
        return cls.__morph_name__ or cls.__name__

    @classmethod
    def get_foreign_key(cls) -> str:
        """其他表引用本模型时的默认外键：user_id"""
        return f"{snake_case(cls.__name__)}_{cls.get_key_name()}"

    @classmethod
    def get_connection(cls) -> Connection:
        if cls.__connection__ is None:
            raise ConfigurationError(f"Model '{cls.__name__}' is not bound to a connection")
        return cls.__connection__

    @classmethod
    def set_connection(cls, connection: Connection) -> None:
        cls.__connection__ = connection

    @classmethod
    def get_registry(cls) -> KindRegistry:
        if cls.__registry__ is None:
            raise ConfigurationError(f"Model '{cls.__name__}' has no kind registry")
        return cls.__registry__

    def join_tables(self, related: 'Model') -> str:
        """多对多默认中间表名：两张表名按字典序排序后用 '_' 连接"""
        return '_'.join(sorted([self.get_table(), related.get_table()]))

    # ========== 查询入口 ==========

    def new_query(self) -> Builder:
        return Builder(self.get_connection(), self)

    def new_instance(self: T, attributes: Optional[Dict[str, Any]] = None, exists: bool = False) -> T:
        instance = type(self)(attributes)
        instance.exists = exists
        return instance

    def new_from_query(self: T, row: Dict[str, Any], eager: Optional[Dict[str, Any]] = None) -> T:
        """
        把结果行实例化为记录

        快照在实例化时同步，之后触发 retrieved 事件并执行预加载。
        """
        instance = self.new_instance(exists=True)
        instance.set_raw_attributes(row, sync=True)
        event.dispatch(type(instance), 'retrieved', instance)
        if eager:
            EagerLoadPlanner(eager).load(instance)
        return instance

    @classmethod
    def query(cls) -> Builder:
        return cls().new_query()

    @classmethod
    def where(cls, column: Any, *args: Any) -> Builder:
        return cls.query().where(column, *args)

    @classmethod
    def find(cls, ids: Any) -> Any:
        return cls.query().find(ids)

    @classmethod
    def find_or_fail(cls, ids: Any) -> Any:
        return cls.query().find_or_fail(ids)

    @classmethod
    def first(cls) -> Optional['Model']:
        return cls.query().first()

    @classmethod
    def all(cls) -> Collection:
        return cls.query().get()

    @classmethod
    def with_(cls, *relations: Any, **named: Any) -> Builder:
        return cls.query().with_(*relations, **named)

    @classmethod
    def with_trashed(cls) -> Builder:
        return cls.query().with_trashed()

    @classmethod
    def only_trashed(cls) -> Builder:
        return cls.query().only_trashed()

    # ========== 持久化 ==========

    @classmethod
    def create(cls: Type[T], **attributes: Any) -> T:
        """按批量赋值规则创建并保存记录"""
        instance = cls(attributes)
        instance.save()
        return instance

    def save(self, **attributes: Any) -> bool:
        """
        保存记录

        新记录执行 INSERT；已存在的记录只 UPDATE 脏属性，没有脏属性时返回 False。

        Args:
            attributes: 保存前直接写入的属性（不经过批量赋值规则）

        Returns:
            是否执行了写入
        """
        self.force_fill(attributes)
        cls = type(self)

        if self.exists:
            if not self.get_dirty():
                return False
            event.dispatch(cls, 'before_update', self)
            if cls.__timestamps__ and cls.UPDATED_AT:
                self.set_attribute(cls.UPDATED_AT, _now())
            self.new_query().update(self.get_dirty())
            self.sync_original()
            event.dispatch(cls, 'after_update', self)
            return True

        event.dispatch(cls, 'before_insert', self)
        if cls.__timestamps__:
            now = _now()
            for column in (cls.CREATED_AT, cls.UPDATED_AT):
                if column and self._store.get(column) is None:
                    self.set_attribute(column, now)
        data = {k: v for k, v in self._store.attributes.items() if k not in self._store.bootable}
        self.new_query().create(data)
        self.exists = True
        self.sync_original()
        event.dispatch(cls, 'after_insert', self)
        return True

    def update(self, **attributes: Any) -> bool:
        """按批量赋值规则写入属性后保存"""
        self.fill(attributes)
        return self.save()

    def delete(self, permanent: bool = False) -> bool:
        """
        删除记录

        __soft_deletes__ 开启且非 permanent 时只写入删除标记，否则物理删除。

        Returns:
            记录不存在于数据库时返回 False
        """
        if not self.exists:
            return False

        cls = type(self)
        event.dispatch(cls, 'before_delete', self)
        if cls.__soft_deletes__ and not permanent:
            delete_key = cls.get_delete_key()
            now = _now()
            self.set_attribute(delete_key, now)
            self.new_query().update({delete_key: now})
            self._store.original[delete_key] = now
        else:
            self.new_query().where(self.get_key_name(), '=', self.get_key()).delete()
            self.exists = False
        event.dispatch(cls, 'after_delete', self)
        return True

    def force_delete(self) -> bool:
        return self.delete(permanent=True)

    def restore(self) -> bool:
        """清除删除标记"""
        self.set_attribute(self.get_delete_key(), None)
        return self.save()

    def trashed(self) -> bool:
        return self._store.get(self.get_delete_key()) is not None

    def touch(self) -> bool:
        if not type(self).__timestamps__ or not self.UPDATED_AT:
            return False
        self.set_attribute(self.UPDATED_AT, _now())
        return self.save()

    def refresh(self: T) -> T:
        """
        从数据库重新读取属性，清空关联缓存

        Raises:
            RecordNotFoundError: 记录已不存在
        """
        fresh = self.new_query().with_trashed().find(self.get_key())
        if fresh is None:
            raise RecordNotFoundError(type(self).__name__, self.get_key())
        self.set_raw_attributes(fresh.get_attributes(), sync=True)
        self._store.relations.clear()
        return self

    def replicate(self: T, except_keys: Iterable[str] = ()) -> T:
        """复制为未保存的新记录（去掉主键与时间戳）"""
        cls = type(self)
        excluded = {self.get_key_name(), cls.CREATED_AT, cls.UPDATED_AT, *except_keys}
        instance = cls()
        instance.force_fill({
            k: v for k, v in self._store.attributes.items()
            if k not in excluded and k not in self._store.bootable
        })
        return instance

    def __copy__(self: T) -> T:
        instance = type(self).__new__(type(self))
        instance.__dict__.update(self.__dict__)
        instance._store = self._store.copy()
        return instance

    # ========== 序列化 ==========

    def to_dict(self) -> Dict[str, Any]:
        """
        转换为字典

        包含列值与已加载的关联；dict/list 列中的 JSON 文本会被解码，__hidden__ 中的列被移除。
        """
        json_columns = {
            column.name for column in type(self).__columns__.values()
            if column.col_type in (dict, list)
        }

        data: Dict[str, Any] = {}
        for key, value in self._store.attributes.items():
            if key in json_columns and isinstance(value, str):
                try:
                    value = json.loads(value)
                except ValueError:
                    pass
            data[key] = value

        for name, value in self._store.relations.items():
            if isinstance(value, Model):
                data[name] = value.to_dict()
            elif isinstance(value, Collection):
                data[name] = value.to_list()
            else:
                data[name] = value

        for key in type(self).__hidden__:
            data.pop(key, None)
        return data

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), default=str, **kwargs)

    # ========== 关联构造 ==========

    def _related_instance(self, related: Union[str, Type['Model']]) -> 'Model':
        if isinstance(related, str):
            related = self.get_registry().resolve(related, type(self).__module__)
        return related()

    def has_one(
        self,
        related: Union[str, Type['Model']],
        foreign_key: Optional[str] = None,
        local_key: Optional[str] = None
    ) -> HasOne:
        instance = self._related_instance(related)
        foreign_key = foreign_key or self.get_foreign_key()
        return HasOne(
            instance.new_query(), self,
            f"{instance.get_table()}.{foreign_key}",
            local_key or self.get_key_name()
        )

    def has_many(
        self,
        related: Union[str, Type['Model']],
        foreign_key: Optional[str] = None,
        local_key: Optional[str] = None
    ) -> HasMany:
        instance = self._related_instance(related)
        foreign_key = foreign_key or self.get_foreign_key()
        return HasMany(
            instance.new_query(), self,
            f"{instance.get_table()}.{foreign_key}",
            local_key or self.get_key_name()
        )

    def belongs_to(
        self,
        related: Union[str, Type['Model']],
        foreign_key: Optional[str] = None,
        owner_key: Optional[str] = None,
        relation: Optional[str] = None
    ) -> BelongsTo:
        """
        多对一关联

        外键默认为 "<关联名>_id"，关联名取 relation 参数或当前 @relation 方法名。

        Raises:
            LogicError: 需要推导外键但无法得知关联名
        """
        name = relation or self.__dict__.get('_declaring_relation')
        if foreign_key is None:
            if not name:
                raise LogicError('belongs_to() needs a relation name to derive its foreign key')
            foreign_key = f"{snake_case(name)}_id"

        instance = self._related_instance(related)
        return BelongsTo(
            instance.new_query(), self, foreign_key,
            owner_key or instance.get_key_name(), name
        )

    def belongs_to_many(
        self,
        related: Union[str, Type['Model']],
        table: Optional[str] = None,
        foreign_pivot_key: Optional[str] = None,
        related_pivot_key: Optional[str] = None,
        parent_key: Optional[str] = None,
        related_key: Optional[str] = None
    ) -> BelongsToMany:
        instance = self._related_instance(related)
        return BelongsToMany(
            instance.new_query(), self,
            table or self.join_tables(instance),
            foreign_pivot_key or self.get_foreign_key(),
            related_pivot_key or instance.get_foreign_key(),
            parent_key or self.get_key_name(),
            related_key or instance.get_key_name(),
            self.__dict__.get('_declaring_relation')
        )

    def morph_one(
        self,
        related: Union[str, Type['Model']],
        name: str,
        type_column: Optional[str] = None,
        id_column: Optional[str] = None,
        local_key: Optional[str] = None
    ) -> MorphOne:
        instance = self._related_instance(related)
        table = instance.get_table()
        return MorphOne(
            instance.new_query(), self,
            f"{table}.{type_column or name + '_type'}",
            f"{table}.{id_column or name + '_id'}",
            local_key or self.get_key_name()
        )

    def morph_many(
        self,
        related: Union[str, Type['Model']],
        name: str,
        type_column: Optional[str] = None,
        id_column: Optional[str] = None,
        local_key: Optional[str] = None
    ) -> MorphMany:
        instance = self._related_instance(related)
        table = instance.get_table()
        return MorphMany(
            instance.new_query(), self,
            f"{table}.{type_column or name + '_type'}",
            f"{table}.{id_column or name + '_id'}",
            local_key or self.get_key_name()
        )

    def morph_to(
        self,
        name: Optional[str] = None,
        type_column: Optional[str] = None,
        id_column: Optional[str] = None,
        owner_key: Optional[str] = None
    ) -> MorphTo:
        """
        多态反向关联

        类型列中的标记经由 KindRegistry 解析为目标模型类。

        Raises:
            LogicError: 无法得知关联名
            MissingMorphTypeError: 类型列为空
            KindNotFoundError: 标记没有对应的已注册模型类
        """
        name = name or self.__dict__.get('_declaring_relation')
        if not name:
            raise LogicError('morph_to() needs a relation name to derive its columns')

        type_column = type_column or f"{name}_type"
        id_column = id_column or f"{name}_id"
        tag = self._store.get(type_column)
        if not tag:
            raise MissingMorphTypeError(type(self).__name__, name, type_column)

        instance = self._related_instance(str(tag))
        return MorphTo(
            instance.new_query(), self, id_column,
            owner_key or instance.get_key_name(), type_column, name
        )

    # ========== 魔术方法 ==========

    def __getattr__(self, name: str) -> Any:
        # 只在常规属性查找失败后调用：暴露未声明 Column 的列与计算字段
        if name.startswith('_'):
            raise AttributeError(name)
        store = self.__dict__.get('_store')
        if store is not None and store.has(name):
            return store.get(name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __getitem__(self, key: str) -> Any:
        return self.get_attribute(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set_attribute(key, value)

    def __delitem__(self, key: str) -> None:
        self._store.unset(key)

    def __contains__(self, key: str) -> bool:
        return self._store.has(key)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.get_key_name()}={self.get_key()!r})>"


class PermanentDeleteMixin:
    """
    永久删除混入

    放在模型基类之前：class AuditLog(PermanentDeleteMixin, Base)。
    delete() 总是物理删除，忽略 __soft_deletes__。
    """

    def delete(self, permanent: bool = True) -> bool:
        return super().delete(permanent=True)  # type: ignore[misc]


def declarative_base(
    connection: Optional[Connection] = None,
    registry: Optional[KindRegistry] = None
) -> Type[Model]:
    """
    创建声明式基类

    Args:
        connection: 模型使用的数据库连接（可稍后通过 set_connection 绑定）
        registry: 模型注册表，同一注册表内的模型互相可见（多态解析的命名空间）

    Returns:
        抽象模型基类
    """
    kind_registry = registry if registry is not None else KindRegistry()

    class DeclarativeBase(Model):
        __abstract__ = True
        __connection__ = connection
        __registry__ = kind_registry

    return DeclarativeBase
