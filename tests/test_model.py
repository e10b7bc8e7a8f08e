"""
Pyactive 模型测试

测试方法：
- 等价类划分：批量赋值的三种模式
- 场景设计：插入、更新、时间戳、序列化
- 错误推断：未绑定连接、空更新

覆盖范围：
- declarative_base 与类级配置
- fill / force_fill
- save / create / update / touch / refresh / replicate
- to_dict / to_json
"""

import copy
import json
from types import SimpleNamespace

import pytest

from pyactive import (
    Column,
    ConfigurationError,
    KindRegistry,
    MassAssignmentError,
    RecordNotFoundError,
    declarative_base,
)


class TestDeclaration:
    """类级配置测试"""

    def test_default_table_name(self) -> None:
        """默认表名为 snake_case 类名加 s"""
        Base = declarative_base()

        class BlogPost(Base):
            id = Column(int, primary_key=True)

        assert BlogPost.get_table() == 'blog_posts'

    def test_primary_key_from_column(self) -> None:
        Base = declarative_base()

        class Setting(Base):
            __tablename__ = 'settings'
            key = Column('key', str, primary_key=True)
            value = Column(str)

        assert Setting.get_key_name() == 'key'
        assert Setting.__columns__['value'].name == 'value'

    def test_column_name_differs_from_attribute(self) -> None:
        Base = declarative_base()

        class Account(Base):
            id = Column(int, primary_key=True)
            label = Column('display_name', str)

        account = Account()
        account.label = 'x'
        assert account.get_attributes() == {'display_name': 'x'}

    def test_column_rejects_extra_arguments(self) -> None:
        with pytest.raises(TypeError):
            Column('name', str, 'extra')

    def test_column_default(self) -> None:
        Base = declarative_base()

        class Flag(Base):
            __protect_fields__ = False
            id = Column(int, primary_key=True)
            enabled = Column(bool, default=True)
            tags = Column(list, default=list)

        flag = Flag()
        assert flag.enabled is True
        assert flag.tags == []
        assert Flag(enabled=False).enabled is False

    def test_registration(self) -> None:
        """具体模型注册到基类的注册表，抽象模型不注册"""
        registry = KindRegistry()
        Base = declarative_base(registry=registry)

        class Abstract(Base):
            __abstract__ = True

        class Invoice(Abstract):
            id = Column(int, primary_key=True)

        assert 'Invoice' in registry
        assert 'Abstract' not in registry
        assert Invoice.get_registry() is registry

    def test_unbound_model(self) -> None:
        Base = declarative_base()

        class Orphan(Base):
            id = Column(int, primary_key=True)

        with pytest.raises(ConfigurationError):
            Orphan.query()

    def test_set_connection_later(self, connection) -> None:
        Base = declarative_base()

        class Country(Base):
            __tablename__ = 'countries'
            __fillable__ = ['name']
            id = Column(int, primary_key=True)
            name = Column(str)

        Base.set_connection(connection)
        assert Country.create(name='Peru').id == 1

    def test_foreign_key_and_morph_defaults(self, models: SimpleNamespace) -> None:
        assert models.User.get_foreign_key() == 'user_id'
        assert models.User.get_morph_class() == 'User'
        assert models.User().join_tables(models.Role()) == 'roles_users'


class TestMassAssignment:
    """批量赋值测试"""

    def test_fillable_filters_keys(self, models: SimpleNamespace) -> None:
        """不在 __fillable__ 中的键被丢弃"""
        user = models.User(name='alice', password='secret')
        assert user.name == 'alice'
        assert user.password is None

    def test_protected_without_fillable_raises(self, models: SimpleNamespace) -> None:
        Base = models.Base

        class Locked(Base):
            __tablename__ = 'users'
            id = Column(int, primary_key=True)
            name = Column(str)

        with pytest.raises(MassAssignmentError) as exc_info:
            Locked(name='x')
        assert exc_info.value.model_name == 'Locked'
        assert exc_info.value.key == 'name'

    def test_empty_fill_is_allowed(self, models: SimpleNamespace) -> None:
        Base = models.Base

        class Locked(Base):
            __tablename__ = 'users'
            id = Column(int, primary_key=True)

        assert Locked().get_attributes() == {}

    def test_unprotected_assigns_everything(self, models: SimpleNamespace) -> None:
        tag = models.Tag(name='python', extra='kept')
        assert tag.get_attributes() == {'name': 'python', 'extra': 'kept'}

    def test_force_fill_skips_rules(self, models: SimpleNamespace) -> None:
        user = models.User().force_fill({'password': 'secret'})
        assert user.password == 'secret'


class TestPersistence:
    """持久化测试"""

    def test_create_inserts_and_syncs(self, models: SimpleNamespace) -> None:
        user = models.User.create(name='alice', age=30)

        assert user.exists
        assert user.id == 1
        assert user.get_dirty() == {}
        assert models.User.find(1).name == 'alice'

    def test_save_updates_only_dirty(self, blog: SimpleNamespace, connection) -> None:
        alice = blog.models.User.find(blog.alice.id)
        connection.run("UPDATE users SET email = 'changed@example.com' WHERE id = ?", [alice.id])

        alice.age = 31
        assert alice.save()

        fresh = blog.models.User.find(alice.id)
        assert fresh.age == 31
        assert fresh.email == 'changed@example.com'

    def test_mutated_container_value_is_dirty(self, models: SimpleNamespace) -> None:
        """原地修改 dict 值后写回，快照不随之改变"""
        user = models.User(name='alice', settings={'theme': 'dark'})
        user.sync_original()

        settings = user.settings
        settings['lang'] = 'en'
        user.settings = settings

        assert user.get_dirty() == {'settings': {'theme': 'dark', 'lang': 'en'}}
        assert user.get_original('settings') == {'theme': 'dark'}

    def test_save_without_changes(self, blog: SimpleNamespace) -> None:
        alice = blog.models.User.find(blog.alice.id)
        assert alice.save() is False

    def test_save_with_attributes(self, blog: SimpleNamespace) -> None:
        bob = blog.models.User.find(blog.bob.id)
        bob.save(password='hunter2')
        assert blog.models.User.find(bob.id).password == 'hunter2'

    def test_update(self, blog: SimpleNamespace) -> None:
        carol = blog.models.User.find(blog.carol.id)
        assert carol.update(age=42)
        assert blog.models.User.find(carol.id).age == 42

    def test_timestamps(self, models: SimpleNamespace) -> None:
        """插入时写入 created_at / updated_at"""
        post = models.Post.create(title='stamped')

        assert post.created_at is not None
        assert post.updated_at == post.created_at
        assert len(post.created_at) == len('2024-01-01 00:00:00')

    def test_update_touches_updated_at(self, models: SimpleNamespace) -> None:
        post = models.Post.create(title='stamped')
        post.set_attribute('updated_at', '2000-01-01 00:00:00')
        post.sync_original()

        post.title = 'restamped'
        post.save()
        assert post.updated_at != '2000-01-01 00:00:00'
        assert models.Post.find(post.id).updated_at == post.updated_at

    def test_touch(self, models: SimpleNamespace) -> None:
        post = models.Post.create(title='x')
        post.set_attribute('updated_at', None)
        assert post.touch()
        assert post.updated_at is not None
        assert models.User().touch() is False

    def test_refresh(self, blog: SimpleNamespace, connection) -> None:
        alice = blog.models.User.find(blog.alice.id)
        alice.posts
        connection.run("UPDATE users SET name = 'ALICE' WHERE id = ?", [alice.id])

        alice.refresh()
        assert alice.name == 'ALICE'
        assert not alice.relation_loaded('posts')

    def test_refresh_missing_record(self, blog: SimpleNamespace) -> None:
        carol = blog.models.User.find(blog.carol.id)
        blog.models.User.where('id', carol.id).delete()
        with pytest.raises(RecordNotFoundError):
            carol.refresh()

    def test_replicate(self, blog: SimpleNamespace) -> None:
        """replicate 去掉主键与时间戳"""
        post = blog.models.Post.find(blog.posts[0].id)
        clone = post.replicate()

        assert not clone.exists
        assert clone.id is None
        assert clone.created_at is None
        assert clone.title == 'First post'
        clone.save()
        assert clone.id != post.id

    def test_copy_is_independent(self, blog: SimpleNamespace) -> None:
        alice = blog.models.User.find(blog.alice.id)
        twin = copy.copy(alice)
        twin.name = 'twin'

        assert alice.name == 'alice'
        assert twin.exists
        assert twin.is_dirty('name')
        assert not alice.is_dirty()


class TestSerialization:
    """序列化测试"""

    def test_to_dict_hides_and_decodes(self, models: SimpleNamespace) -> None:
        user = models.User.create(name='alice', settings=json.dumps({'theme': 'dark'}))
        user.save(password='secret')

        data = models.User.find(user.id).to_dict()
        assert data['settings'] == {'theme': 'dark'}
        assert 'password' not in data

    def test_invalid_json_is_left_as_text(self, models: SimpleNamespace) -> None:
        user = models.User(settings='{not json')
        assert user.to_dict()['settings'] == '{not json'

    def test_to_json(self, blog: SimpleNamespace) -> None:
        post = blog.models.Post.with_('comments').find(blog.posts[0].id)
        data = json.loads(post.to_json())

        assert data['title'] == 'First post'
        assert [c['body'] for c in data['comments']] == ['nice', 'great']

    def test_collection_to_json(self, blog: SimpleNamespace) -> None:
        names = [row['name'] for row in json.loads(blog.models.Role.all().to_json())]
        assert names == ['admin', 'editor']

    def test_repr(self, blog: SimpleNamespace) -> None:
        assert repr(blog.models.User.find(blog.bob.id)) == '<User(id=2)>'
