"""
Pytest 配置和共享 fixtures

此文件提供 pytest 测试所需的共享配置和 fixtures：
一个内存 SQLite 连接（博客 schema）以及绑定到它的一组模型。
"""
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Generator

import pytest

# 确保可以导入 pyactive
sys.path.insert(0, str(Path(__file__).parent.parent))

from pyactive import (
    Column,
    PermanentDeleteMixin,
    SqliteConnection,
    declarative_base,
    event,
    relation,
)


BLOG_SCHEMA = """
CREATE TABLE countries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT
);
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    email TEXT,
    age INTEGER,
    country_id INTEGER,
    settings TEXT,
    password TEXT
);
CREATE TABLE posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    title TEXT,
    views INTEGER DEFAULT 0,
    created_at TEXT,
    updated_at TEXT,
    deleted_at TEXT
);
CREATE TABLE comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    commentable_type TEXT,
    commentable_id INTEGER,
    body TEXT
);
CREATE TABLE roles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT
);
CREATE TABLE roles_users (
    user_id INTEGER,
    role_id INTEGER,
    level INTEGER
);
CREATE TABLE images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    imageable_type TEXT,
    imageable_id INTEGER,
    url TEXT
);
CREATE TABLE tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT
);
"""


@pytest.fixture
def connection() -> Generator[SqliteConnection, None, None]:
    """
    提供带博客 schema 的内存 SQLite 连接

    Yields:
        SqliteConnection 实例
    """
    conn = SqliteConnection(':memory:')
    conn.executescript(BLOG_SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def models(connection: SqliteConnection) -> SimpleNamespace:
    """
    提供绑定到内存连接的博客模型

    Returns:
        以类名为属性的 SimpleNamespace
    """
    Base = declarative_base(connection)

    class Country(Base):
        __tablename__ = 'countries'
        __fillable__ = ['name']

        id = Column('id', int, primary_key=True)
        name = Column('name', str)

        @relation
        def users(self):
            return self.has_many('User')

    class User(Base):
        __tablename__ = 'users'
        __fillable__ = ['name', 'email', 'age', 'country_id', 'settings']
        __hidden__ = ['password']

        id = Column('id', int, primary_key=True)
        name = Column('name', str)
        email = Column('email', str)
        age = Column('age', int)
        country_id = Column('country_id', int)
        settings = Column('settings', dict)
        password = Column('password', str)

        @relation
        def posts(self):
            return self.has_many('Post')

        @relation
        def latest_post(self):
            return self.has_one('Post').order_by('posts.id', 'DESC')

        @relation
        def country(self):
            return self.belongs_to('Country')

        @relation
        def roles(self):
            return self.belongs_to_many('Role')

        @relation
        def avatar(self):
            return self.morph_one('Image', 'imageable')

        @relation
        def comments(self):
            return self.morph_many('Comment', 'commentable')

    class Post(Base):
        __tablename__ = 'posts'
        __fillable__ = ['user_id', 'title', 'views']
        __timestamps__ = True
        __soft_deletes__ = True

        id = Column('id', int, primary_key=True)
        user_id = Column('user_id', int)
        title = Column('title', str)
        views = Column('views', int)
        created_at = Column('created_at', str)
        updated_at = Column('updated_at', str)
        deleted_at = Column('deleted_at', str)

        @relation
        def author(self):
            return self.belongs_to('User', foreign_key='user_id')

        @relation
        def comments(self):
            return self.morph_many('Comment', 'commentable')

        @relation
        def images(self):
            return self.morph_many('Image', 'imageable')

    class Comment(Base):
        __tablename__ = 'comments'
        __fillable__ = ['body', 'commentable_type', 'commentable_id']

        id = Column('id', int, primary_key=True)
        commentable_type = Column('commentable_type', str)
        commentable_id = Column('commentable_id', int)
        body = Column('body', str)

        @relation
        def commentable(self):
            return self.morph_to()

    class Role(Base):
        __tablename__ = 'roles'
        __fillable__ = ['name']

        id = Column('id', int, primary_key=True)
        name = Column('name', str)

        @relation
        def users(self):
            return self.belongs_to_many('User')

    class Image(Base):
        __tablename__ = 'images'
        __fillable__ = ['url']

        id = Column('id', int, primary_key=True)
        imageable_type = Column('imageable_type', str)
        imageable_id = Column('imageable_id', int)
        url = Column('url', str)

        @relation
        def imageable(self):
            return self.morph_to()

    class Tag(PermanentDeleteMixin, Base):
        __tablename__ = 'tags'
        __protect_fields__ = False
        __soft_deletes__ = True

        id = Column('id', int, primary_key=True)
        name = Column('name', str)

    return SimpleNamespace(
        Base=Base,
        Country=Country,
        User=User,
        Post=Post,
        Comment=Comment,
        Role=Role,
        Image=Image,
        Tag=Tag,
    )


@pytest.fixture
def blog(models: SimpleNamespace) -> SimpleNamespace:
    """
    提供已写入示例数据的博客

    - 2 个国家，3 个用户（carol 没有国家）
    - alice 2 篇文章，bob 1 篇文章
    - 第一篇文章 2 条评论，alice 1 条评论
    - alice 拥有 admin 与 editor 角色，bob 拥有 editor 角色
    """
    m = models
    france = m.Country.create(name='France')
    japan = m.Country.create(name='Japan')

    alice = m.User.create(name='alice', email='alice@example.com', age=30, country_id=france.id)
    bob = m.User.create(name='bob', email='bob@example.com', age=25, country_id=japan.id)
    carol = m.User.create(name='carol', email='carol@example.com', age=41)

    first = m.Post.create(user_id=alice.id, title='First post', views=10)
    second = m.Post.create(user_id=alice.id, title='Second post', views=20)
    third = m.Post.create(user_id=bob.id, title='Third post', views=30)

    first.relation('comments').create(body='nice')
    first.relation('comments').create(body='great')
    alice.relation('comments').create(body='hello alice')

    admin = m.Role.create(name='admin')
    editor = m.Role.create(name='editor')
    alice.relation('roles').attach([admin.id, editor.id])
    bob.relation('roles').attach(editor)

    return SimpleNamespace(
        models=m,
        france=france,
        japan=japan,
        alice=alice,
        bob=bob,
        carol=carol,
        posts=[first, second, third],
        admin=admin,
        editor=editor,
    )


@pytest.fixture(autouse=True)
def clear_events() -> Generator[None, None, None]:
    """每个测试前后清除所有事件监听器"""
    event.clear()
    yield
    event.clear()
