"""
Pyactive 预加载测试

测试 EagerLoadPlanner 的特性：
- 关联名与点分路径
- 回调（返回 None / 描述符 / 标量）
- 静态字段
- 未知路径静默跳过
"""

from types import SimpleNamespace

import pytest

from pyactive import EagerLoadPlanner
from pyactive.core.eager import LOAD


class TestParse:
    """请求解析测试"""

    def test_parse_mixed_requests(self) -> None:
        def callback(record):
            return None

        requests = EagerLoadPlanner.parse('a', ['b', ('c.d',)], {'e': callback}, f=1)
        assert requests == {'a': LOAD, 'b': LOAD, 'c.d': LOAD, 'e': callback, 'f': 1}

    def test_parse_rejects_unknown_types(self) -> None:
        with pytest.raises(TypeError):
            EagerLoadPlanner.parse(42)


class TestRelationPaths:
    """关联名与点分路径测试"""

    def test_single_relation(self, blog: SimpleNamespace) -> None:
        """with_ 的关联在实例化时写入缓存"""
        posts = blog.models.Post.with_('author').order_by('id').get()

        assert all(post.relation_loaded('author') for post in posts)
        assert [post.get_relation('author').name for post in posts] == ['alice', 'alice', 'bob']

    def test_nested_path_is_attached_under_head(self, blog: SimpleNamespace) -> None:
        """'author.country' 的结果挂在 author 下，country 嵌套在 author 中"""
        posts = blog.models.Post.with_('author.country').order_by('id').get()

        for post in posts:
            assert post.relation_loaded('author')
            assert not post.relation_loaded('author.country')
            assert post.get_relation('author').relation_loaded('country')

        countries = [post.get_relation('author').get_relation('country').name for post in posts]
        assert countries == ['France', 'France', 'Japan']

    def test_paths_sharing_a_head_are_merged(self, blog: SimpleNamespace) -> None:
        post = blog.models.Post.with_('author.country', 'author.roles').find(blog.posts[0].id)
        author = post.get_relation('author')

        assert author.get_relation('country').name == 'France'
        assert sorted(author.get_relation('roles').pluck('name')) == ['admin', 'editor']

    def test_collection_relations(self, blog: SimpleNamespace) -> None:
        users = blog.models.User.with_('posts', 'roles').order_by('id').get()
        alice, bob, carol = users

        assert alice.get_relation('posts').pluck('title') == ['First post', 'Second post']
        assert bob.get_relation('roles').pluck('name') == ['editor']
        assert carol.get_relation('posts') == []
        assert carol.get_relation('roles') == []

    def test_missing_owner_resolves_to_none(self, blog: SimpleNamespace) -> None:
        carol = blog.models.User.with_('country').where('name', 'carol').first()
        assert carol.relation_loaded('country')
        assert carol.get_relation('country') is None

    def test_polymorphic_owner(self, blog: SimpleNamespace) -> None:
        comments = blog.models.Comment.with_('commentable').order_by('id').get()
        owners = [type(comment.get_relation('commentable')).__name__ for comment in comments]
        assert owners == ['Post', 'Post', 'User']

    def test_polymorphic_owner_without_type(self, blog: SimpleNamespace) -> None:
        """类型列为空的记录解析为 None，不影响同一查询中的其他记录"""
        orphan = blog.models.Comment.create(body='orphan')
        comments = blog.models.Comment.with_('commentable').order_by('id').get()

        assert len(comments) == 4
        assert comments[-1].id == orphan.id
        assert comments[-1].relation_loaded('commentable')
        assert comments[-1].get_relation('commentable') is None
        assert type(comments[0].get_relation('commentable')).__name__ == 'Post'

    def test_polymorphic_owner_without_type_on_access(self, blog: SimpleNamespace) -> None:
        orphan = blog.models.Comment.find(blog.models.Comment.create(body='orphan').id)
        assert orphan.commentable is None

    def test_unknown_paths_are_skipped(self, blog: SimpleNamespace) -> None:
        """未知路径不报错，也不写入任何字段"""
        post = blog.models.Post.with_('missing', 'missing.deeper').find(blog.posts[0].id)

        assert post is not None
        assert not post.relation_loaded('missing')
        assert 'missing' not in post.get_attributes()

    def test_load_on_existing_record(self, blog: SimpleNamespace) -> None:
        alice = blog.models.User.find(blog.alice.id)
        result = alice.load('posts.author', 'country')

        assert result is alice
        assert alice.get_relation('country').name == 'France'
        assert alice.get_relation('posts').first().get_relation('author').name == 'alice'


class TestCallbacksAndStaticValues:
    """回调与静态字段测试"""

    def test_callback_returning_descriptor(self, blog: SimpleNamespace) -> None:
        """回调返回描述符时执行 get()"""
        post = blog.models.Post.with_(
            {'comments': lambda post: post.relation('comments').where('body', 'nice')}
        ).find(blog.posts[0].id)

        assert post.get_relation('comments').pluck('body') == ['nice']

    def test_callback_returning_builder(self, blog: SimpleNamespace) -> None:
        Post = blog.models.Post
        user = blog.models.User.with_(
            recent=lambda user: Post.where('user_id', user.id).order_by('id', 'DESC').limit(1)
        ).find(blog.alice.id)

        assert user.get_relation('recent').pluck('title') == ['Second post']

    def test_callback_returning_none_falls_back_to_relation(self, blog: SimpleNamespace) -> None:
        post = blog.models.Post.with_(author=lambda post: None).find(blog.posts[2].id)
        assert post.get_relation('author').name == 'bob'

    def test_callback_returning_scalar_is_booted(self, blog: SimpleNamespace) -> None:
        """标量结果作为计算字段写入，不参与脏检查"""
        post = blog.models.Post.with_(
            comment_count=lambda post: post.relation('comments').count()
        ).find(blog.posts[0].id)

        assert post.comment_count == 2
        assert post.get_dirty() == {}

    def test_static_value(self, blog: SimpleNamespace) -> None:
        posts = blog.models.Post.with_(source='import').get()

        assert all(post.source == 'import' for post in posts)
        assert all(not post.is_dirty() for post in posts)

    def test_booted_fields_are_not_saved(self, blog: SimpleNamespace) -> None:
        post = blog.models.Post.with_(source='import').find(blog.posts[0].id)
        post.title = 'Renamed'
        post.save()

        assert blog.models.Post.find(post.id).title == 'Renamed'

    def test_to_dict_includes_loaded_relations(self, blog: SimpleNamespace) -> None:
        post = blog.models.Post.with_('author.country').find(blog.posts[0].id)
        data = post.to_dict()

        assert data['author']['country']['name'] == 'France'
        assert 'password' not in data['author']
