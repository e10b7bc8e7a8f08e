"""
Pyactive 模型类注册表测试

覆盖范围：
- snake_case / camel_case / studly_case
- register / get / resolve
- 命名空间优先
- 大小写不敏感的回退匹配
"""

import pytest

from pyactive import Column, KindNotFoundError, KindRegistry, declarative_base
from pyactive.core.registry import camel_case, snake_case, studly_case


class TestNameHelpers:
    """命名转换测试"""

    @pytest.mark.parametrize('value, expected', [
        ('BlogPost', 'blog_post'),
        ('User', 'user'),
        ('HTTPRequest', 'http_request'),
        ('already_snake', 'already_snake'),
    ])
    def test_snake_case(self, value: str, expected: str) -> None:
        assert snake_case(value) == expected

    def test_camel_case(self) -> None:
        assert camel_case('blog_post') == 'blogPost'
        assert camel_case('latest-post') == 'latestPost'
        assert camel_case('') == ''

    def test_studly_case(self) -> None:
        assert studly_case('blog_post') == 'BlogPost'
        assert studly_case('post') == 'Post'


class TestKindRegistry:
    """注册与解析测试"""

    @pytest.fixture
    def registry(self) -> KindRegistry:
        registry = KindRegistry()
        Base = declarative_base(registry=registry)

        class Post(Base):
            id = Column(int, primary_key=True)

        class BlogPost(Base):
            id = Column(int, primary_key=True)

        return registry

    def test_registered_by_name_and_module(self, registry: KindRegistry) -> None:
        assert 'Post' in registry
        assert f"{__name__}.Post" in registry
        assert len(registry) == 2

    def test_iteration_order(self, registry: KindRegistry) -> None:
        assert [kind.__name__ for kind in registry] == ['Post', 'BlogPost']

    def test_get_missing_returns_none(self, registry: KindRegistry) -> None:
        assert registry.get('Video') is None

    def test_get_prefers_namespace(self, registry: KindRegistry) -> None:
        other = type('Post', (), {'__module__': 'other.models'})
        registry.register(other)  # type: ignore[arg-type]

        assert registry.get('Post', 'other.models') is other
        assert registry.get('Post', __name__).__module__ == __name__

    def test_resolve_exact(self, registry: KindRegistry) -> None:
        assert registry.resolve('BlogPost').__name__ == 'BlogPost'

    def test_resolve_snake_tag(self, registry: KindRegistry) -> None:
        """'blog_post' 规范化为 'BlogPost'"""
        assert registry.resolve('blog_post').__name__ == 'BlogPost'
        assert registry.resolve('post').__name__ == 'Post'

    def test_resolve_lowercase_tag(self, registry: KindRegistry) -> None:
        assert registry.resolve('blogpost').__name__ == 'BlogPost'

    def test_resolve_unknown(self, registry: KindRegistry) -> None:
        with pytest.raises(KindNotFoundError) as exc_info:
            registry.resolve('video', 'app')
        assert exc_info.value.tag == 'video'
        assert exc_info.value.namespace == 'app'

    def test_later_registration_wins(self, registry: KindRegistry) -> None:
        Base = declarative_base(registry=registry)

        class Post(Base):
            __tablename__ = 'articles'
            id = Column(int, primary_key=True)

        assert registry.get('Post') is Post
        assert len(registry) == 2

    def test_custom_morph_name(self) -> None:
        registry = KindRegistry()
        Base = declarative_base(registry=registry)

        class Article(Base):
            __morph_name__ = 'Story'
            id = Column(int, primary_key=True)

        assert Article.get_morph_class() == 'Story'
        assert registry.resolve('story') is Article
