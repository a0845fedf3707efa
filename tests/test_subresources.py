import pytest
from entity_routes import ConfigurationError, Registry, RouteOptions, SubresourceConfig
from entity_routes.subresources import SubresourceMaker, SubresourceProperty, make_subresource_relations
from entity_routes.metadata import EntityMeta
from .models import Article, Comment, Manager, User, make_registry


def _routes(registry: Registry, entity: type = User) -> list:
    return SubresourceMaker(registry, entity).make_routes()


def _names(registry: Registry, entity: type = User) -> list:
    return [route.name for route in _routes(registry, entity)]


def test_subresource_routes() -> None:
    routes = _routes(make_registry())

    assert [(route.name, route.method, route.path) for route in routes] == [
        ("user_manager_create", "POST", "/user/<int:UserId>/manager"),
        ("user_manager_details", "GET", "/user/<int:UserId>/manager"),
        ("user_manager_delete", "DELETE", "/user/<int:UserId>/manager"),
        ("user_manager_articles_list", "GET", "/user/<int:UserId>/manager/articles"),
        ("user_articles_create", "POST", "/user/<int:UserId>/articles"),
        ("user_articles_list", "GET", "/user/<int:UserId>/articles"),
        ("user_articles_delete", "DELETE", "/user/<int:UserId>/articles/<int:id>"),
        ("user_articles_comments_list", "GET", "/user/<int:UserId>/articles/comments"),
        ("user_comments_create", "POST", "/user/<int:UserId>/comments"),
        ("user_comments_list", "GET", "/user/<int:UserId>/comments"),
        ("user_comments_delete", "DELETE", "/user/<int:UserId>/comments/<int:id>"),
        ("user_comments_upvotes_list", "GET", "/user/<int:UserId>/comments/upvotes"),
    ]
    assert [sub.name for sub in routes[7].subresource_chain] == ["articles", "comments"]
    assert all(route.is_subresource for route in routes)


def test_routes_are_deterministic() -> None:
    assert _routes(make_registry()) == _routes(make_registry())


def test_no_details_after_a_collection() -> None:
    routes = _routes(make_registry())
    assert "user_articles_comments_details" not in [route.name for route in routes]
    assert not [route for route in routes if route.path.startswith("/user/<int:UserId>/articles/comments/")]


def test_circular_subresources() -> None:
    registry = Registry()
    registry.register(User, subresources={"manager": SubresourceConfig()})
    registry.register(Manager, subresources={"users": SubresourceConfig()})
    assert _names(registry) == ["user_manager_create", "user_manager_details", "user_manager_delete"]

    registry = Registry()
    registry.register(User, subresources={"manager": SubresourceConfig()}, allow_circular=True)
    registry.register(Manager, subresources={"users": SubresourceConfig()})
    assert _names(registry)[-1] == "user_manager_users_list"


def test_subresource_max_depth() -> None:
    registry = make_registry(RouteOptions(default_subresource_max_depth_lvl=3))
    assert "user_articles_comments_upvotes_list" in _names(registry)

    registry = make_registry(
        subresources={"articles": SubresourceConfig(max_depth=1), "comments": SubresourceConfig()},
    )
    names = _names(registry)
    assert "user_articles_list" in names
    assert "user_articles_comments_list" not in names
    assert "user_comments_upvotes_list" in names


def test_nesting_flags() -> None:
    registry = make_registry(subresources={"articles": SubresourceConfig(can_have_nested=False)})
    assert _names(registry) == ["user_articles_create", "user_articles_list", "user_articles_delete"]

    registry = Registry()
    registry.register(User, subresources={"articles": SubresourceConfig()})
    registry.register(Article, subresources={"comments": SubresourceConfig(can_be_nested=False)})
    registry.register(Comment)
    assert _names(registry) == ["user_articles_create", "user_articles_list", "user_articles_delete"]
    assert _names(registry, Article) == ["article_comments_create", "article_comments_list", "article_comments_delete"]


def test_unexposed_target_is_skipped() -> None:
    registry = Registry()
    registry.register(User, subresources={"manager": SubresourceConfig(), "articles": SubresourceConfig()})
    registry.register(Manager, expose=False)
    registry.register(Article)
    assert _names(registry) == ["user_articles_create", "user_articles_list", "user_articles_delete"]


def test_subresource_operations() -> None:
    registry = Registry()
    registry.register(User, subresources={"articles": SubresourceConfig(operations=("list", "details"))})
    registry.register(Article)
    assert _names(registry) == ["user_articles_list"]


def test_subresource_without_inverse_relation() -> None:
    registry = Registry()
    registry.register(User)
    registry.register(Article, subresources={"reviewer": SubresourceConfig()})
    with pytest.raises(ConfigurationError):
        _routes(registry, Article)


def test_subresource_must_be_a_relation() -> None:
    with pytest.raises(ConfigurationError):
        Registry().register(User, subresources={"name": SubresourceConfig()})


def test_get_operations() -> None:
    articles = SubresourceProperty(EntityMeta(User).find_relation("articles"), SubresourceConfig(), "articles")
    manager = SubresourceProperty(EntityMeta(User).find_relation("manager"), SubresourceConfig(), "manager")
    users = SubresourceProperty(EntityMeta(Manager).find_relation("users"), SubresourceConfig(), "users")

    assert SubresourceMaker.get_operations(articles, None) == ["create", "list", "delete"]
    assert SubresourceMaker.get_operations(manager, None) == ["create", "details", "delete"]
    assert SubresourceMaker.get_operations(manager, articles) == []
    assert SubresourceMaker.get_operations(users, manager) == ["list"]


def test_make_subresource_relations() -> None:
    route = next(route for route in _routes(make_registry()) if route.name == "user_articles_comments_list")
    first, second = make_subresource_relations(route.subresource_chain, {"UserId": 3})

    assert (first.relation.property_name, first.param, first.id) == ("articles", "UserId", 3)
    assert (second.relation.property_name, second.param, second.id) == ("comments", None, None)
