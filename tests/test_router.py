import pytest
from entity_routes import RouteOptions
from .models import Article, Comment, Upvote, User, make_registry


def _handle(registry, entity: type, route_name: str, route_kwargs: dict = None, query_params: dict = None, values=None):
    router = registry.get_router(entity)
    return router.handle(router.get_route(route_name), route_kwargs, query_params, values)


def test_route_table(registry) -> None:
    names = [route.name for route in registry.get_router(User).routes]
    assert names[:10] == [
        "user_create",
        "user_create_mapping",
        "user_list",
        "user_list_mapping",
        "user_details",
        "user_details_mapping",
        "user_update",
        "user_update_mapping",
        "user_delete",
        "user_restore",
    ]
    assert names[10] == "user_manager_create"

    restore = registry.get_router(User).get_route("user_restore")
    assert (restore.method, restore.path) == ("PUT", "/user/<int:id>/restore")
    # soft delete is only allowed on User
    assert "article_restore" not in [route.name for route in registry.get_router(Article).routes]


def test_route_path_option() -> None:
    registry = make_registry(path="/members/")
    router = registry.get_router(User)
    assert router.get_route("user_details").path == "/members/<int:id>"
    assert router.get_route("user_articles_list").path == "/members/<int:UserId>/articles"


def test_mapping_route(registry) -> None:
    response, status = _handle(registry, User, "user_list_mapping", query_params={"pretty": "true"})

    assert status == 200
    assert response == {
        "context": {"operation": "list.mapping", "entity": "user"},
        "routeMapping": {"id": "int", "name": "str", "is_admin": "bool", "role": {"id": "int", "identifier": "str"}},
    }
    response, _ = _handle(registry, User, "user_list_mapping")
    assert response["routeMapping"]["relationProps"] == ["role"]


def test_list(registry, data) -> None:
    response, status = _handle(registry, User, "user_list")

    assert status == 200
    assert response["@context"] == {"operation": "list", "entity": "user", "retrievedItems": 2, "totalItems": 2}
    alex = response["items"][0]
    assert alex["name"] == "Alex Turner"
    assert alex["is_admin"] is True
    assert alex["role"] == {"id": data["admin"], "identifier": "admin"}
    assert alex["comments"] == f"/api/user/{data['alex']}/comments"
    assert alex["manager"] == f"/api/user/{data['alex']}/manager"
    assert "email" not in alex
    assert "display_name" not in alex


def test_list_filters_and_pagination(registry, data) -> None:
    response, _ = _handle(registry, User, "user_list", query_params={"role.identifier": "editor"})
    assert [item["name"] for item in response["items"]] == ["Sam"]

    response, _ = _handle(registry, User, "user_list", query_params={"orderBy": "name:desc", "take": "1"})
    assert response["@context"]["retrievedItems"] == 1
    assert response["@context"]["totalItems"] == 2
    assert response["items"][0]["name"] == "Sam"


def test_details(registry, data) -> None:
    response, status = _handle(registry, User, "user_details", {"id": data["alex"]})

    assert status == 200
    assert response["@context"] == {"operation": "details", "entity": "user"}
    assert response["email"] == "alex@example.com"
    assert response["display_name"] == "Alex Turner <alex@example.com>"
    assert response["initials"] == "AT"
    assert response["role"] == {"id": data["admin"], "identifier": "admin", "title": "Administrator"}

    article = response["articles"][0]
    assert article["title"] == "First article"
    assert sorted(comment["message"] for comment in article["comments"]) == ["Nice", "Thanks"]
    # subresource IRI of a nested item
    assert article["comments"][0]["upvotes"] == f"/api/comment/{article['comments'][0]['id']}/upvotes"


def test_details_not_found(registry, data) -> None:
    response, status = _handle(registry, User, "user_details", {"id": 999})

    assert status == 404
    assert response["@context"]["operation"] == "details"
    assert response["@context"]["error"].startswith("Not found: ")


def test_create(registry, data, session) -> None:
    values = {"name": "Jo", "email": "jo@example.com", "is_admin": True, "role": f"/api/role/{data['editor']}"}
    response, status = _handle(registry, User, "user_create", values=values)

    assert status == 200
    assert response["@context"] == {"operation": "create", "entity": "user", "validationErrors": None}
    # reloaded with the details mapping
    assert response["role"] == {"id": data["editor"], "identifier": "editor", "title": "Editor"}
    assert response["initials"] == "J"
    user = session.get(User, response["id"])
    assert user.role_id == data["editor"]
    # is_admin is not exposed on create
    assert user.is_admin is False


def test_create_with_nested_item(registry, data, session) -> None:
    values = {"name": "Jo", "role": {"identifier": "guest", "title": "Guest"}}
    response, status = _handle(registry, User, "user_create", values=values)

    assert status == 200
    assert response["role"]["identifier"] == "guest"
    assert session.get(User, response["id"]).role.title == "Guest"


def test_create_validation_errors(registry, data, session) -> None:
    response, status = _handle(registry, User, "user_create", values={"email": "jo@example.com", "nickname": "jo"})

    assert status == 400
    assert response["@context"]["error"].startswith("Validation Error: ")
    assert response["@context"]["validationErrors"]["user"][0]["property"] == "name"
    assert session.query(User).count() == 2


def test_create_model_validation_error(registry, data) -> None:
    response, status = _handle(registry, User, "user_create", values={"name": "Jo", "email": "not-an-email"})

    assert status == 400
    assert response["@context"]["validationErrors"]["user"][0]["constraints"] == {"unknown": "Invalid email address not-an-email"}


@pytest.mark.parametrize("values", [None, {}, {"nickname": "jo"}])
def test_create_empty_body(registry, data, values) -> None:
    _, status = _handle(registry, User, "user_create", values=values)
    assert status == 400


def test_create_with_unknown_reference(registry, data) -> None:
    _, status = _handle(registry, User, "user_create", values={"name": "Jo", "role": 999})
    assert status == 404


def test_update(registry, data, session) -> None:
    response, status = _handle(registry, User, "user_update", {"id": data["alex"]}, values={"is_admin": "false", "email": None})

    assert status == 200
    assert response["@context"]["operation"] == "update"
    assert response["is_admin"] is False
    assert response["email"] is None
    assert response["name"] == "Alex Turner"
    assert response["display_name"] == "Alex Turner"


def test_update_errors(registry, data) -> None:
    _, status = _handle(registry, User, "user_update", {"id": 999}, values={"name": "Jo"})
    assert status == 404

    response, status = _handle(registry, User, "user_update", {"id": data["alex"]}, values={"name": None})
    assert status == 400
    assert response["@context"]["validationErrors"]["user"][0]["constraints"] == {"isDefined": "name should not be null or undefined"}


def test_soft_delete_and_restore(registry, data, session) -> None:
    alex_id = data["alex"]

    response, status = _handle(registry, User, "user_delete", {"id": alex_id})
    assert status == 200
    assert response == {"@context": {"operation": "delete", "entity": "user"}, "deleted": alex_id}
    assert session.get(User, alex_id).deleted_at is not None

    response, _ = _handle(registry, User, "user_list")
    assert [item["name"] for item in response["items"]] == ["Sam"]
    response, _ = _handle(registry, User, "user_list", query_params={"withDeleted": "true"})
    assert response["@context"]["totalItems"] == 2
    _, status = _handle(registry, User, "user_details", {"id": alex_id})
    assert status == 404
    _, status = _handle(registry, User, "user_delete", {"id": alex_id})
    assert status == 404

    response, status = _handle(registry, User, "user_restore", {"id": alex_id})
    assert status == 200
    assert response["@context"]["operation"] == "restore"
    assert response["deleted_at"] is None
    response, _ = _handle(registry, User, "user_list")
    assert response["@context"]["totalItems"] == 2


def test_hard_delete(registry, data, session) -> None:
    response, status = _handle(registry, Article, "article_delete", {"id": data["article"]})

    assert status == 200
    assert response["deleted"] == data["article"]
    assert session.get(Article, data["article"]) is None


def test_subresource_list(registry, data) -> None:
    response, status = _handle(registry, User, "user_articles_list", {"UserId": data["alex"]})
    assert status == 200
    assert response["@context"]["entity"] == "article"
    assert [item["title"] for item in response["items"]] == ["First article"]

    response, _ = _handle(registry, User, "user_articles_list", {"UserId": data["sam"]})
    assert response["items"] == []


def test_nested_subresource_list(registry, data, session) -> None:
    thanks = session.query(Comment).filter_by(message="Thanks").one()
    session.add(Upvote(upvoter=session.get(User, data["sam"]), comment=thanks))
    session.flush()

    response, _ = _handle(registry, User, "user_comments_upvotes_list", {"UserId": data["alex"]})
    assert response["@context"]["totalItems"] == 1
    response, _ = _handle(registry, User, "user_comments_upvotes_list", {"UserId": data["sam"]})
    assert response["@context"]["totalItems"] == 0


def test_subresource_create(registry, data, session) -> None:
    response, status = _handle(registry, User, "user_articles_create", {"UserId": data["sam"]}, values={"title": "Second article"})

    assert status == 200
    assert response["@context"]["entity"] == "article"
    assert response["author"]["id"] == data["sam"]
    assert session.get(Article, response["id"]).author_id == data["sam"]

    response, _ = _handle(registry, User, "user_articles_list", {"UserId": data["sam"]})
    assert [item["title"] for item in response["items"]] == ["Second article"]


def test_subresource_create_unknown_parent(registry, data) -> None:
    _, status = _handle(registry, User, "user_articles_create", {"UserId": 999}, values={"title": "Second article"})
    assert status == 404


def test_single_subresource(registry, data, session) -> None:
    response, status = _handle(registry, User, "user_manager_details", {"UserId": data["alex"]})
    assert status == 200
    assert response["name"] == "Boss"
    assert response["articles"] == f"/api/manager/{data['boss']}/articles"

    _, status = _handle(registry, User, "user_manager_details", {"UserId": data["sam"]})
    assert status == 404

    response, status = _handle(registry, User, "user_manager_delete", {"UserId": data["alex"]})
    assert status == 200
    assert response["unlinked"] == data["boss"]
    assert session.get(User, data["alex"]).manager is None


def test_subresource_delete_unlinks(registry, data, session) -> None:
    response, status = _handle(registry, User, "user_articles_delete", {"UserId": data["alex"], "id": data["article"]})

    assert status == 200
    assert response == {"@context": {"operation": "delete", "entity": "article"}, "unlinked": data["article"]}
    article = session.get(Article, data["article"])
    assert article is not None
    assert article.author is None

    _, status = _handle(registry, User, "user_articles_delete", {"UserId": data["alex"], "id": data["article"]})
    assert status == 404


def test_hooks(data) -> None:
    calls = []

    def before_handle(context):
        calls.append(("before_handle", context.operation))

    def after_validate(context, item, ref):
        if item.get("name") == "root":
            ref["errors"]["user"] = [{"currentPath": "", "property": "name", "constraints": {"isReserved": "reserved name"}}]

    def before_respond(ref):
        ref["response"]["@context"]["requestId"] = ref["context"].request_id
        if ref["status"] == 200 and ref["context"].operation == "create":
            ref["status"] = 201

    registry = make_registry(hooks={"before_handle": before_handle, "after_validate": after_validate, "before_respond": before_respond})

    response, status = _handle(registry, User, "user_create", values={"name": "Jo"})
    assert status == 201
    assert len(response["@context"]["requestId"]) == 32

    response, status = _handle(registry, User, "user_create", values={"name": "root"})
    assert status == 400
    assert response["@context"]["validationErrors"]["user"][0]["constraints"] == {"isReserved": "reserved name"}
    assert calls == [("before_handle", "create"), ("before_handle", "create")]


def test_read_hooks(data) -> None:
    def after_read(context, ref):
        items, total = ref["results"]
        ref["results"] = ([item for item in items if item.name != "Sam"], total - 1)

    registry = make_registry(hooks={"after_read": after_read})
    response, _ = _handle(registry, User, "user_list")
    assert response["@context"]["totalItems"] == 1
    assert [item["name"] for item in response["items"]] == ["Alex Turner"]


def test_options_without_iris(data) -> None:
    registry = make_registry(RouteOptions(use_iris=False))
    response, _ = _handle(registry, User, "user_details", {"id": data["sam"]})
    assert response["manager"] == data["sam"]
    assert response["comments"] == data["sam"]
    assert response["role"]["id"] == data["editor"]
