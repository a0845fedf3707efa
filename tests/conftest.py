import pytest
from flask import Flask
from entity_routes import DB, EntityRoutes
from .models import Article, Comment, Manager, Role, User, make_registry


@pytest.fixture
def app():
    """
    Fresh application and in-memory database for every test
    """
    app = Flask("entity_routes_test")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True)
    DB.init_app(app)
    with app.app_context():
        DB.create_all()
        yield app
        DB.session.remove()
        DB.drop_all()


@pytest.fixture
def registry():
    return make_registry()


@pytest.fixture
def routes_app(app):
    """
    Application with the entity_routes request, response and json classes, without the swagger blueprint
    """
    EntityRoutes(app, app_db=DB, swaggerui_blueprint=False)
    return app


@pytest.fixture
def session(app):
    return DB.session


@pytest.fixture
def data(session):
    """
    admin (role), alex and sam (editor) managed by boss, an article of alex with two comments
    """
    admin, editor = Role(identifier="admin", title="Administrator"), Role(identifier="editor", title="Editor")
    boss = Manager(name="Boss")
    alex = User(name="Alex Turner", email="alex@example.com", is_admin=True, role=admin, manager=boss)
    sam = User(name="Sam", email="sam@example.org", role=editor)
    article = Article(title="First article", author=alex, manager=boss)
    article.comments = [Comment(message="Nice", writer=sam), Comment(message="Thanks", writer=alex)]
    session.add_all([admin, editor, boss, alex, sam, article])
    session.commit()
    return {"admin": admin.id, "editor": editor.id, "boss": boss.id, "alex": alex.id, "sam": sam.id, "article": article.id}
