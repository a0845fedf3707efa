import logging
import os
import sys
from flask_swagger_ui import get_swaggerui_blueprint
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
import flask.app
import entity_routes
from .request import EntityRouteRequest
from .response import EntityRouteResponse
from .json_encoder import EntityRoutesJSONProvider


class EntityRoutes:
    """This class configures the Flask application to serve the generated entity routes
    :param app: a Flask application.
    :param prefix: URL prefix where the swagger should be hosted. Default is ''
    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration settings are stored as class variables
    LOGLEVEL = logging.WARNING
    IRI_PREFIX = "/api"
    OBJECT_ID_SUFFIX = "Id"
    # mapping depth: number of times a table name may appear on a relation path
    IS_MAX_DEPTH_ENABLED_BY_DEFAULT = True
    DEFAULT_MAX_DEPTH_LVL = 2
    SHOULD_MAX_DEPTH_RETURN_RELATION_PROPS_ID = True
    DEFAULT_SUBRESOURCE_MAX_DEPTH_LVL = 2
    # collection reads
    DEFAULT_RETRIEVED_ITEMS_LIMIT = 100
    MAX_RETRIEVED_ITEMS_LIMIT = 10000
    #
    config = {}

    def __init__(self, app: flask.app.Flask, *args, **kwargs) -> None:
        """
        Constructor
        """
        self.app = app
        if app is not None:
            self.init_app(app, *args, **kwargs)

    def init_app(
        self,
        app: flask.app.Flask,
        prefix: str = "",
        app_db: SQLAlchemy = None,
        swaggerui_blueprint: bool = True,
        **kwargs,
    ) -> None:
        """
        API and application initialization
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        if app_db is None:
            app_db = app.extensions["sqlalchemy"]

        entity_routes.DB = self.db = app_db

        app.request_class = EntityRouteRequest
        app.response_class = EntityRouteResponse
        app.json = EntityRoutesJSONProvider(app)
        app.url_map.strict_slashes = False

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        if swaggerui_blueprint is True:
            swaggerui_blueprint = get_swaggerui_blueprint(
                prefix, f"{prefix}/swagger.json", config={"docExpansion": "none", "defaultModelsExpandDepth": -1}
            )
            app.register_blueprint(swaggerui_blueprint, url_prefix=prefix)

        for conf_name, conf_val in kwargs.items():
            setattr(EntityRoutes, conf_name, conf_val)

        for conf_name, conf_val in app.config.items():
            setattr(EntityRoutes, conf_name, conf_val)

        # pylint: disable=unused-argument,unused-variable
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """cfr. https://flask.palletsprojects.com/en/latest/patterns/sqlalchemy/"""
            self.db.session.remove()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        The webserver will catch stdout so we redirect eveything to sys.stderr
        """
        log = logging.getLogger(__name__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# DB and logging initialization
#
DB = SQLAlchemy()

try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = EntityRoutes.init_logging(LOGLEVEL)
