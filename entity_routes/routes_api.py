# flask_restful_swagger2 API subclass
from http import HTTPStatus
from functools import wraps
import json
import logging
from typing import Callable, Dict, List
import werkzeug
import yaml
from flask import Response, jsonify, make_response, request
from flask.app import Flask
from flask_restful import Resource, abort
from flask_restful.utils import cors
from flask_restful_swagger_2 import Api as FRSApiBase
from flask_restful_swagger_2 import Extractor, extract_swagger_path, validate_definitions_object, validate_path_item_object
from flask_restful_swagger_2 import ValidationError as FRSValidationError
import entity_routes
from .config import get_config
from .errors import EntityRouteError
from .routes_init import EntityRoutes
from .swagger_doc import swagger_route_doc
from .util import dict_merge


class EntityRouteResource(Resource):
    """
    Flask-RESTful resource of one route path, every http method dispatches to the route registered for it
    """

    entity_router = None
    routes: Dict[str, "entity_routes.actions.RouteDescriptor"] = {}

    def dispatch_route(self, http_method: str, **kwargs) -> Response:
        route = self.routes[http_method]
        payload = request.get_payload() if http_method in ("POST", "PUT") else None
        body, status = self.entity_router.handle(route, kwargs, request.query_params, payload)
        return make_response(jsonify(body), status)

    def get(self, **kwargs):
        return self.dispatch_route("GET", **kwargs)

    def post(self, **kwargs):
        return self.dispatch_route("POST", **kwargs)

    def put(self, **kwargs):
        return self.dispatch_route("PUT", **kwargs)

    def delete(self, **kwargs):
        return self.dispatch_route("DELETE", **kwargs)


class EntityRoutesAPI(FRSApiBase):
    """
    Subclass of the flask_restful_swagger API class where we add the expose method:
    it creates the url endpoints of the registry route tables and the corresponding swagger documentation
    """

    _operation_ids = {}

    def __init__(
        self,
        app: Flask,
        registry: "entity_routes.registry.Registry",
        host: str = "localhost",
        port: int = 5000,
        prefix: str = "",
        description: str = "entity_routes API",
        swaggerui_blueprint: bool = True,
        **kwargs,
    ) -> None:
        """
        :param app: Flask application
        :param registry: Registry of the entities to expose
        :param prefix: url prefix of the routes and the swagger
        """
        custom_swagger = kwargs.pop("custom_swagger", {})
        app_db = kwargs.pop("app_db", None)
        EntityRoutes(app, app_db=app_db, prefix=prefix, swaggerui_blueprint=swaggerui_blueprint)
        # the host shown in the swagger ui
        if port:
            host = f"{host}:{port}"
        self.registry = registry
        super().__init__(
            app,
            api_spec_url=kwargs.pop("api_spec_url", "/swagger"),
            host=host,
            description=description,
            prefix=prefix,
            base_path=prefix,
            **kwargs,
        )
        dict_merge(self.get_swagger_doc(), custom_swagger)

    def expose(self, *entities: type) -> None:
        """
        Add the routes of the given entities, of every exposed entity when called without argument
        """
        for entity in entities or self.registry.entities:
            self.expose_router(self.registry.get_router(entity))

    def expose_router(self, router) -> None:
        """
        Creates one resource class of the form

            @api_decorator
            class User_0_API(EntityRouteResource):
                entity_router = router
                routes = {"GET": user_list, "POST": user_create}

        for each path of the router route table
        """
        routes_by_path: Dict[str, Dict[str, "entity_routes.actions.RouteDescriptor"]] = {}
        for route in router.routes:
            routes_by_path.setdefault(route.path, {})[route.method] = route

        for index, (path, routes) in enumerate(routes_by_path.items()):
            api_class_name = f"{router.entity_meta.name}_{index}_API"
            properties = {"entity_router": router, "routes": routes}
            api_class = api_decorator(type(api_class_name, (EntityRouteResource,), properties))
            endpoint = "-".join(route.name for route in routes.values())
            entity_routes.log.info(f"Exposing {router.entity_meta.name} on {path}, endpoint: {endpoint}")
            self.add_resource(api_class, path, endpoint=endpoint, methods=list(routes))

    def add_resource(self, resource, *urls, **kwargs):
        """
        This method is partly copied from flask_restful_swagger_2/__init__.py

        The swagger path items are only built for the generated resources
        """
        if getattr(resource, "entity_router", None) is None:
            # eg. the swagger.json resource
            return super(FRSApiBase, self).add_resource(resource, *urls, **kwargs)

        path_item = {}
        definitions = {}
        for method in [method.lower() for method in resource.routes]:
            operation = getattr(getattr(resource, method), "__swagger_operation_object", None)
            if not operation:
                continue
            operation, definitions_ = Extractor.extract(operation)
            operation["operationId"] = self._get_operation_id(resource.routes[method.upper()].name)
            path_item[method] = operation
            definitions.update(definitions_)

        try:
            validate_definitions_object(definitions)
            validate_path_item_object(path_item)
        except FRSValidationError as exc:
            entity_routes.log.exception(exc)
            entity_routes.log.critical(f"Validation failed for {path_item}")
            raise

        for url in urls:
            swagger_url = extract_swagger_path(url)
            self._swagger_object["paths"][swagger_url] = path_item
        self._swagger_object["definitions"].update(definitions)

        # Check whether we manage to convert to json
        try:
            json.dumps(self._swagger_object, cls=entity_routes.json_encoder.EntityRoutesJSONEncoder)
        except (TypeError, ValueError):  # pragma: no cover
            entity_routes.log.critical("Json encoding failed")

        # pylint: disable=bad-super-call
        super(FRSApiBase, self).add_resource(resource, *urls, **kwargs)

    @classmethod
    def _get_operation_id(cls, summary: str) -> str:
        summary = "".join(c for c in summary if c.isalnum() or c == "_")
        if summary not in cls._operation_ids:
            cls._operation_ids[summary] = 0
        else:
            cls._operation_ids[summary] += 1
        return f"{summary}_{cls._operation_ids[summary]}"

    def get_route_table(self) -> List[Dict[str, str]]:
        """
        :return: the routes of every exposed entity
        """
        table = []
        for router in self.registry.routers:
            for route in router.routes:
                table.append(
                    {
                        "name": route.name,
                        "method": route.method,
                        "path": self.prefix + route.path,
                        "operation": route.operation,
                        "subresourceChain": [subresource.name for subresource in route.subresource_chain],
                    }
                )
        return table

    def expose_route_table(self, loc: str = "/routes") -> None:
        """
        Serve the route table, as yaml with ?yaml=1
        """
        api = self

        class RouteTable(Resource):
            def get(self):
                result = api.get_route_table()
                if request.args.get("yaml"):
                    return Response(yaml.dump(result, sort_keys=False), content_type="text/yaml")
                return result

        super(FRSApiBase, self).add_resource(RouteTable, loc, endpoint="entity_routes_route_table")


def api_decorator(cls) -> type:
    """Decorator for the API views:
        - add swagger documentation ( swagger_route_doc )
        - add cors
        - add generic exception handling

    :param cls: the EntityRouteResource subclass that will be decorated
    :return: decorated class
    """
    cors_domain = get_config("cors_domain")
    for http_method, route in cls.routes.items():
        method_name = http_method.lower()
        decorated_method = getattr(cls, method_name)

        # Add cors
        if cors_domain is not None:
            decorated_method = cors.crossdomain(origin=cors_domain)(decorated_method)
        # Add exception handling
        decorated_method = http_method_decorator(decorated_method)

        try:
            # Add swagger documentation
            decorated_method = swagger_route_doc(cls.entity_router, route)(decorated_method)
        except RecursionError:  # pragma: no cover
            entity_routes.log.error(f"Failed to generate documentation for {cls} {route} (Recursion Error)")

        setattr(cls, method_name, decorated_method)

    return cls


def http_method_decorator(fun: Callable) -> Callable:
    """Decorator for the generated HTTP methods
    - commit the database when the route succeeded, rollback otherwise
    - convert all exceptions to the error envelope

    This method will be called for all requests
    :param fun:
    :return: wrapped fun
    """

    @wraps(fun)
    def method_wrapper(*args, **kwargs):
        """Wrap the method and perform error handling
        :param *args:
        :param **kwargs:
        :return: result of the wrapped method
        """
        resource = args[0]
        route = resource.routes.get(fun.__name__.upper())
        context = {"operation": route.operation if route else None, "entity": resource.entity_router.entity_meta.table_name}
        status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
        message = ""
        try:
            result = fun(*args, **kwargs)
            if result.status_code < HTTPStatus.BAD_REQUEST.value:
                entity_routes.DB.session.commit()
            else:
                entity_routes.DB.session.rollback()
            return result

        except EntityRouteError as exc:
            # this also catches entity_routes.errors.NotFoundError
            status_code = exc.status_code
            message = exc.message

        except werkzeug.exceptions.HTTPException as exc:
            status_code = exc.code
            message = exc.description
            entity_routes.log.error(message)

        except Exception as exc:
            entity_routes.log.exception(exc)
            if entity_routes.log.getEffectiveLevel() > logging.DEBUG:
                message = "Bad request"
            else:
                message = str(exc)

        entity_routes.DB.session.rollback()
        context["error"] = message
        abort(status_code, **{"@context": context})

    return method_wrapper
