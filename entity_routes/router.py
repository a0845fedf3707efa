"""Entity router: the route table of an entity and the handling of its requests.

The route table of ``User`` (path "/user", soft delete allowed, ``articles`` subresource)::

    user_create            POST    /user
    user_create_mapping    GET     /user/create/mapping
    user_list              GET     /user
    user_details           GET     /user/<int:id>
    user_update            PUT     /user/<int:id>
    user_delete            DELETE  /user/<int:id>
    user_restore           PUT     /user/<int:id>/restore
    user_articles_list     GET     /user/<int:UserId>/articles
    ...

Handling a request: hooks ``before_handle``, the controller method, the writer,
hooks ``before_respond``, ``after_respond`` and ``after_handle``.
"""

from http import HTTPStatus
from typing import Any, Dict, List, Tuple

import werkzeug

import entity_routes
from .actions import CRUD_ACTIONS, OPERATIONS_WITHOUT_MAPPING, RouteDescriptor, format_route_name
from .config import is_debug
from .context import RequestContext
from .controller import RouteController
from .errors import EntityRouteError, ValidationError
from .subresources import SubresourceMaker, make_subresource_relations
from .util import parse_string_as_boolean
from .writer import Writer

DEFAULT_ERROR_MESSAGE = "Bad request"


class EntityRouter:
    def __init__(self, registry: "entity_routes.registry.Registry", entity: type) -> None:
        self.registry = registry
        self.entity = entity
        self.entity_meta = registry.get_entity_meta(entity)
        self.controller = RouteController(registry, entity)
        self.writer = Writer(registry, entity)
        self._routes = None

    @property
    def config(self):
        return self.registry.get_config(self.entity)

    @property
    def route_path(self) -> str:
        return self.registry.get_route_path(self.entity)

    @property
    def operations(self) -> List[str]:
        operations = list(self.config.operations)
        if self.registry.get_options(self.entity).get("allow_soft_delete") and "delete" in operations:
            operations.append("restore")
        return operations

    @property
    def routes(self) -> List[RouteDescriptor]:
        if self._routes is None:
            self._routes = self.make_routes()
        return self._routes

    def make_routes(self) -> List[RouteDescriptor]:
        """
        Build the route table, the mappings of every operation are built too: a configuration error is raised now
        rather than on the first request
        """
        table_name = self.entity_meta.table_name
        routes = []
        for operation in self.operations:
            action = CRUD_ACTIONS[operation]
            name = format_route_name(table_name, operation)
            routes.append(RouteDescriptor(name, action.method, self.route_path + action.path, operation))
            if operation in OPERATIONS_WITHOUT_MAPPING:
                continue
            self.registry.mapping.make(self.entity_meta, operation)
            routes.append(
                RouteDescriptor(f"{name}_mapping", "GET", f"{self.route_path}/{operation}/mapping", operation, mapping=True)
            )

        for route in SubresourceMaker(self.registry, self.entity).make_routes():
            self.registry.mapping.make(route.subresource_chain[-1].target, route.operation)
            routes.append(route)
        return routes

    def get_route(self, name: str) -> RouteDescriptor:
        for route in self.routes:
            if route.name == name:
                return route
        raise KeyError(name)

    def get_route_mapping(self, operation: str, pretty: bool = False) -> Dict[str, Any]:
        mapping = self.registry.mapping.make(self.entity_meta, operation, pretty=pretty)
        return {
            "context": {"operation": f"{operation}.mapping", "entity": self.entity_meta.table_name},
            "routeMapping": mapping if pretty else mapping.to_dict(),
        }

    def handle(
        self, route: RouteDescriptor, route_kwargs: Dict[str, Any] = None, query_params: Dict[str, Any] = None, values: Any = None
    ) -> Tuple[Dict[str, Any], int]:
        """
        :param route: one of the routes of this router
        :param route_kwargs: route parameters, eg. {"id": 1} or {"UserId": 1}
        :param query_params: query string of the request
        :param values: request body
        :return: response body and status code
        """
        route_kwargs = route_kwargs or {}
        query_params = query_params or {}
        if route.mapping:
            return self.get_route_mapping(route.operation, parse_string_as_boolean(query_params.get("pretty"))), HTTPStatus.OK.value

        if route.is_subresource:
            target = route.subresource_chain[-1].target
            context = RequestContext(
                operation=route.operation,
                entity_id=route_kwargs.get("id"),
                values=values,
                query_params=query_params,
                subresource_relations=make_subresource_relations(route.subresource_chain, route_kwargs),
            )
            return self.registry.get_router(target.entity).handle_operation(context)

        context = RequestContext(operation=route.operation, entity_id=route_kwargs.get("id"), values=values, query_params=query_params)
        return self.handle_operation(context)

    def handle_operation(self, context: RequestContext) -> Tuple[Dict[str, Any], int]:
        config = self.config
        config.call_hook("before_handle", context=context)

        status = HTTPStatus.OK.value
        try:
            method = getattr(self.controller, CRUD_ACTIONS[context.operation].controller_method)
            result = method(context)
            response = self.writer.make_response(context, result)
        except ValidationError as exc:
            self.controller.session.rollback()
            response = self.writer.make_error_response(context, exc.message, exc.errors)
            status = exc.status_code
        except (EntityRouteError, werkzeug.exceptions.HTTPException) as exc:
            self.controller.session.rollback()
            message = exc.message if isinstance(exc, EntityRouteError) else exc.description
            response = self.writer.make_error_response(context, message)
            status = getattr(exc, "status_code", None) or getattr(exc, "code", None) or HTTPStatus.INTERNAL_SERVER_ERROR.value
        except Exception as exc:
            # unhandled controller error: the detail is only shown in debug mode
            entity_routes.log.exception(exc)
            self.controller.session.rollback()
            response = self.writer.make_error_response(context, str(exc) if is_debug() else DEFAULT_ERROR_MESSAGE)
            status = HTTPStatus.INTERNAL_SERVER_ERROR.value

        # hooks may replace the response or the status
        ref = {"context": context, "response": response, "status": status}
        config.call_hook("before_respond", ref=ref)
        config.call_hook("after_respond", ref=ref)
        config.call_hook("after_handle", context=context)
        return ref["response"], ref["status"]
