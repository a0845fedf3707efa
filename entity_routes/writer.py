"""Writer: the response envelope of a generated route.

::

    list       {"@context": {"operation": "list", "entity": "user", "retrievedItems": 2, "totalItems": 12}, "items": [...]}
    details    {"@context": {"operation": "details", "entity": "user"}, "id": 1, "name": "Alex"}
    create     {"@context": {"operation": "create", "entity": "user", "validationErrors": null}, "id": 1, ...}
    delete     {"@context": {"operation": "delete", "entity": "user"}, "deleted": 1}
    error      {"@context": {"operation": "update", "entity": "user", "validationErrors": {"user": [...]}}}
"""

from typing import Any, Dict, List

import entity_routes
from .context import RequestContext
from .formatting import serialize_item

RESULT_KEYS = ("deleted", "unlinked")


class Writer:
    def __init__(self, registry: "entity_routes.registry.Registry", entity: type) -> None:
        self.registry = registry
        self.entity = entity
        self.entity_meta = registry.get_entity_meta(entity)

    @property
    def options(self):
        return self.registry.get_options(self.entity)

    def get_base_response(self, context: RequestContext) -> Dict[str, Any]:
        response = {"@context": {"operation": context.operation, "entity": self.entity_meta.table_name}}
        if context.is_update_or_create:
            response["@context"]["validationErrors"] = None
        return response

    def from_item(self, item: Any, context: RequestContext) -> Any:
        """
        :return: the serialized item, a reloaded item is serialized with the details mapping
        """
        operation = "details" if context.was_auto_reloaded else context.operation
        mapping = self.registry.mapping.make(self.entity_meta, operation)
        return serialize_item(self.registry, item, mapping, self.options, was_auto_reloaded=context.was_auto_reloaded)

    def from_collection(self, items: List[Any], context: RequestContext) -> List[Any]:
        return [self.from_item(item, context) for item in items]

    def make_response(self, context: RequestContext, result: Any) -> Dict[str, Any]:
        """
        :param result: result of the controller method
        """
        response = self.get_base_response(context)
        if isinstance(result, dict) and any(key in result for key in RESULT_KEYS):
            response.update(result)
        elif context.operation == "list":
            items = result["items"]
            response["@context"]["retrievedItems"] = len(items)
            response["@context"]["totalItems"] = result["total_items"]
            response["items"] = self.from_collection(items, context)
        elif result is not None:
            item = self.from_item(result, context)
            if isinstance(item, dict):
                response.update(item)
            else:
                # flattened root item
                response["@id"] = item
        return response

    def make_error_response(self, context: RequestContext, error: str = None, validation_errors: Dict[str, Any] = None) -> Dict[str, Any]:
        response = self.get_base_response(context)
        if validation_errors:
            response["@context"]["validationErrors"] = validation_errors
        if error:
            response["@context"]["error"] = error
        return response
