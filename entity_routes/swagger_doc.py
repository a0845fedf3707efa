#
# Functions for api documentation: these decorators generate the swagger operation objects of the generated routes
# The request and response schemas are derived from the pretty route mappings
#
import datetime
import json
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Union
from flask_restful_swagger_2 import Schema, swagger
import entity_routes
from .config import get_int_config, is_debug
from .iri import get_iri_prefix
from .json_encoder import EntityRoutesJSONEncoder

# additional responses added when in debug mode to make swagger-check succeed
debug_responses = {
    HTTPStatus.METHOD_NOT_ALLOWED.value: {"description": HTTPStatus.METHOD_NOT_ALLOWED.description},
    HTTPStatus.INTERNAL_SERVER_ERROR.value: {"description": "Internal Server Error"},
}

# pretty mapping type names => swagger types
SWAGGER_TYPES = {
    "int": ("integer", 0),
    "float": ("number", 0.0),
    "Decimal": ("number", 0.0),
    "bool": ("boolean", True),
    "datetime": ("string", str(datetime.datetime(2020, 1, 1))),
    "date": ("string", str(datetime.date(2020, 1, 1))),
}

SUMMARIES = {
    "create": "Create a {name}",
    "list": "Retrieve a collection of {name} items",
    "details": "Retrieve a {name}",
    "update": "Update a {name}",
    "delete": "Delete a {name}",
    "restore": "Restore a deleted {name}",
}

# List to generate the swagger references / definitions unique name
Schema._reference_count = []
Schema._references = {}


def SchemaClassFactory(name: str, properties: Dict[str, Any]):
    """
    Generate a Schema class, used to describe swagger schemas
    :param name: schema class name
    :param properties: class attributes
    :return: class
    """
    # generate a unique name to be used as a reference
    idx = Schema._reference_count.count(name)
    if idx:
        if Schema._references[name].properties == properties:
            return Schema._references[name]
        name = name + str(idx)

    Schema._reference_count.append(name)
    new_schema_cls = type(name, (Schema,), {"type": "object", "properties": properties})
    new_schema_cls.description = ""
    Schema._references[name] = new_schema_cls
    return new_schema_cls


def encode_schema(obj: Any) -> Any:
    """
    None aka "null" is invalid in swagger schema definition
    """
    if obj is None:
        return ""
    try:
        return json.loads(json.dumps(obj, cls=EntityRoutesJSONEncoder))
    except (TypeError, ValueError) as exc:
        entity_routes.log.warning(f"Json encoding failed for {obj}, type {type(obj)} ({exc})")
        return str(obj)


def sample_from_pretty_mapping(pretty_mapping: Dict[str, Any]) -> Dict[str, Any]:
    """
    :param pretty_mapping: eg. {"id": "int", "name": "str", "role": "@id"}
    :return: sample item, eg. {"id": 0, "name": "", "role": "/api/role/1"}
    """
    sample = {}
    for prop, value in pretty_mapping.items():
        if isinstance(value, dict):
            sample[prop] = sample_from_pretty_mapping(value)
        elif value in ("@id", "@id[]"):
            iri = f"{get_iri_prefix()}/{prop}/1"
            sample[prop] = [iri] if value == "@id[]" else iri
        else:
            sample[prop] = SWAGGER_TYPES.get(value, ("string", ""))[1]
    return sample


def schema_from_object(name: str, obj: Dict[str, Any]):
    """
    :param name: schema name
    :param obj: sample object
    :return: swagger schema object
    """
    properties = {}
    for key, value in obj.items():
        if isinstance(value, bool):
            properties[key] = {"example": value, "type": "boolean"}
        elif isinstance(value, int):
            properties[key] = {"example": value, "type": "integer"}
        elif isinstance(value, float):
            properties[key] = {"example": value, "type": "number"}
        elif isinstance(value, (dict, list)):
            properties[key] = {"example": encode_schema(value), "type": "object" if isinstance(value, dict) else "array"}
            if isinstance(value, list):
                properties[key]["items"] = {"type": "object" if value and isinstance(value[0], dict) else "string"}
        else:
            # swagger doesn't allow null values
            properties[key] = {"example": encode_schema(value), "type": "string"}
    return SchemaClassFactory(name, encode_schema(properties))


def update_response_schema(responses: Dict[str, Dict[str, Any]]) -> None:
    """
    Add the error envelope schema to the error responses
    """
    for code, response in responses.items():
        if response and not response.get("schema") and int(code) >= 400:
            error = {"@context": {"operation": "", "entity": "", "error": HTTPStatus(int(code)).description}}
            responses[code]["schema"] = schema_from_object(f"error_{code}", error)


def default_paging_parameters() -> List[Dict[str, Union[int, str, bool]]]:
    """
    take, skip and orderBy query parameters of the list routes
    """
    return [
        {
            "default": 0,
            "type": "integer",
            "name": "skip",
            "in": "query",
            "format": "int64",
            "required": False,
            "description": "Number of items to skip",
        },
        {
            "default": get_int_config("DEFAULT_RETRIEVED_ITEMS_LIMIT"),
            "type": "integer",
            "name": "take",
            "in": "query",
            "format": "int64",
            "required": False,
            "description": "Max number of items",
        },
        {
            "type": "string",
            "name": "orderBy",
            "in": "query",
            "required": False,
            "description": 'Comma separated list of "prop:direction", eg. "name:desc,id"',
        },
    ]


def get_filter_parameters(router) -> List[Dict[str, Any]]:
    """
    :return: a query parameter for each property enabled in the search filter
    """
    search = router.config.search
    if search is None:
        return []
    parameters = []
    for prop in search.properties:
        prop_path, strategy = (prop, search.default_where_strategy) if isinstance(prop, str) else prop
        parameters.append(
            {
                "type": "string",
                "name": prop_path,
                "in": "query",
                "required": False,
                "description": f"Filter on {prop_path} ({strategy}), comma separated values are or-ed",
            }
        )
    return parameters


def get_path_parameters(path: str) -> List[Dict[str, Any]]:
    """
    :param path: flask route path, eg. "/user/<int:UserId>/articles/<int:id>"
    """
    parameters = []
    for segment in path.split("/"):
        if segment.startswith("<") and segment.endswith(">"):
            converter, _, name = segment[1:-1].rpartition(":")
            parameters.append(
                {"name": name, "in": "path", "type": "integer" if converter == "int" else "string", "required": True}
            )
    return parameters


def swagger_route_doc(router, route) -> Callable:
    """
    :param router: EntityRouter of the route
    :param route: RouteDescriptor
    :return: decorator adding the swagger operation object to the http method of the route
    """

    def swagger_doc_gen(func):
        entity_meta = router.entity_meta
        if route.is_subresource:
            entity_meta = route.subresource_chain[-1].target
        name = entity_meta.name
        doc: Dict[str, Any] = {"tags": [router.entity_meta.table_name], "produces": ["application/json"]}
        parameters = get_path_parameters(route.path)
        responses: Dict[Any, Dict[str, Any]] = {}
        model_name = f"{route.name}".replace("_", " ").title().replace(" ", "")

        if route.mapping:
            doc["summary"] = f"{route.operation} mapping of {name}"
            parameters.append({"name": "pretty", "in": "query", "type": "boolean", "required": False})
            responses[HTTPStatus.OK.value] = {"description": HTTPStatus.OK.description}
        else:
            doc["summary"] = SUMMARIES[route.operation].format(name=name)
            pretty = None
            if route.operation not in ("delete",):
                mapping_operation = "details" if route.operation == "restore" else route.operation
                pretty = router.registry.mapping.make(entity_meta, mapping_operation, pretty=True)

            if route.operation in ("create", "update"):
                body = schema_from_object(f"{model_name}Body", sample_from_pretty_mapping(pretty))
                parameters.append({"name": "body", "in": "body", "schema": body, "required": True, "description": f"{name} values"})

            if route.operation == "list":
                parameters += default_paging_parameters()
                target_router = router.registry.get_router(entity_meta.entity)
                parameters += get_filter_parameters(target_router)
                sample = {
                    "@context": {"operation": "list", "entity": entity_meta.table_name, "retrievedItems": 1, "totalItems": 1},
                    "items": [sample_from_pretty_mapping(pretty)],
                }
            elif route.operation == "delete":
                key = "unlinked" if route.is_subresource else "deleted"
                sample = {"@context": {"operation": "delete", "entity": entity_meta.table_name}, key: 1}
            else:
                sample = {"@context": {"operation": route.operation, "entity": entity_meta.table_name}}
                sample.update(sample_from_pretty_mapping(pretty))
            responses[HTTPStatus.OK.value] = {
                "schema": schema_from_object(f"{model_name}Response", sample),
                "description": HTTPStatus.OK.description,
            }
            if route.operation in ("create", "update"):
                responses[HTTPStatus.BAD_REQUEST.value] = {"description": HTTPStatus.BAD_REQUEST.description}
            if route.operation not in ("create", "list"):
                responses[HTTPStatus.NOT_FOUND.value] = {"description": HTTPStatus.NOT_FOUND.description}

        if is_debug():
            responses.update(debug_responses)

        doc["parameters"] = parameters
        doc["responses"] = {str(code): response for code, response in responses.items()}
        update_response_schema(doc["responses"])
        return swagger.doc(doc)(func)

    return swagger_doc_gen
