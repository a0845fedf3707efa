# Route actions: http method and path suffix of each operation, route descriptors
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

import entity_routes


class CrudAction(NamedTuple):
    method: str
    path: str
    controller_method: str


CRUD_ACTIONS = {
    "create": CrudAction("POST", "", "create"),
    "list": CrudAction("GET", "", "get_list"),
    "details": CrudAction("GET", "/<int:id>", "get_details"),
    "update": CrudAction("PUT", "/<int:id>", "update"),
    "delete": CrudAction("DELETE", "/<int:id>", "delete"),
    "restore": CrudAction("PUT", "/<int:id>/restore", "restore"),
}

# these operations have no mapping introspection route
OPERATIONS_WITHOUT_MAPPING = ("delete", "restore")


@dataclass(frozen=True)
class RouteDescriptor:
    """
    One generated route

    :param subresource_chain: relations from the route entity to the subresource, empty for the main routes
    :param mapping: the route returns the mapping of `operation` instead of handling it
    """

    name: str
    method: str
    path: str
    operation: str
    subresource_chain: Tuple["entity_routes.subresources.SubresourceProperty", ...] = ()
    mapping: bool = False

    @property
    def is_subresource(self) -> bool:
        return bool(self.subresource_chain)

    def __str__(self) -> str:
        return f"{self.path} : {self.method.lower()}"


def format_route_name(*parts: Optional[str]) -> str:
    """
    eg. format_route_name("user", "articles", "list") -> "user_articles_list"
    """
    return "_".join(part for part in parts if part)

