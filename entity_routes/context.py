# Request context: what a generated route handler knows about the current request
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

WRITE_OPERATIONS = ("create", "update")


@dataclass
class RequestContext:
    """
    :param operation: route operation, eg. "details"
    :param entity_id: id route parameter, if any
    :param values: request body
    :param query_params: query string, a value is a string or a list of strings when the key is repeated
    :param subresource_relations: relations from the route entity to the requested subresource
    """

    operation: str
    entity_id: Any = None
    values: Optional[Dict[str, Any]] = None
    query_params: Dict[str, Any] = field(default_factory=dict)
    subresource_relations: List[Any] = field(default_factory=list)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    was_auto_reloaded: bool = False

    @property
    def is_update_or_create(self) -> bool:
        return self.operation in WRITE_OPERATIONS

    @property
    def subresource_relation(self):
        """
        the first relation of the chain, it holds the parent id
        """
        return self.subresource_relations[0] if self.subresource_relations else None
