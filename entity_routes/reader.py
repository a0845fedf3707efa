# Reader: execute the read queries of the list and details routes
from typing import Any, List, Tuple

import entity_routes
from .context import RequestContext
from .errors import NotFoundError
from .metadata import EntityMeta
from .query import QueryBuilder
from .util import parse_string_as_boolean


class Reader:
    """
    Load the items with only the props exposed by the route mapping, hooks: before_read, after_read
    """

    def __init__(self, registry: "entity_routes.registry.Registry") -> None:
        self.registry = registry

    def prepare(self, qb: QueryBuilder, entity_meta: EntityMeta, operation: str, context: RequestContext) -> None:
        """
        Add the eager loading options of the mapping and the soft delete condition
        """
        options = self.registry.get_options(entity_meta.entity)
        mapping = self.registry.mapping.make(entity_meta, operation)
        qb.options(*self.registry.relations.get_load_options(qb.root, mapping, options))
        self.exclude_soft_deleted(qb, entity_meta, context)

    def exclude_soft_deleted(self, qb: QueryBuilder, entity_meta: EntityMeta, context: RequestContext) -> None:
        options = self.registry.get_options(entity_meta.entity)
        column = entity_meta.find_column(options.get("soft_delete_column"))
        if not options.get("allow_soft_delete") or column is None:
            return
        if context is not None and parse_string_as_boolean(context.query_params.get("withDeleted")):
            return
        # the current conditions may contain "or" conditions
        qb.wrap()
        qb.and_where(f"{qb.get_column_sql(qb.alias, column.database_name)} IS NULL")

    def get_collection(
        self, session, entity_meta: EntityMeta, qb: QueryBuilder, operation: str = "list", context: RequestContext = None
    ) -> Tuple[List[Any], int]:
        """
        :return: the items of the current page and the total count
        """
        config = self.registry.get_config(entity_meta.entity)
        self.prepare(qb, entity_meta, operation, context)

        config.call_hook("before_read", context=context, qb=qb)
        results = qb.get_many_and_count(session)
        # hooks may replace the results
        ref = {"results": results}
        config.call_hook("after_read", context=context, ref=ref)
        return ref["results"]

    def get_item(
        self, session, entity_meta: EntityMeta, qb: QueryBuilder, entity_id: Any = None, operation: str = "details", context: RequestContext = None
    ) -> Any:
        """
        :param entity_id: id of the item, a subresource item has no id: it is joined on its parent
        :raises NotFoundError: no item matches
        """
        config = self.registry.get_config(entity_meta.entity)
        if entity_id is not None:
            qb.and_where(f"{qb.get_column_sql(qb.alias, entity_meta.id_column.database_name)} = :id", {"id": entity_id})
        self.prepare(qb, entity_meta, operation, context)

        config.call_hook("before_read", context=context, qb=qb)
        result = qb.get_one(session)
        ref = {"result": result}
        config.call_hook("after_read", context=context, ref=ref)

        if ref["result"] is None:
            raise NotFoundError(f"{entity_meta.name} {entity_id if entity_id is not None else ''}".strip())
        return ref["result"]
