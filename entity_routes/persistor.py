# Persistor: clean, validate and save the request body of a create/update route
from typing import Any, Dict

import entity_routes
from .cleaner import clean_item
from .context import RequestContext
from .errors import BadRequestError, NotFoundError, ValidationError
from .metadata import EntityMeta
from .validator import make_error, validate_item


class Persistor:
    """
    Save an item and its nested relations, hooks are called in this order:
    before_clean, after_clean, before_validate, after_validate, before_persist, after_persist
    """

    def __init__(self, registry: "entity_routes.registry.Registry") -> None:
        self.registry = registry

    def save_item(self, session, context: RequestContext, root_meta: EntityMeta, subresource_relation=None) -> Any:
        """
        :param session: sqlalchemy session
        :param context: request context of a create or update route
        :param root_meta: entity of the route
        :param subresource_relation: first SubresourceRelation of a subresource route, the parent is set on the item
        :return: the saved (flushed) item
        """
        config = self.registry.get_config(root_meta.entity)
        operation = context.operation

        config.call_hook("before_clean", context=context, values=context.values)
        cleaned = clean_item(self.registry, root_meta, operation, context.values)
        config.call_hook("after_clean", context=context, result=cleaned)

        mapping = self.registry.mapping.make(root_meta, operation)
        config.call_hook("before_validate", context=context, item=cleaned)
        values, errors = validate_item(mapping, cleaned, is_update=operation == "update")
        # hooks may add or remove errors
        ref = {"errors": errors}
        config.call_hook("after_validate", context=context, item=values, ref=ref)

        if not values and subresource_relation is None:
            raise BadRequestError(
                f"Item can't be saved since it's empty, check the groups of {root_meta.name} for the {operation} operation"
            )
        if ref["errors"]:
            raise ValidationError(f"Invalid {root_meta.name}", ref["errors"])

        if operation == "update":
            item = session.get(root_meta.entity, context.entity_id)
            if item is None:
                raise NotFoundError(f"{root_meta.name} {context.entity_id}")
        else:
            item = root_meta.entity()

        try:
            self.set_values(session, root_meta, item, values)
        except ValueError as exc:
            # raised by the sqlalchemy @validates methods
            raise ValidationError(
                str(exc), {root_meta.table_name: [make_error("", "class", "unknown", str(exc))]}
            )

        if subresource_relation is not None:
            self.set_subresource_parent(session, item, subresource_relation)

        config.call_hook("before_persist", context=context, item=item)
        session.add(item)
        session.flush()
        config.call_hook("after_persist", context=context, result=item)
        entity_routes.log.debug(f"Saved {root_meta.name} {getattr(item, root_meta.primary_key)}")
        return item

    def set_values(self, session, entity_meta: EntityMeta, item: Any, values: Dict[str, Any]) -> Any:
        """
        Set the (nested) values on item, relations are loaded or created
        """
        for key, value in values.items():
            relation = entity_meta.find_relation(key)
            if relation is None:
                if key != entity_meta.primary_key:
                    setattr(item, key, value)
                continue
            if relation.is_to_many:
                setattr(item, key, [self.get_relation_item(session, relation.target, nested) for nested in value])
            else:
                setattr(item, key, None if value is None else self.get_relation_item(session, relation.target, value))
        return item

    def get_relation_item(self, session, target: EntityMeta, values: Dict[str, Any]) -> Any:
        """
        :return: the existing item referenced by values, updated with the other values, or a new item
        """
        item_id = values.get(target.primary_key)
        if item_id is None:
            return self.set_values(session, target, target.entity(), values)
        item = session.get(target.entity, item_id)
        if item is None:
            raise NotFoundError(f"{target.name} {item_id}")
        return self.set_values(session, target, item, values)

    @staticmethod
    def set_subresource_parent(session, item: Any, subresource_relation) -> None:
        """
        Set the parent on the inverse side of a single relation, eg. article.author for POST /user/1/articles
        """
        inverse = subresource_relation.relation.inverse_relation
        if inverse is None or not inverse.is_single:
            return
        parent_meta = subresource_relation.relation.owner
        parent = session.get(parent_meta.entity, subresource_relation.id)
        if parent is None:
            raise NotFoundError(f"{parent_meta.name} {subresource_relation.id}")
        setattr(item, inverse.property_name, parent)
