"""Route controller: the implementation of each CRUD operation of an entity.

A subresource request is handled by the controller of the subresource entity,
its items are joined on the inverse side of every relation of the chain, the
first parent being filtered on its id::

    GET /user/1/articles/comments
    SELECT comment.* FROM comment
        JOIN article AS comment_article_1 ON ...
        JOIN "user" AS article_author_1 ON ... AND article_author_1.id = :parentId_article_author_1
"""

import datetime
from typing import Any, Dict

import entity_routes
from .alias import AliasHandler
from .context import RequestContext
from .errors import BadRequestError, NotFoundError
from .pagination_filter import PaginationFilter
from .persistor import Persistor
from .query import QueryBuilder
from .reader import Reader
from .search_filter import SearchFilter


class RouteController:
    def __init__(self, registry: "entity_routes.registry.Registry", entity: type) -> None:
        self.registry = registry
        self.entity = entity
        self.entity_meta = registry.get_entity_meta(entity)
        self.reader = Reader(registry)
        self.persistor = Persistor(registry)

    @property
    def config(self):
        return self.registry.get_config(self.entity)

    @property
    def options(self):
        return self.registry.get_options(self.entity)

    @property
    def soft_delete_column(self):
        """
        :return: name of the soft delete column, None when soft delete is disabled
        """
        options = self.options
        column = self.entity_meta.find_column(options.get("soft_delete_column"))
        if not options.get("allow_soft_delete") or column is None:
            return None
        return column.property_name

    @property
    def session(self):
        return entity_routes.DB.session

    @property
    def dialect(self):
        return self.session.get_bind(mapper=self.entity).dialect

    def create(self, context: RequestContext) -> Any:
        if not context.values and not context.subresource_relations:
            raise BadRequestError("Body can't be empty on create operation")

        subresource_relation = context.subresource_relation
        item = self.persistor.save_item(self.session, context, self.entity_meta, subresource_relation)

        if subresource_relation is not None and not subresource_relation.relation.inverse_is_single:
            # the parent owns the relation: one-to-many or many-to-many inverse side
            self.link_to_parent(item, subresource_relation)

        if self.options.get("should_auto_reload"):
            return self.reload(context, getattr(item, self.entity_meta.primary_key))
        return item

    def update(self, context: RequestContext) -> Any:
        if not context.values:
            raise BadRequestError("Body can't be empty on update operation")
        values = dict(context.values)
        values[self.entity_meta.primary_key] = context.entity_id
        context.values = values

        item = self.persistor.save_item(self.session, context, self.entity_meta)
        if self.options.get("should_auto_reload"):
            return self.reload(context, getattr(item, self.entity_meta.primary_key))
        return item

    def reload(self, context: RequestContext, entity_id: Any) -> Any:
        """
        :return: the saved item read with the details mapping
        """
        context.was_auto_reloaded = True
        details_context = RequestContext(
            operation="details", entity_id=entity_id, query_params={"withDeleted": "true"}, request_id=context.request_id
        )
        self.session.expire_all()
        return self.get_details(details_context)

    def get_list(self, context: RequestContext) -> Dict[str, Any]:
        """
        :return: {"items": items of the current page, "total_items": count of every matching item}
        """
        qb = QueryBuilder(self.entity_meta, dialect=self.dialect)
        alias_handler = AliasHandler()
        self.join_subresource_parents(qb, alias_handler, context)

        config = self.config
        SearchFilter(self.registry, self.entity_meta, config.search).apply(context.query_params, qb, alias_handler)
        PaginationFilter(self.registry, self.entity_meta, config.pagination).apply(context.query_params, qb, alias_handler)

        items, total_items = self.reader.get_collection(self.session, self.entity_meta, qb, context.operation, context)
        return {"items": items, "total_items": total_items}

    def get_details(self, context: RequestContext) -> Any:
        qb = QueryBuilder(self.entity_meta, dialect=self.dialect)
        alias_handler = AliasHandler()
        self.join_subresource_parents(qb, alias_handler, context)
        return self.reader.get_item(self.session, self.entity_meta, qb, context.entity_id, context.operation, context)

    def delete(self, context: RequestContext) -> Dict[str, Any]:
        subresource_relation = context.subresource_relation
        config = self.config
        config.call_hook("before_remove", context=context, entity_id=context.entity_id, subresource_relation=subresource_relation)

        if subresource_relation is not None:
            result = {"unlinked": self.unlink_from_parent(context.entity_id, subresource_relation)}
        else:
            item = self.get_item_or_404(context.entity_id)
            column = self.soft_delete_column
            if column is not None:
                if getattr(item, column) is not None:
                    raise NotFoundError(f"{self.entity_meta.name} {context.entity_id} is already deleted")
                setattr(item, column, datetime.datetime.utcnow())
            else:
                self.session.delete(item)
            self.session.flush()
            result = {"deleted": context.entity_id}

        config.call_hook("after_remove", context=context, entity_id=context.entity_id, subresource_relation=subresource_relation, result=result)
        return result

    def restore(self, context: RequestContext) -> Any:
        """
        Undo a soft delete
        """
        column = self.soft_delete_column
        if column is None:
            raise BadRequestError(f"{self.entity_meta.name} items can't be restored")
        item = self.get_item_or_404(context.entity_id)
        setattr(item, column, None)
        self.session.flush()
        return self.reload(context, context.entity_id)

    def get_item_or_404(self, entity_id: Any) -> Any:
        item = self.session.get(self.entity, entity_id)
        if item is None:
            raise NotFoundError(f"{self.entity_meta.name} {entity_id}")
        return item

    def join_subresource_parents(self, qb: QueryBuilder, alias_handler: AliasHandler, context: RequestContext) -> None:
        """
        Join the parents of the chain on their inverse side, starting from the closest one
        """
        prev_alias = qb.alias
        for subresource_relation in reversed(context.subresource_relations):
            prev_alias = self.registry.relations.join_subresource_on_inverse_side(
                qb, self.entity_meta, alias_handler, subresource_relation, prev_alias
            )

    def get_parent(self, subresource_relation) -> Any:
        parent_meta = subresource_relation.relation.owner
        parent = self.session.get(parent_meta.entity, subresource_relation.id)
        if parent is None:
            raise NotFoundError(f"{parent_meta.name} {subresource_relation.id}")
        return parent

    def link_to_parent(self, item: Any, subresource_relation) -> None:
        relation = subresource_relation.relation
        parent = self.get_parent(subresource_relation)
        if relation.is_single:
            setattr(parent, relation.property_name, item)
        else:
            getattr(parent, relation.property_name).append(item)
        self.session.flush()

    def unlink_from_parent(self, entity_id: Any, subresource_relation) -> Any:
        """
        Remove the item from the parent relation, the item itself is kept
        :param entity_id: None for a single relation, the path has no id segment
        :return: id of the unlinked item
        """
        relation = subresource_relation.relation
        parent = self.get_parent(subresource_relation)
        if relation.is_single:
            item = getattr(parent, relation.property_name)
            if item is None or (entity_id is not None and getattr(item, self.entity_meta.primary_key) != entity_id):
                raise NotFoundError(f"{self.entity_meta.name} {entity_id or ''} in {relation.owner_table_name}.{relation.property_name}")
            setattr(parent, relation.property_name, None)
        else:
            items = getattr(parent, relation.property_name)
            item = next((nested for nested in items if getattr(nested, self.entity_meta.primary_key) == entity_id), None)
            if item is None:
                raise NotFoundError(f"{self.entity_meta.name} {entity_id} in {relation.owner_table_name}.{relation.property_name}")
            items.remove(item)
        self.session.flush()
        return getattr(item, self.entity_meta.primary_key)
