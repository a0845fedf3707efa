"""Subresources: relations exposed as nested routes of their owner.

With ``User.articles`` and ``Article.comments`` declared as subresources::

    POST   /user/<int:UserId>/articles               user_articles_create
    GET    /user/<int:UserId>/articles               user_articles_list
    DELETE /user/<int:UserId>/articles/<int:id>      user_articles_delete
    GET    /user/<int:UserId>/articles/comments      user_articles_comments_list

Only the first relation of a chain can be written to. Nested relations are read
only: a collection can be listed after any relation, a single relation can only
be read after another single relation (there is no id segment to select one item
of a collection).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import entity_routes
from .actions import CRUD_ACTIONS, RouteDescriptor, format_route_name
from .config import get_config
from .errors import ConfigurationError
from .metadata import EntityMeta, RelationMeta
from .model_config import SubresourceConfig

# operations available on the first relation of a chain
WRITE_OPERATIONS = ("create", "delete")


@dataclass(frozen=True)
class SubresourceProperty:
    """
    A relation of a subresource route chain
    """

    relation: RelationMeta
    config: SubresourceConfig
    path: str

    @property
    def name(self) -> str:
        return self.relation.property_name

    @property
    def target(self) -> EntityMeta:
        return self.relation.target

    @property
    def is_single(self) -> bool:
        return self.relation.is_single


@dataclass(frozen=True)
class SubresourceRelation:
    """
    A subresource relation of the current request, the first one of the chain holds the parent id

    :param param: route parameter of the parent id, eg. "UserId"
    """

    relation: RelationMeta
    param: Optional[str] = None
    id: Any = None


def get_parent_id_param(entity_meta: EntityMeta) -> str:
    """
    eg. "UserId"
    """
    return f"{entity_meta.name}{get_config('OBJECT_ID_SUFFIX')}"


def make_subresource_relations(chain: Sequence[SubresourceProperty], route_kwargs: Dict[str, Any]) -> List[SubresourceRelation]:
    """
    :param chain: subresource chain of the route
    :param route_kwargs: route parameters of the request
    """
    relations = []
    for index, subresource in enumerate(chain):
        if index:
            relations.append(SubresourceRelation(subresource.relation))
            continue
        param = get_parent_id_param(subresource.relation.owner)
        relations.append(SubresourceRelation(subresource.relation, param, route_kwargs.get(param)))
    return relations


class SubresourceMaker:
    """
    Derives the subresource routes of an entity
    """

    def __init__(self, registry: "entity_routes.registry.Registry", entity: type) -> None:
        self.registry = registry
        self.entity = entity
        self.entity_meta = registry.get_entity_meta(entity)

    @property
    def max_depth_lvl(self) -> int:
        return int(self.registry.get_options(self.entity).get("default_subresource_max_depth_lvl"))

    def make_routes(self) -> List[RouteDescriptor]:
        """
        :return: route descriptors of every (nested) subresource, in declaration order
        """
        base_path = self.registry.get_route_path(self.entity) + f"/<int:{get_parent_id_param(self.entity_meta)}>"
        routes: List[RouteDescriptor] = []
        self._make_subresources_routes(routes, self.entity_meta, base_path, (), (self.entity_meta.table_name,))
        return routes

    def _make_subresources_routes(
        self,
        routes: List[RouteDescriptor],
        entity_meta: EntityMeta,
        current_path: str,
        chain: Tuple[SubresourceProperty, ...],
        tables: Tuple[str, ...],
    ) -> None:
        config = self.registry.get_config(entity_meta.entity)
        if config is None:
            return
        parent = chain[-1] if chain else None

        for prop, subresource_config in config.subresources.items():
            relation = entity_meta.find_relation(prop)
            target = relation.target
            subresource = SubresourceProperty(relation, subresource_config, subresource_config.path or prop)
            sub_chain = chain + (subresource,)
            chain_name = ".".join(sub.name for sub in sub_chain)

            if not self.registry.is_routed(target.entity):
                entity_routes.log.debug(f"Subresource {chain_name} skipped: {target.name} is not exposed")
                continue
            if target.table_name in tables and not self.registry.get_config(target.entity).allow_circular:
                entity_routes.log.debug(f"Subresource {chain_name} skipped: circular")
                continue
            if not self.is_within_max_depth(sub_chain):
                entity_routes.log.debug(f"Subresource {chain_name} skipped: max depth reached")
                continue
            if parent is not None and not (subresource_config.can_be_nested and parent.config.can_have_nested):
                entity_routes.log.debug(f"Subresource {chain_name} skipped: nesting not allowed")
                continue
            if relation.inverse_relation is None:
                raise ConfigurationError(
                    f"Subresource {entity_meta.name}.{prop} requires an inverse relation (back_populates or backref)"
                )

            path = f"{current_path}/{subresource.path}"
            operations = self.get_operations(subresource, parent)
            if not operations:
                entity_routes.log.debug(f"Subresource {chain_name} skipped: no operation available")
                continue

            for operation in operations:
                self._add_route(routes, sub_chain, path, operation)

            if subresource_config.can_have_nested:
                self._make_subresources_routes(routes, target, path, sub_chain, tables + (target.table_name,))

    def is_within_max_depth(self, chain: Sequence[SubresourceProperty]) -> bool:
        """
        Every relation of the chain limits the depth reached after it, the strictest limit wins
        """
        depth = len(chain)
        for index, subresource in enumerate(chain):
            max_depth = subresource.config.max_depth or self.max_depth_lvl
            if depth - index > max_depth:
                return False
        return True

    @staticmethod
    def get_operations(subresource: SubresourceProperty, parent: Optional[SubresourceProperty]) -> List[str]:
        operations = []
        for operation in subresource.config.operations:
            if operation == "list" and subresource.is_single:
                continue
            if operation == "details" and not subresource.is_single:
                continue
            if parent is None:
                if operation in ("list", "details") + WRITE_OPERATIONS:
                    operations.append(operation)
                continue
            # a single item can't be read after a collection
            if operation == "list" or (operation == "details" and parent.is_single):
                operations.append(operation)
        return operations

    def _add_route(self, routes: List[RouteDescriptor], chain: Tuple[SubresourceProperty, ...], path: str, operation: str) -> None:
        subresource = chain[-1]
        if operation == "delete" and not subresource.is_single:
            path += CRUD_ACTIONS["delete"].path
        name = format_route_name(self.entity_meta.table_name, *[sub.name for sub in chain], operation)
        method = CRUD_ACTIONS[operation].method
        if any(route.name == name or (route.path, route.method) == (path, method) for route in routes):
            return
        routes.append(RouteDescriptor(name=name, method=method, path=path, operation=operation, subresource_chain=chain))
