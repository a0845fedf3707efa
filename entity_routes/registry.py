"""Registry of the exposed entities.

Every entity (and every base class or mixin carrying exposure groups) is
registered explicitly once, at startup::

    registry = Registry()
    registry.register_groups(Timestamped, {"created_at": ["details"]})
    registry.register(User, EntityRouteConfig(path="/users", groups={"id": "all", "name": "basic"}))

The resolvers (groups, mappings, relations) and the routers hold a reference to
the registry for their cross-entity lookups. The registry also holds the
metadata of every mapped class it is asked about.
"""

from typing import Any, Dict, List, Mapping, Optional

import entity_routes
from .errors import ConfigurationError
from .groups import GroupsMetadata, GroupsResolver
from .mapping import MappingManager
from .metadata import EntityMeta
from .model_config import EntityRouteConfig, MaxDepthConfig, RouteOptions
from .relations import RelationManager
from .util import OnceCache


class Registry:
    """
    :param options: route options shared by every registered entity, entity options take precedence
    """

    def __init__(self, options: RouteOptions = None) -> None:
        self.options = options or RouteOptions()
        self._configs: Dict[type, EntityRouteConfig] = {}
        self._groups: Dict[type, GroupsMetadata] = {}
        self._routers: Dict[type, Any] = {}
        self._entity_metas = OnceCache()
        self.groups = GroupsResolver(self)
        self.mapping = MappingManager(self)
        self.relations = RelationManager(self)

    def register(self, entity: type, config: EntityRouteConfig = None, **overrides) -> EntityRouteConfig:
        """
        Register an entity, its groups are registered with it

        :param entity: SqlAlchemy mapped class
        :param config: entity configuration
        :param overrides: config fields that replace the ones of `config`
        :return: the registered configuration
        """
        config = (config or EntityRouteConfig()).with_overrides(overrides)
        entity_meta = self.get_entity_meta(entity)
        if entity in self._configs:
            raise ConfigurationError(f"{entity_meta.name} is already registered")
        for prop in config.subresources:
            if not entity_meta.find_relation(prop):
                raise ConfigurationError(f'Subresource "{prop}" of {entity_meta.name} is not a relation')
        self._configs[entity] = config
        if config.groups:
            self._groups[entity] = GroupsMetadata(config.groups)
        self.clear()
        entity_routes.log.debug(f"Registered {entity_meta.name}")
        return config

    def register_groups(self, cls: type, groups: Mapping[str, Any]) -> None:
        """
        Register exposure groups on a class that is not (necessarily) exposed: a mixin, a base class, ...
        """
        self._groups[cls] = GroupsMetadata({**self._config_groups(cls), **groups})
        self.clear()

    def _config_groups(self, cls: type) -> Mapping[str, Any]:
        config = self._configs.get(cls)
        return config.groups if config else {}

    def clear(self) -> None:
        """
        Drop the cached groups, mappings and routers
        """
        self.groups.clear()
        self.mapping.clear()
        self._routers.clear()

    @property
    def entities(self) -> List[type]:
        """
        :return: the exposed entities, in registration order
        """
        return [entity for entity, config in self._configs.items() if config.expose]

    def get_groups(self, cls: type) -> Optional[GroupsMetadata]:
        return self._groups.get(cls)

    def get_config(self, entity: type) -> Optional[EntityRouteConfig]:
        return self._configs.get(entity)

    def is_routed(self, entity: type) -> bool:
        config = self._configs.get(entity)
        return bool(config and config.expose)

    def get_max_depth(self, entity: type) -> Optional[MaxDepthConfig]:
        config = self._configs.get(entity)
        return config.max_depth if config else None

    def get_depends_on(self, entity: type) -> Mapping[str, Any]:
        config = self._configs.get(entity)
        return config.depends_on if config else {}

    def get_options(self, entity: type) -> RouteOptions:
        """
        :return: the route options of `entity`, unset values are taken from the registry options
        """
        config = self._configs.get(entity)
        if config is None:
            return self.options
        return config.options.merged(self.options)

    def get_route_path(self, entity: type) -> str:
        """
        :return: route path of the entity, eg. "/user"
        """
        config = self._configs.get(entity)
        path = config.path if config and config.path else entity.__name__.lower()
        return "/" + path.strip("/")

    def get_entity_meta(self, entity: type) -> EntityMeta:
        """
        :param entity: mapped class, registered or not
        :return: its EntityMeta, built once: mappers are static once configured
        """
        return self._entity_metas.get_or_build(entity, lambda: EntityMeta(entity, self.get_entity_meta))

    def find_entity_by_table_name(self, table_name: str) -> Optional[type]:
        for entity in self._configs:
            if self.get_entity_meta(entity).table_name == table_name:
                return entity
        return None

    def get_router(self, entity: type):
        """
        :return: the EntityRouter of an exposed entity, created on first use
        """
        if not self.is_routed(entity):
            raise ConfigurationError(f"{entity.__name__} is not exposed")
        from .router import EntityRouter

        router = self._routers.get(entity)
        if router is None:
            router = self._routers[entity] = EntityRouter(self, entity)
        return router

    @property
    def routers(self) -> list:
        return [self.get_router(entity) for entity in self.entities]
