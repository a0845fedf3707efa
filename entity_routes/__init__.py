# flake8: noqa: F401
#
# routes_init has to be imported first: it creates the DB and log globals used by the other modules
#
from .routes_init import DB, log, EntityRoutes
from .errors import (
    EntityRouteError,
    GenericError,
    NotFoundError,
    BadRequestError,
    ValidationError,
    ConfigurationError,
)
from .model_config import (
    EntityRouteConfig,
    RouteOptions,
    SubresourceConfig,
    SearchFilterConfig,
    PaginationConfig,
    MaxDepthConfig,
)
from .groups import computed_prop
from .registry import Registry
from .context import RequestContext
from .routes_api import EntityRoutesAPI
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "EntityRoutes",
    "EntityRoutesAPI",
    "Registry",
    "RequestContext",
    # configuration:
    "EntityRouteConfig",
    "RouteOptions",
    "SubresourceConfig",
    "SearchFilterConfig",
    "PaginationConfig",
    "MaxDepthConfig",
    "computed_prop",
    # Errors:
    "EntityRouteError",
    "GenericError",
    "NotFoundError",
    "BadRequestError",
    "ValidationError",
    "ConfigurationError",
)
