# Configuration settings should be set in app.config
# get_config falls back to the EntityRoutes class defaults and to environment variables
import os
import logging
from flask import current_app
from functools import lru_cache
import entity_routes
from typing import Any


@lru_cache(maxsize=128)
def get_config(option: str) -> Any:
    """Retrieve a configuration parameter from the app
    :param option: configuration parameter
    :return: configuration value
    """
    try:
        result = current_app.config[option]
    except (KeyError, RuntimeError):
        result = getattr(entity_routes.EntityRoutes, option, os.environ.get(option, None))
    return result


def get_int_config(option: str) -> int:
    """
    :param option: configuration parameter
    :return: integer configuration value (environment variables are strings)
    """
    return int(get_config(option))


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return entity_routes.log.getEffectiveLevel() < logging.INFO
