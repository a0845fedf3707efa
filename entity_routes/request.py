"""
Request class: parse the query string and the json body of the generated routes

A query param key may be repeated, eg. ``?orderBy=name&orderBy=id``, in that case
its value is the list of the values.
"""

from typing import Any, Dict, Optional
from flask import Request
import entity_routes
from .errors import BadRequestError

PAYLOAD_METHODS = ["POST", "PUT", "PATCH"]


# pylint: disable=too-many-ancestors
class EntityRouteRequest(Request):
    """
    Adds the query params and the json payload used by the route handlers
    """

    @property
    def query_params(self) -> Dict[str, Any]:
        """
        :return: query string as a dict, repeated keys hold a list of values
        """
        params = {}
        for key in self.args:
            values = self.args.getlist(key)
            params[key] = values[0] if len(values) == 1 else values
        return params

    def get_payload(self) -> Optional[Dict[str, Any]]:
        """
        :return: json request body, None for methods without a body or an empty body
        """
        if self.method not in PAYLOAD_METHODS or not self.get_data():
            return None
        if not self.is_json:  # pragma: no cover
            entity_routes.log.warning(f'Invalid Media Type! "{self.content_type}"')
        result = self.get_json(force=True, silent=True)
        if not isinstance(result, dict):
            raise BadRequestError(f"Invalid JSON Payload : {self.get_data(as_text=True)[:200]}")
        return result
