# Response class
from flask import Response


class EntityRouteResponse(Response):
    """
    Response class of the generated routes
    """

    default_mimetype = "application/json"
