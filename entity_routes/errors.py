# Exception Handlers
#
# The application loglevel determines the level of detail shown to the user.
# If set to debug, too much sensitive info might be shown !
#
# The exceptions are caught in http_method_decorator and formatted as a response envelope, for example:
# {
#      "@context": {"operation": "details", "entity": "user", "error": "Not found: (debug logging disabled)"}
# }
#
import traceback
from werkzeug.exceptions import NotFound
import entity_routes
from sqlalchemy.exc import DontWrapMixin
from http import HTTPStatus
from .config import is_debug

HIDDEN_LOG = "(debug logging disabled)"


class EntityRouteError(Exception, DontWrapMixin):
    """
    Base class of the errors that are turned into a response envelope
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = ""

    def __str__(self) -> str:
        return self.message


class NotFoundError(EntityRouteError, NotFound):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value
    message = "Not found: "

    def __init__(self, message="", status_code=HTTPStatus.NOT_FOUND.value):
        """
        :param message: Message to be returned in the (json) body
        :param status_code: HTTP Status code
        """
        EntityRouteError.__init__(self)
        self.status_code = status_code
        entity_routes.log.error("Not found: %s", message)
        if is_debug():
            self.message += message
        else:
            self.message += HIDDEN_LOG


class GenericError(EntityRouteError):
    """
    This exception is raised when an error has been detected
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value  # 500
    message = "Generic Error: "

    def __init__(self, message, status_code=HTTPStatus.INTERNAL_SERVER_ERROR.value):
        Exception.__init__(self)
        self.status_code = status_code
        entity_routes.log.error("Generic Error: %s", message)
        if is_debug():
            entity_routes.log.debug(traceback.format_exc(120))
            self.message += str(message)
        else:
            self.message += HIDDEN_LOG


class BadRequestError(EntityRouteError):
    """
    Client side input that can't be handled, eg. an empty body on create.
    The message is always sent back to the client
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = ""

    def __init__(self, message="", status_code=HTTPStatus.BAD_REQUEST.value):
        Exception.__init__(self)
        self.status_code = status_code
        entity_routes.log.warning("Bad request: %s", message)
        self.message = message


class ValidationError(EntityRouteError):
    """
    This exception is raised when invalid input has been detected (client side input)
    Always send back the message and the per-field errors to the client
    """

    status_code = HTTPStatus.BAD_REQUEST.value
    message = "Validation Error: "

    def __init__(self, message="", errors=None, status_code=HTTPStatus.BAD_REQUEST.value):
        Exception.__init__(self)
        self.status_code = status_code
        self.errors = errors or {}
        entity_routes.log.warning("ValidationError: %s %s", message, self.errors)
        self.message += message


class ConfigurationError(Exception):
    """
    Invalid model or route configuration, raised while the routes and mappings are built
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        entity_routes.log.error("ConfigurationError: %s", message)
        self.message = message
