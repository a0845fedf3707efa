# entity_routes to json encoding
import datetime
import decimal
import json
from uuid import UUID
from flask.json.provider import DefaultJSONProvider
import entity_routes
from .config import is_debug


class _EntityRoutesJSONEncoder:
    """
    JSON encoding of the values found in the serialized items
    """

    # pylint: disable=arguments-differ,method-hidden
    def default(self, obj, **kwargs):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if obj is None:
            return None
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, datetime.datetime):
            return obj.isoformat(" ")
        if isinstance(obj, (datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, set):
            return list(obj)
        if isinstance(obj, UUID):  # pragma: no cover
            return str(obj)
        if isinstance(obj, decimal.Decimal):  # pragma: no cover
            return float(obj)
        if isinstance(obj, bytes):  # pragma: no cover
            if obj == b"":
                return ""
            entity_routes.log.debug("EntityRoutesJSONEncoder: serializing bytes obj")
            return obj.hex()

        # Getting here means an unmapped value was exposed, eg. by a computed prop
        if not is_debug():  # pragma: no cover
            entity_routes.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
            return {"error": "EntityRoutesJSONEncoder invalid object"}

        return str(obj)


class EntityRoutesJSONProvider(_EntityRoutesJSONEncoder, DefaultJSONProvider):
    """
    Flask JSON encoding
    """

    sort_keys = False


class EntityRoutesJSONEncoder(_EntityRoutesJSONEncoder, json.JSONEncoder):
    """
    Common JSON encoding
    """

    pass
