# JSON:API document encoding

import datetime
import decimal
import json
from uuid import UUID
from flask.json.provider import DefaultJSONProvider
import sajsonapi
from .included import Included


class _JsonapiJSONEncoder:
    """
    JSON encoding for the values found in resource objects
    """

    def default(self, obj):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if isinstance(obj, Included):
            return obj.to_output_list()
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, datetime.datetime):
            return obj.isoformat(" ")
        if isinstance(obj, (datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, set):
            return list(obj)
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        if isinstance(obj, bytes):
            sajsonapi.log.debug("JSON encoding: serializing bytes obj")
            return obj.hex()

        sajsonapi.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class JsonapiJSONProvider(_JsonapiJSONEncoder, DefaultJSONProvider):
    """
    Flask JSON encoding: app.json = JsonapiJSONProvider(app)
    """

    mimetype = "application/vnd.api+json"


class JsonapiJSONEncoder(_JsonapiJSONEncoder, json.JSONEncoder):
    """
    Common JSON encoding: json.dumps(doc, cls=JsonapiJSONEncoder)
    """

    pass
