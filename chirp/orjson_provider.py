import orjson
from flask.json.provider import DefaultJSONProvider


class ORJSONProvider(DefaultJSONProvider):
    def dumps(self, obj, **kwargs):
        # orjson.dumps returns bytes; Flask expects str. Datetimes come out as ISO 8601.
        if obj is None:
            return "null"
        elif obj is True:
            return "true"
        elif obj is False:
            return "false"
        return orjson.dumps(obj, default=str).decode("utf-8")

    def loads(self, s, **kwargs):
        return orjson.loads(s)
