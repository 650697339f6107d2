from types import SimpleNamespace
from typing import Any, Dict
from marshmallow import EXCLUDE, Schema, post_dump, post_load

JSON = Dict[str, Any]
MAX_REPR_LEN = 50


class BaseModel(SimpleNamespace):
    """Attribute bag built from a loaded HomeAgent spec or status."""

    def __repr__(self) -> str:
        repr_ = super().__repr__()
        if len(repr_) > MAX_REPR_LEN:
            return repr_[:MAX_REPR_LEN] + " ...)"
        return repr_


class BaseSchema(Schema):
    """Schema for HomeAgent sub-objects.

    Loading builds an instance of ``__model__``. Dumping drops unset fields so
    a status replace never writes explicit nulls.
    """

    __model__: Any = BaseModel

    class Meta:
        # Kopf hands over the full spec/status, including fields owned by others.
        unknown = EXCLUDE
        ordered = True

    @post_load
    def make_object(self, data: JSON, **kwargs: Any) -> "__model__":
        return self.__model__(**data)

    @post_dump
    def drop_unset(self, data: JSON, **kwargs: Any) -> JSON:
        return {key: value for key, value in data.items() if value is not None}
