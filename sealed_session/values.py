"""Session values.

A session value is one of a closed set of kinds. Each kind knows how to pack
itself into a small JSON object ``{"t": kind, "v": payload}`` and how to
come back from it; structured models also carry their type tag in ``"c"``.
"""
import base64
from enum import Enum
from typing import Any, Optional
from datetime import datetime
import jsonpickle
from jsonpickle.unpickler import loadclass
from datamodel import BaseModel
from pydantic import BaseModel as PydanticBaseModel

from .exceptions import UnsupportedValueType

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class ModelHandler(jsonpickle.handlers.BaseHandler):
    """ModelHandler.
    This class can handle with serializable Data Models.
    """
    def flatten(self, obj, data):
        data['__dict__'] = self.context.flatten(obj.__dict__, reset=False)
        return data

    def restore(self, obj):
        module_and_type = obj['py/object']
        mdl = loadclass(module_and_type)
        cls = mdl.__new__(mdl) if hasattr(mdl, '__new__') else object.__new__(mdl)
        cls.__dict__ = self.context.restore(obj['__dict__'], reset=False)
        return cls

jsonpickle.handlers.registry.register(BaseModel, ModelHandler, base=True)


class ValueKind(str, Enum):
    STRING = 'str'
    BOOL = 'bool'
    INT = 'int'
    FLOAT = 'float'
    BYTES = 'bytes'
    TIME = 'time'
    MODEL = 'model'


# type tag -> registered structured class, and back
_models: dict[str, type] = {}
_tags: dict[type, str] = {}


def model_tag(cls: type) -> str:
    try:
        return _tags[cls]
    except KeyError:
        return f"{cls.__module__}.{cls.__qualname__}"


def register_model(cls: type, tag: Optional[str] = None) -> type:
    """Register a class as a structured session value.

    pydantic and datamodel models are accepted without registration; any
    other class must be registered before it can be stored. Usable as a
    class decorator.
    """
    tag = tag or model_tag(cls)
    _models[tag] = cls
    _tags[cls] = tag
    return cls


def _is_model_class(cls: type) -> bool:
    return issubclass(cls, (BaseModel, PydanticBaseModel))


def resolve_model(tag: str) -> type:
    """Return the structured class for a type tag.

    Raises:
        TypeError: If the tag does not name a registered class or a model.
    """
    try:
        return _models[tag]
    except KeyError:
        pass
    cls = loadclass(tag)
    if not isinstance(cls, type) or not _is_model_class(cls):
        raise TypeError(f"{tag} is not a registered session model")
    return cls


def kind_of(value: Any) -> ValueKind:
    """Classify a value, refusing anything outside the supported kinds."""
    # bool is an int subclass, must be checked first
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise UnsupportedValueType(
                f"Integer {value} is out of the 64-bit range"
            )
        return ValueKind.INT
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (bytes, bytearray)):
        return ValueKind.BYTES
    if isinstance(value, datetime):
        return ValueKind.TIME
    if _is_model_class(type(value)) or type(value) in _tags:
        return ValueKind.MODEL
    raise UnsupportedValueType(
        f"Values of type {type(value).__name__} cannot be stored in a session"
    )


def pack(value: Any) -> dict:
    """Pack a value into its JSON-ready tagged form."""
    kind = kind_of(value)
    if kind is ValueKind.FLOAT:
        return {'t': kind.value, 'v': value.hex()}
    if kind is ValueKind.BYTES:
        return {'t': kind.value, 'v': base64.b64encode(value).decode('ascii')}
    if kind is ValueKind.TIME:
        return {'t': kind.value, 'v': value.isoformat()}
    if kind is ValueKind.MODEL:
        tag = model_tag(type(value))
        if isinstance(value, PydanticBaseModel):
            payload = value.model_dump_json()
        else:
            payload = jsonpickle.encode(value, keys=True)
        return {'t': kind.value, 'c': tag, 'v': payload}
    return {'t': kind.value, 'v': value}


def unpack(item: dict) -> Any:
    """Restore a value from its tagged form.

    Raises:
        ValueError: If the item is malformed or its kind is unknown.
    """
    kind = ValueKind(item['t'])
    payload = item['v']
    if kind is ValueKind.STRING and isinstance(payload, str):
        return payload
    if kind is ValueKind.BOOL and isinstance(payload, bool):
        return payload
    if kind is ValueKind.INT and isinstance(payload, int) and not isinstance(payload, bool):
        return payload
    if kind is ValueKind.FLOAT:
        return float.fromhex(payload)
    if kind is ValueKind.BYTES:
        return base64.b64decode(payload, validate=True)
    if kind is ValueKind.TIME:
        return datetime.fromisoformat(payload)
    if kind is ValueKind.MODEL:
        cls = resolve_model(item['c'])
        if issubclass(cls, PydanticBaseModel):
            return cls.model_validate_json(payload)
        try:
            obj = jsonpickle.decode(payload, keys=True)
        except Exception as err:
            raise ValueError(f"Cannot restore {item['c']}: {err}") from err
        if not isinstance(obj, cls):
            raise ValueError(f"Restored value is not a {item['c']}")
        return obj
    raise ValueError(f"Malformed session value of kind {kind.value}")
