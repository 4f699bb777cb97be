from dataclasses import asdict, fields, is_dataclass
from typing import Any, Annotated, Dict, Mapping, Optional, Protocol, Set, Union, get_args, get_origin, get_type_hints, runtime_checkable


@runtime_checkable
class Storable(Protocol):
    """What a type has to provide to be persisted by a DocumentClient."""

    def pack(self) -> Dict[str, Any]:
        ...

    @classmethod
    def unpack(cls, record: Mapping[str, Any], **options: Any) -> Any:
        ...


class DoNotSerialize:
    """Marker for fields that should be left out of the packed record."""
    pass


def _do_not_serialize_fields(cls: type) -> Set[str]:
    skipped = set()
    hints = get_type_hints(cls, include_extras=True)
    for name, hint in hints.items():
        if get_origin(hint) is Annotated:
            for m in get_args(hint)[1:]:
                if m is DoNotSerialize or isinstance(m, DoNotSerialize):
                    skipped.add(name)
                    break
    return skipped


def _dataclass_type(hint: Any) -> Optional[type]:
    """The dataclass behind a hint like Author, Optional[Author] or Annotated[Author, ...]."""
    if get_origin(hint) is Annotated:
        hint = get_args(hint)[0]
    if get_origin(hint) is Union:
        args = [a for a in get_args(hint) if a is not type(None)]
        if len(args) != 1:
            return None
        hint = args[0]
    if isinstance(hint, type) and is_dataclass(hint):
        return hint
    return None


def _init_kwargs(cls: type, record: Mapping[str, Any]) -> Dict[str, Any]:
    hints = get_type_hints(cls, include_extras=True)
    data = {}
    for f in fields(cls):
        if not f.init or f.name not in record:
            continue
        value = record[f.name]
        nested = _dataclass_type(hints.get(f.name))
        if nested is not None and isinstance(value, Mapping):
            value = nested(**_init_kwargs(nested, value))
        data[f.name] = value
    return data


class Packable:
    """
    Default pack/unpack for dataclasses.

    pack() returns a deep copy of the fields as a dict; nested dataclasses
    become dicts too. Fields annotated with DoNotSerialize are skipped.
    unpack() keeps only the record keys that are init fields of the class,
    so store-generated keys like "_id" are ignored, and rebuilds fields
    typed as a dataclass (or Optional of one). Dataclasses inside lists or
    dicts come back as plain dicts.
    """

    def pack(self) -> Dict[str, Any]:
        if not is_dataclass(self):
            raise TypeError(f"{type(self).__name__} must be a dataclass to use Packable")
        skipped = _do_not_serialize_fields(type(self))
        return {k: v for k, v in asdict(self).items() if k not in skipped}

    @classmethod
    def unpack(cls, record: Mapping[str, Any], inject: Optional[Mapping[str, Any]] = None, **options: Any):
        if not is_dataclass(cls):
            raise TypeError(f"{cls.__name__} must be a dataclass to use Packable")
        data = _init_kwargs(cls, record)
        if inject:
            data.update(inject)
        return cls(**data)
