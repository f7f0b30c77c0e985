# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import hashlib
import json
from collections.abc import Buffer, Iterable, MutableMapping
from datetime import UTC, datetime
from importlib import import_module
from secrets import token_bytes as secure_random_bytes
from typing import Any, ClassVar, Self, SupportsBytes, SupportsIndex, overload

import cbor2

from .exceptions import InvalidFormat

__all__ = (  # noqa: RUF022
    # Tagged values and the tag registry

    'Tagged',
    'TagRegistry',
    'register_tags',

    # Well-known tags

    'TAG_DATE',
    'TAG_ENVELOPE',
    'TAG_LEAF',
    'TAG_ASSERTION',
    'TAG_KNOWN_VALUE',
    'TAG_ENCRYPTED',
    'TAG_REQUEST',
    'TAG_RESPONSE',
    'TAG_EVENT',

    # Fixed size types

    'FixedSize',
    'Digest',
    'ARID',
    'XID',

    # Codec

    'cbor_encode',
    'cbor_decode',
    'summarize',
    'utc_date',
)


TAG_DATE = 1
TAG_ENVELOPE = 200
TAG_LEAF = 201
TAG_ASSERTION = 202
TAG_KNOWN_VALUE = 40000
TAG_ENCRYPTED = 40002
TAG_REQUEST = 40004
TAG_RESPONSE = 40005
TAG_EVENT = 40026


class TagRegistry:
    _types: ClassVar[MutableMapping[int, type['Tagged']]] = {}
    _names: ClassVar[MutableMapping[int, str]] = {}

    @classmethod
    def associate(cls, tag: int, data_type: type['Tagged']) -> None:
        existing = cls._types.get(tag)
        if existing is not None and existing is not data_type:
            raise ValueError(f'CBOR tag {tag} is already associated with {existing.__qualname__!r}')
        cls._types[tag] = data_type
        cls._names[tag] = data_type._tag_name_

    @classmethod
    def register_name(cls, tag: int, name: str) -> None:
        existing = cls._names.get(tag)
        if existing is not None and existing != name:
            raise ValueError(f'CBOR tag {tag} is already named {existing!r}')
        cls._names[tag] = name

    @classmethod
    def get_type(cls, tag: int) -> type['Tagged'] | None:
        return cls._types.get(tag, None)

    @classmethod
    def get_name(cls, tag: int) -> str | None:
        return cls._names.get(tag, None)


class Tagged:
    """A value that is represented in CBOR as a tagged data item"""

    _tag_: ClassVar[int] = NotImplemented
    _tag_name_: ClassVar[str] = NotImplemented

    def __init_subclass__(cls, *, tag: int = NotImplemented, name: str | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if tag is not NotImplemented:
            cls._tag_ = tag
            cls._tag_name_ = name or cls.__name__
            TagRegistry.associate(tag, cls)

    def to_cbor(self) -> object:
        raise NotImplementedError

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        raise NotImplementedError

    def summary(self) -> str:
        return self._tag_name_


def register_tags() -> None:
    """
    Make sure all the built-in tagged types are registered.

    Registration happens when the modules defining them are imported,
    so calling this multiple times is harmless.
    """
    for module in ('gstp.envelope.knownvalues', 'gstp.envelope.expressions', 'gstp.trust.keys', 'gstp.trust.encryption'):
        import_module(module)


TagRegistry.register_name(TAG_REQUEST, 'request')
TagRegistry.register_name(TAG_RESPONSE, 'response')
TagRegistry.register_name(TAG_EVENT, 'event')


# Fixed size types

class FixedSize(bytes):
    """A fixed size bytes buffer"""

    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, size: int = NotImplemented, **kw: object) -> None:
        if size is not NotImplemented:
            cls._size_ = size
        super().__init_subclass__(**kw)

    @overload
    def __new__(cls) -> Self: ...

    @overload
    def __new__(cls, o: Iterable[SupportsIndex] | SupportsIndex | SupportsBytes | Buffer, /) -> Self: ...

    def __new__(cls, *args, **kw):
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        instance = super().__new__(cls, *args, **kw)
        if len(instance) != cls._size_:
            raise ValueError(f'{cls.__qualname__!r} objects must have {cls._size_} bytes')
        return instance

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {self.hex()}>'

    @property
    def short_description(self) -> str:
        return self[:4].hex()


class Digest(FixedSize, Tagged, size=32, tag=40001):
    @classmethod
    def from_image(cls, *images: Buffer) -> Self:
        digest = hashlib.sha256()
        for image in images:
            digest.update(image)
        return cls(digest.digest())

    def to_cbor(self) -> bytes:
        return bytes(self)

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        return cls(value)

    def summary(self) -> str:
        return f'Digest({self.short_description})'


class ARID(FixedSize, Tagged, size=32, tag=40012):
    """An apparently random identifier"""

    @classmethod
    def generate(cls) -> Self:
        return cls(secure_random_bytes(cls._size_))

    def to_cbor(self) -> bytes:
        return bytes(self)

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        return cls(value)

    def summary(self) -> str:
        return f'ARID({self.short_description})'


class XID(FixedSize, Tagged, size=32, tag=40024):
    """A stable identifier derived from the inception verification key of an identity"""

    @classmethod
    def for_key(cls, key: Tagged) -> Self:
        return cls(hashlib.sha256(cbor_encode(key)).digest())

    def to_cbor(self) -> bytes:
        return bytes(self)

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        return cls(value)

    def summary(self) -> str:
        return f'XID({self.short_description})'


# Codec

def utc_date(value: datetime, /) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f'Dates must be timezone aware: {value!r}')
    return value.astimezone(UTC)


def _prepare(value: object) -> object:
    # Turn Tagged values into CBORTag items before handing them to the encoder. This cannot be
    # done with the encoder's default hook because the encoder picks the encoding for bytes and
    # str subclasses on its own, without consulting the hook.
    match value:
        case Tagged():
            return cbor2.CBORTag(value._tag_, _prepare(value.to_cbor()))
        case cbor2.CBORTag():
            return cbor2.CBORTag(value.tag, _prepare(value.value))
        case datetime():
            return utc_date(value)
        case list() | tuple():
            return [_prepare(item) for item in value]
        case dict():
            return {_prepare(key): _prepare(item) for key, item in value.items()}
        case _:
            return value


def _decode_tagged(_decoder: object, tag: cbor2.CBORTag) -> object:
    data_type = TagRegistry.get_type(tag.tag)
    if data_type is None:
        return tag
    return data_type.from_cbor(tag.value)


def cbor_encode(value: object) -> bytes:
    """Encode a value to canonical CBOR"""
    return cbor2.dumps(_prepare(value), canonical=True, datetime_as_timestamp=True)


def cbor_decode(data: Buffer) -> Any:  # noqa: ANN401
    """Decode canonical CBOR, turning registered tags into their associated types"""
    try:
        return cbor2.loads(bytes(data), tag_hook=_decode_tagged)
    except (ValueError, TypeError, KeyError) as exc:
        raise InvalidFormat(f'Invalid CBOR data: {exc}') from exc


def summarize(value: object) -> str:
    """Return the short human readable form of a decoded CBOR value"""
    match value:
        case Tagged():
            return value.summary()
        case cbor2.CBORTag(tag=tag, value=content):
            name = TagRegistry.get_name(tag)
            return f'{name if name is not None else tag}({summarize(content)})'
        case bool():
            return 'true' if value else 'false'
        case None:
            return 'null'
        case str():
            return json.dumps(value, ensure_ascii=False)
        case int() | float():
            return repr(value)
        case bytes():
            return f'Bytes({len(value)})'
        case datetime():
            value = utc_date(value)
            return value.strftime('%Y-%m-%dT%H:%M:%S' + ('.%f' if value.microsecond else '') + 'Z')
        case list():
            return f'[{', '.join(summarize(item) for item in value)}]'
        case dict():
            return f'{{{', '.join(f'{summarize(key)}: {summarize(item)}' for key, item in value.items())}}}'
        case _:
            return repr(value)
