# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# Known values are integers with an associated name, used mostly as predicates.
# They are compact on the wire while still being self-describing when shown to
# a human. The names of the known values below are wire significant and they
# must not be changed. Like Kinds, known values register themselves when they
# are defined and they can be looked up by either their value or their name.


from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any, ClassVar, Self, assert_never

from .datamodel import TAG_KNOWN_VALUE, Tagged
from .exceptions import InvalidFormat

__all__ = (  # noqa: RUF022
    'KnownValue',

    'IS_A',
    'ID',
    'SIGNED',
    'NOTE',
    'HAS_RECIPIENT',
    'KEY',
    'DATE',
    'UNKNOWN_VALUE',
    'VALID_UNTIL',
    'BODY',
    'RESULT',
    'ERROR',
    'OK_VALUE',
    'SENDER',
    'SENDER_CONTINUATION',
    'RECIPIENT_CONTINUATION',
    'CONTENT',
)


@dataclass(frozen=True)
class KnownValue(Tagged, tag=TAG_KNOWN_VALUE):
    value: int
    name: str

    _value_map: ClassVar[MutableMapping[int, 'KnownValue']] = {}
    _name_map: ClassVar[MutableMapping[str, 'KnownValue']] = {}

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f'Known values must be non-negative integers: {self.value}')
        if self.value in self._value_map:
            raise ValueError(f'The known value is already used by another KnownValue: {self._value_map[self.value]}')
        if self.name in self._name_map:
            raise ValueError(f'The known value name is already used by another KnownValue: {self._name_map[self.name]}')
        self._value_map[self.value] = self
        self._name_map[self.name] = self

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({self.value}, {self.name!r})'

    @classmethod
    def lookup(cls, identifier: int | str) -> Self:
        match identifier:
            case int():
                return cls._value_map[identifier]
            case str():
                return cls._name_map[identifier]
            case _:
                assert_never(identifier)

    def to_cbor(self) -> int:
        return self.value

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        if not isinstance(value, int):
            raise InvalidFormat(f'Known values must be integers, got {value!r}')
        try:
            return cls.lookup(value)
        except KeyError as exc:
            raise InvalidFormat(f'Unknown known value: {value}') from exc

    def summary(self) -> str:
        return f"'{self.name}'"


IS_A = KnownValue(1, 'isA')
ID = KnownValue(2, 'id')
SIGNED = KnownValue(3, 'signed')
NOTE = KnownValue(4, 'note')
HAS_RECIPIENT = KnownValue(5, 'hasRecipient')
KEY = KnownValue(8, 'key')
DATE = KnownValue(16, 'date')
UNKNOWN_VALUE = KnownValue(17, 'Unknown')
VALID_UNTIL = KnownValue(22, 'validUntil')

BODY = KnownValue(100, 'body')
RESULT = KnownValue(101, 'result')
ERROR = KnownValue(102, 'error')
OK_VALUE = KnownValue(103, 'OK')
SENDER = KnownValue(105, 'sender')
SENDER_CONTINUATION = KnownValue(106, 'senderContinuation')
RECIPIENT_CONTINUATION = KnownValue(107, 'recipientContinuation')
CONTENT = KnownValue(108, 'content')
