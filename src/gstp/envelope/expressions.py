# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# Expressions, requests, responses and events are the plaintext message bodies.
# They are built as envelopes whose subject is a tagged leaf, a function for an
# expression or an identifier for the others, with assertions that carry their
# parameters and metadata.


from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Self

import cbor2

from .datamodel import ARID, TAG_EVENT, TAG_REQUEST, TAG_RESPONSE, Tagged, summarize, utc_date
from .elements import Envelope, Leaf
from .exceptions import InvalidFormat
from .knownvalues import BODY, CONTENT, DATE, ERROR, NOTE, OK_VALUE, RESULT, UNKNOWN_VALUE, KnownValue

__all__ = (  # noqa: RUF022
    'Function',
    'Parameter',
    'Expression',
    'Request',
    'Response',
    'Event',
)


type Identifier = str | int


@dataclass(frozen=True)
class Function(Tagged, tag=40006):
    name: Identifier

    @classmethod
    def new(cls, value: 'Function | Identifier') -> 'Function':
        return value if isinstance(value, Function) else cls(value)

    def to_cbor(self) -> Identifier:
        return self.name

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        if not isinstance(value, str | int) or isinstance(value, bool):
            raise InvalidFormat(f'Function identifiers must be strings or integers, got {value!r}')
        return cls(value)

    def summary(self) -> str:
        return f'«{summarize(self.name)}»'


@dataclass(frozen=True)
class Parameter(Tagged, tag=40007):
    name: Identifier

    @classmethod
    def new(cls, value: 'Parameter | Identifier') -> 'Parameter':
        return value if isinstance(value, Parameter) else cls(value)

    def to_cbor(self) -> Identifier:
        return self.name

    @classmethod
    def from_cbor(cls, value: Any) -> Self:  # noqa: ANN401
        if not isinstance(value, str | int) or isinstance(value, bool):
            raise InvalidFormat(f'Parameter identifiers must be strings or integers, got {value!r}')
        return cls(value)

    def summary(self) -> str:
        return f'❰{summarize(self.name)}❱'


def _tagged_subject(envelope: Envelope, tag: int) -> object:
    match envelope.subject:
        case Leaf(value=cbor2.CBORTag(tag=found, value=value)) if found == tag:
            return value
        case _:
            raise InvalidFormat(f'Expected an envelope with a {summarize(cbor2.CBORTag(tag, '…'))} subject')


def _arid(value: object) -> ARID:
    if not isinstance(value, ARID):
        raise InvalidFormat(f'Expected an ARID, got {summarize(value)}')
    return value


@dataclass(frozen=True)
class Expression:
    """A function call: a function subject with parameter assertions"""

    envelope: Envelope

    @classmethod
    def new(cls, function: Function | Identifier) -> Self:
        return cls(Envelope.new(Function.new(function)))

    @property
    def function(self) -> Function:
        return self.envelope.extract_subject(Function)

    def with_parameter(self, parameter: Parameter | Identifier, value: object) -> Self:
        return replace(self, envelope=self.envelope.add_assertion(Parameter.new(parameter), value))

    def with_optional_parameter(self, parameter: Parameter | Identifier, value: object | None) -> Self:
        return self if value is None else self.with_parameter(parameter, value)

    def object_for_parameter(self, parameter: Parameter | Identifier) -> Envelope:
        return self.envelope.object_for_predicate(Parameter.new(parameter))

    def objects_for_parameter(self, parameter: Parameter | Identifier) -> list[Envelope]:
        return self.envelope.objects_for_predicate(Parameter.new(parameter))

    def extract_object_for_parameter[T](self, parameter: Parameter | Identifier, data_type: type[T]) -> T:
        return self.envelope.extract_object_for_predicate(Parameter.new(parameter), data_type)

    def extract_optional_object_for_parameter[T](self, parameter: Parameter | Identifier, data_type: type[T]) -> T | None:
        return self.envelope.extract_optional_object_for_predicate(Parameter.new(parameter), data_type)

    def extract_objects_for_parameter[T](self, parameter: Parameter | Identifier, data_type: type[T]) -> list[T]:
        return self.envelope.extract_objects_for_predicate(Parameter.new(parameter), data_type)

    def to_envelope(self) -> Envelope:
        return self.envelope

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> Self:
        match envelope.subject:
            case Leaf(value=Function()):
                return cls(envelope)
            case _:
                raise InvalidFormat('The envelope subject is not a function')

    def summary(self) -> str:
        return self.envelope.format_flat()


@dataclass(frozen=True)
class Request:
    body: Expression
    id: ARID
    note: str = ''
    date: datetime | None = None

    def __post_init__(self) -> None:
        if self.date is not None:
            object.__setattr__(self, 'date', utc_date(self.date))

    @classmethod
    def new(cls, function: Function | Identifier, id: ARID) -> Self:  # noqa: A002
        return cls(body=Expression.new(function), id=id)

    @classmethod
    def new_with_body(cls, body: Expression, id: ARID) -> Self:  # noqa: A002
        return cls(body=body, id=id)

    @property
    def function(self) -> Function:
        return self.body.function

    def with_parameter(self, parameter: Parameter | Identifier, value: object) -> Self:
        return replace(self, body=self.body.with_parameter(parameter, value))

    def with_optional_parameter(self, parameter: Parameter | Identifier, value: object | None) -> Self:
        return replace(self, body=self.body.with_optional_parameter(parameter, value))

    def with_note(self, note: str) -> Self:
        return replace(self, note=note)

    def with_date(self, date: datetime) -> Self:
        return replace(self, date=date)

    def to_envelope(self) -> Envelope:
        envelope = Envelope.new(cbor2.CBORTag(TAG_REQUEST, self.id)).add_assertion(BODY, self.body.to_envelope())
        envelope = envelope.add_assertion_if(self.note != '', NOTE, self.note)
        return envelope.add_optional_assertion(DATE, self.date)

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> Self:
        return cls(
            body=Expression.from_envelope(envelope.object_for_predicate(BODY)),
            id=_arid(_tagged_subject(envelope, TAG_REQUEST)),
            note=envelope.extract_optional_object_for_predicate(NOTE, str) or '',
            date=envelope.extract_optional_object_for_predicate(DATE, datetime),
        )

    def summary(self) -> str:
        return f'id: {self.id.short_description}, body: {self.body.summary()}'


@dataclass(frozen=True)
class Response:
    """
    A response to a request, or an early failure response that couldn't be
    associated with any request.

    A success response carries a result, which is the OK known value unless
    set explicitly, while a failure response carries an error, which is the
    Unknown known value unless set explicitly.
    """

    id: ARID | None
    value: Envelope
    is_ok: bool

    @classmethod
    def new_success(cls, id: ARID) -> Self:  # noqa: A002
        return cls(id=id, value=Envelope.new(OK_VALUE), is_ok=True)

    @classmethod
    def new_failure(cls, id: ARID) -> Self:  # noqa: A002
        return cls(id=id, value=Envelope.new(UNKNOWN_VALUE), is_ok=False)

    @classmethod
    def new_early_failure(cls) -> Self:
        return cls(id=None, value=Envelope.new(UNKNOWN_VALUE), is_ok=False)

    @property
    def is_err(self) -> bool:
        return not self.is_ok

    def expect_id(self) -> ARID:
        if self.id is None:
            raise ValueError('The response does not have an id')
        return self.id

    def ok(self) -> tuple[ARID, Envelope] | None:
        """The id and result of a success response, or None for a failure response"""
        return (self.expect_id(), self.value) if self.is_ok else None

    def err(self) -> tuple[ARID | None, Envelope] | None:
        """The id and error of a failure response, or None for a success response"""
        return None if self.is_ok else (self.id, self.value)

    def with_result(self, result: object) -> Self:
        if not self.is_ok:
            raise ValueError('Cannot set the result of a failure response')
        return replace(self, value=Envelope.new(result))

    def with_optional_result(self, result: object | None) -> Self:
        return self.with_result(Envelope.null() if result is None else result)

    def with_error(self, error: object) -> Self:
        if self.is_ok:
            raise ValueError('Cannot set the error of a success response')
        return replace(self, value=Envelope.new(error))

    def with_optional_error(self, error: object | None) -> Self:
        return self if error is None else self.with_error(error)

    def result(self) -> Envelope:
        if not self.is_ok:
            raise ValueError('Cannot get the result of a failure response')
        return self.value

    def extract_result[T](self, data_type: type[T]) -> T:
        result = self.result()
        return result if issubclass(data_type, Envelope) else result.extract_subject(data_type)  # type: ignore[return-value]

    def error(self) -> Envelope:
        if self.is_ok:
            raise ValueError('Cannot get the error of a success response')
        return self.value

    def extract_error[T](self, data_type: type[T]) -> T:
        error = self.error()
        return error if issubclass(data_type, Envelope) else error.extract_subject(data_type)  # type: ignore[return-value]

    def to_envelope(self) -> Envelope:
        subject = Envelope.new(cbor2.CBORTag(TAG_RESPONSE, UNKNOWN_VALUE if self.id is None else self.id))
        return subject.add_assertion(RESULT if self.is_ok else ERROR, self.value)

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> Self:
        match _tagged_subject(envelope, TAG_RESPONSE):
            case ARID() as id:  # noqa: A001
                pass
            case KnownValue() as value if value == UNKNOWN_VALUE:
                id = None  # noqa: A001
            case value:
                raise InvalidFormat(f'Invalid response id: {summarize(value)}')
        result = envelope.optional_object_for_predicate(RESULT)
        error = envelope.optional_object_for_predicate(ERROR)
        match (result, error):
            case (Envelope(), None):
                return cls(id=id, value=result, is_ok=True)
            case (None, Envelope()):
                return cls(id=id, value=error, is_ok=False)
            case _:
                raise InvalidFormat('A response must have either a result or an error')

    def summary(self) -> str:
        id = 'Unknown' if self.id is None else self.id.short_description  # noqa: A001
        return f'id: {id}, {'result' if self.is_ok else 'error'}: {self.value.format_flat()}'


@dataclass(frozen=True)
class Event[T]:
    content: T
    id: ARID
    note: str = ''
    date: datetime | None = None

    def __post_init__(self) -> None:
        if self.date is not None:
            object.__setattr__(self, 'date', utc_date(self.date))

    @classmethod
    def new(cls, content: T, id: ARID) -> 'Event[T]':  # noqa: A002
        return cls(content=content, id=id)

    def with_note(self, note: str) -> Self:
        return replace(self, note=note)

    def with_date(self, date: datetime) -> Self:
        return replace(self, date=date)

    def to_envelope(self) -> Envelope:
        envelope = Envelope.new(cbor2.CBORTag(TAG_EVENT, self.id)).add_assertion(CONTENT, self.content)
        envelope = envelope.add_assertion_if(self.note != '', NOTE, self.note)
        return envelope.add_optional_assertion(DATE, self.date)

    @classmethod
    def from_envelope[C](cls, envelope: Envelope, content_type: type[C] = Envelope) -> 'Event[C]':  # type: ignore[assignment]
        return Event(
            content=envelope.extract_object_for_predicate(CONTENT, content_type),
            id=_arid(_tagged_subject(envelope, TAG_EVENT)),
            note=envelope.extract_optional_object_for_predicate(NOTE, str) or '',
            date=envelope.extract_optional_object_for_predicate(DATE, datetime),
        )

    def summary(self) -> str:
        return f'id: {self.id.short_description}, content: {Envelope.new(self.content).format_flat()}'
