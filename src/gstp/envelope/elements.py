# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Envelopes are the structured, digest addressed containers that carry all the
messages in this package.

An envelope is a tree made of a subject and zero or more assertions about it,
each assertion being a predicate/object pair of envelopes in turn. Every node
of the tree has a digest computed from the digests of its children, which is
what signatures and encryption are bound to. Because the assertions of a node
are kept sorted by their digest, two envelopes that carry the same information
always have the same structure, the same encoding and the same digest.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Buffer, Iterable, Sequence
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Protocol, Self, runtime_checkable

import cbor2

from gstp.trust.encryption import EncryptedMessage, Nonce, SealedMessage, SymmetricKey
from gstp.trust.keys import Decrypter, Encrypter, Signature, Signer, Verifier

from .datamodel import TAG_ASSERTION, TAG_ENCRYPTED, TAG_ENVELOPE, TAG_KNOWN_VALUE, TAG_LEAF, Digest, cbor_decode, cbor_encode, summarize
from .exceptions import (
    AlreadyEncrypted,
    AmbiguousPredicate,
    DecryptionFailed,
    InvalidDigest,
    InvalidFormat,
    InvalidSignature,
    InvalidType,
    NonexistentPredicate,
    NotEncrypted,
    NotWrapped,
    UnknownRecipient,
)
from .knownvalues import HAS_RECIPIENT, SIGNED, KnownValue

__all__ = (  # noqa: RUF022
    'Envelope',
    'Leaf',
    'KnownValueEnvelope',
    'Wrapped',
    'AssertionEnvelope',
    'Node',
    'Encrypted',

    'EnvelopeEncodable',
    'EnvelopeDecodable',
)


log = logging.getLogger(__name__)


@runtime_checkable
class EnvelopeEncodable(Protocol):
    def to_envelope(self) -> 'Envelope': ...


@runtime_checkable
class EnvelopeDecodable(Protocol):
    @classmethod
    def from_envelope(cls, envelope: 'Envelope') -> Self: ...


def _raw_encode(item: object) -> bytes:
    return cbor2.dumps(item, canonical=True, datetime_as_timestamp=True)


def _raw_decode(data: Buffer) -> Any:  # noqa: ANN401
    try:
        return cbor2.loads(bytes(data))
    except (ValueError, TypeError, KeyError) as exc:
        raise InvalidFormat(f'Invalid envelope data: {exc}') from exc


def _indent(lines: Iterable[str]) -> list[str]:
    return [f'    {line}' for line in lines]


class Envelope(ABC):
    """The base class for the different envelope cases"""

    # Construction

    @classmethod
    def new(cls, value: object) -> 'Envelope':
        """Return the envelope representation of a value"""
        match value:
            case Envelope():
                return value
            case KnownValue():
                return KnownValueEnvelope(value)
            case EnvelopeEncodable():
                return value.to_envelope()
            case _:
                return Leaf(cbor_encode(value))

    @classmethod
    def null(cls) -> 'Envelope':
        return Leaf(cbor_encode(None))

    @staticmethod
    def _with_assertions(subject: 'Envelope', assertions: Iterable['AssertionEnvelope']) -> 'Envelope':
        assertions = tuple(assertions)
        return Node(subject, assertions) if assertions else subject

    # Structure

    @property
    @abstractmethod
    def digest(self) -> Digest: ...

    @property
    def subject(self) -> 'Envelope':
        return self

    @property
    def assertions(self) -> tuple['AssertionEnvelope', ...]:
        return ()

    @property
    def is_null(self) -> bool:
        return False

    @property
    def is_wrapped(self) -> bool:
        return isinstance(self.subject, Wrapped)

    @property
    def is_encrypted(self) -> bool:
        return isinstance(self.subject, Encrypted)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Envelope):
            return NotImplemented
        return self.digest == other.digest

    def __hash__(self) -> int:
        return hash(self.digest)

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {self.format_flat()}>'

    def __str__(self) -> str:
        return self.format()

    def wrap(self) -> 'Envelope':
        return Wrapped(self)

    def try_unwrap(self) -> 'Envelope':
        """Return the envelope wrapped in the subject of this envelope"""
        match self.subject:
            case Wrapped(envelope=envelope):
                return envelope
            case _:
                raise NotWrapped('The envelope subject is not a wrapped envelope')

    # Assertions

    def add_assertion(self, predicate: object, obj: object) -> 'Envelope':
        assertion = AssertionEnvelope(Envelope.new(predicate), Envelope.new(obj))
        return Node(self.subject, (*self.assertions, assertion))

    def add_optional_assertion(self, predicate: object, obj: object | None) -> 'Envelope':
        return self if obj is None else self.add_assertion(predicate, obj)

    def add_assertion_if(self, condition: bool, predicate: object, obj: object) -> 'Envelope':  # noqa: FBT001
        return self.add_assertion(predicate, obj) if condition else self

    def assertions_with_predicate(self, predicate: object) -> list['AssertionEnvelope']:
        digest = Envelope.new(predicate).digest
        return [assertion for assertion in self.assertions if assertion.predicate.digest == digest]

    def object_for_predicate(self, predicate: object) -> 'Envelope':
        match self.assertions_with_predicate(predicate):
            case []:
                raise NonexistentPredicate(f'The envelope has no assertion with the {summarize(predicate)} predicate')
            case [assertion]:
                return assertion.object
            case _:
                raise AmbiguousPredicate(f'The envelope has more than one assertion with the {summarize(predicate)} predicate')

    def optional_object_for_predicate(self, predicate: object) -> 'Envelope | None':
        try:
            return self.object_for_predicate(predicate)
        except NonexistentPredicate:
            return None

    def objects_for_predicate(self, predicate: object) -> list['Envelope']:
        return [assertion.object for assertion in self.assertions_with_predicate(predicate)]

    # Extraction

    def extract_subject[T](self, data_type: type[T]) -> T:
        """Return the subject of the envelope as the requested type"""
        if issubclass(data_type, Envelope):
            return self.subject  # type: ignore[return-value]
        if isinstance(data_type, EnvelopeDecodable):
            return data_type.from_envelope(self)  # type: ignore[return-value]
        match self.subject:
            case KnownValueEnvelope(value=value) if issubclass(data_type, KnownValue):
                return value  # type: ignore[return-value]
            case Leaf() as leaf:
                value = leaf.value
            case _:
                raise InvalidType(f'Cannot extract {data_type.__qualname__!r} from a non-leaf envelope')
        if data_type is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)  # type: ignore[return-value]
        if isinstance(value, data_type) and not (data_type is int and isinstance(value, bool)):
            return value
        raise InvalidType(f'Expected a {data_type.__qualname__!r} value, found {summarize(value)}')

    def extract_object_for_predicate[T](self, predicate: object, data_type: type[T]) -> T:
        obj = self.object_for_predicate(predicate)
        if issubclass(data_type, Envelope):
            return obj  # type: ignore[return-value]
        return obj.extract_subject(data_type)

    def extract_optional_object_for_predicate[T](self, predicate: object, data_type: type[T]) -> T | None:
        try:
            return self.extract_object_for_predicate(predicate, data_type)
        except NonexistentPredicate:
            return None

    def extract_objects_for_predicate[T](self, predicate: object, data_type: type[T]) -> list[T]:
        if issubclass(data_type, Envelope):
            return self.objects_for_predicate(predicate)  # type: ignore[return-value]
        return [obj.extract_subject(data_type) for obj in self.objects_for_predicate(predicate)]

    # Signatures

    def sign(self, signer: Signer) -> 'Envelope':
        """Wrap the envelope and add a signature over the wrapped envelope"""
        wrapped = self.wrap()
        return wrapped.add_assertion(SIGNED, signer.sign(wrapped.digest))

    def verify(self, verifier: Verifier) -> 'Envelope':
        """Verify a signature made with the given key and return the signed envelope"""
        digest = self.subject.digest
        for obj in self.objects_for_predicate(SIGNED):
            try:
                signature = obj.extract_subject(Signature)
            except InvalidType:
                continue
            if verifier.verify(signature, digest):
                return self.try_unwrap()
        raise InvalidSignature('The envelope does not have a valid signature from the verifier')

    # Encryption

    def encrypt_subject_to_recipients(self, recipients: Sequence[Encrypter]) -> 'Envelope':
        """Encrypt the subject with a new content key that is sealed to each recipient"""
        if not recipients:
            raise ValueError('At least one recipient is required to encrypt an envelope')
        subject = self.subject
        if isinstance(subject, Encrypted):
            raise AlreadyEncrypted('The envelope subject is already encrypted')
        content_key = SymmetricKey.generate()
        result = Envelope._with_assertions(Encrypted(content_key.encrypt(subject.to_bytes(), aad=subject.digest)), self.assertions)
        for recipient in recipients:
            result = result.add_assertion(HAS_RECIPIENT, SealedMessage.seal(content_key, recipient))
        return result

    def encrypt_to_recipient(self, recipient: Encrypter) -> 'Envelope':
        return self.wrap().encrypt_subject_to_recipients([recipient])

    def encrypt_to_recipients(self, recipients: Sequence[Encrypter]) -> 'Envelope':
        return self.wrap().encrypt_subject_to_recipients(recipients)

    def decrypt_subject_to_recipient(self, decrypter: Decrypter) -> 'Envelope':
        subject = self.subject
        if not isinstance(subject, Encrypted):
            raise NotEncrypted('The envelope subject is not encrypted')
        for obj in self.objects_for_predicate(HAS_RECIPIENT):
            try:
                content_key = SymmetricKey(obj.extract_subject(SealedMessage).open(decrypter))
            except (InvalidType, DecryptionFailed):
                continue
            break
        else:
            raise UnknownRecipient('None of the envelope recipients can be opened with the provided key')
        decrypted = Envelope.from_bytes(content_key.decrypt(subject.message))
        if decrypted.digest != subject.digest:
            raise InvalidDigest('The decrypted subject does not match the encrypted subject digest')
        log.debug('Decrypted envelope subject %s', decrypted.digest.short_description)
        return Envelope._with_assertions(decrypted, self.assertions)

    def decrypt_to_recipient(self, decrypter: Decrypter) -> 'Envelope':
        return self.decrypt_subject_to_recipient(decrypter).try_unwrap()

    # Serialization

    @abstractmethod
    def _structure(self) -> object: ...

    def to_bytes(self) -> bytes:
        return _raw_encode(cbor2.CBORTag(TAG_ENVELOPE, self._structure()))

    @classmethod
    def from_bytes(cls, data: Buffer) -> 'Envelope':
        match _raw_decode(data):
            case cbor2.CBORTag(tag=tag, value=content) if tag == TAG_ENVELOPE:
                return Envelope._parse(content)
            case _:
                raise InvalidFormat('The data does not represent an envelope')

    @staticmethod
    def _parse(item: object) -> 'Envelope':  # noqa: C901
        match item:
            case cbor2.CBORTag(tag=tag, value=content) if tag == TAG_LEAF:
                return Leaf(_raw_encode(content))
            case cbor2.CBORTag(tag=tag, value=content) if tag == TAG_KNOWN_VALUE:
                return KnownValueEnvelope(KnownValue.from_cbor(content))
            case cbor2.CBORTag(tag=tag, value=content) if tag == TAG_ENVELOPE:
                return Wrapped(Envelope._parse(content))
            case cbor2.CBORTag(tag=tag, value=[predicate, obj]) if tag == TAG_ASSERTION:
                return AssertionEnvelope(Envelope._parse(predicate), Envelope._parse(obj))
            case cbor2.CBORTag(tag=tag, value=[bytes() as ciphertext, bytes() as nonce, bytes() as aad]) if tag == TAG_ENCRYPTED:
                try:
                    return Encrypted(EncryptedMessage(ciphertext=ciphertext, nonce=Nonce(nonce), aad=Digest(aad)))
                except ValueError as exc:
                    raise InvalidFormat(f'Invalid encrypted envelope: {exc}') from exc
            case [subject, *assertions] if assertions:
                parsed = [Envelope._parse(assertion) for assertion in assertions]
                if not all(isinstance(assertion, AssertionEnvelope) for assertion in parsed):
                    raise InvalidFormat('Envelope nodes can only contain assertions')
                try:
                    return Node(Envelope._parse(subject), tuple(parsed))  # type: ignore[arg-type]
                except ValueError as exc:
                    raise InvalidFormat(f'Invalid envelope node: {exc}') from exc
            case _:
                raise InvalidFormat(f'Invalid envelope element: {item!r}')

    # Formatting

    @abstractmethod
    def _format_lines(self) -> list[str]: ...

    @abstractmethod
    def format_flat(self) -> str: ...

    def format(self) -> str:
        """Return the envelope in tree notation"""
        return '\n'.join(self._format_lines())


@dataclass(frozen=True, eq=False, repr=False)
class Leaf(Envelope):
    cbor: bytes

    @cached_property
    def digest(self) -> Digest:
        return Digest.from_image(self.cbor)

    @cached_property
    def value(self) -> Any:  # noqa: ANN401
        return cbor_decode(self.cbor)

    @property
    def is_null(self) -> bool:
        return self.cbor == b'\xf6'

    def _structure(self) -> object:
        return cbor2.CBORTag(TAG_LEAF, _raw_decode(self.cbor))

    def _format_lines(self) -> list[str]:
        return [summarize(self.value)]

    def format_flat(self) -> str:
        return summarize(self.value)


@dataclass(frozen=True, eq=False, repr=False)
class KnownValueEnvelope(Envelope):
    value: KnownValue

    @cached_property
    def digest(self) -> Digest:
        return Digest.from_image(cbor_encode(self.value))

    def _structure(self) -> object:
        return cbor2.CBORTag(TAG_KNOWN_VALUE, self.value.value)

    def _format_lines(self) -> list[str]:
        return [self.value.summary()]

    def format_flat(self) -> str:
        return self.value.summary()


@dataclass(frozen=True, eq=False, repr=False)
class Wrapped(Envelope):
    envelope: Envelope

    @cached_property
    def digest(self) -> Digest:
        return Digest.from_image(self.envelope.digest)

    def _structure(self) -> object:
        return cbor2.CBORTag(TAG_ENVELOPE, self.envelope._structure())

    def _format_lines(self) -> list[str]:
        return ['{', *_indent(self.envelope._format_lines()), '}']

    def format_flat(self) -> str:
        return f'{{ {self.envelope.format_flat()} }}'


@dataclass(frozen=True, eq=False, repr=False)
class AssertionEnvelope(Envelope):
    predicate: Envelope
    object: Envelope

    @cached_property
    def digest(self) -> Digest:
        return Digest.from_image(self.predicate.digest, self.object.digest)

    def _structure(self) -> object:
        return cbor2.CBORTag(TAG_ASSERTION, [self.predicate._structure(), self.object._structure()])

    def _format_lines(self) -> list[str]:
        predicate_lines = self.predicate._format_lines()
        object_lines = self.object._format_lines()
        return [*predicate_lines[:-1], f'{predicate_lines[-1]}: {object_lines[0]}', *object_lines[1:]]

    def format_flat(self) -> str:
        return f'{self.predicate.format_flat()}: {self.object.format_flat()}'


@dataclass(frozen=True, eq=False, repr=False)
class Node(Envelope):
    node_subject: Envelope
    node_assertions: tuple[AssertionEnvelope, ...]

    def __post_init__(self) -> None:
        if isinstance(self.node_subject, Node):
            raise ValueError('The subject of an envelope node cannot be another node')
        if not self.node_assertions:
            raise ValueError('An envelope node must have at least one assertion')
        unique = {assertion.digest: assertion for assertion in self.node_assertions}
        object.__setattr__(self, 'node_assertions', tuple(unique[digest] for digest in sorted(unique)))

    @property
    def subject(self) -> Envelope:
        return self.node_subject

    @property
    def assertions(self) -> tuple[AssertionEnvelope, ...]:
        return self.node_assertions

    @cached_property
    def digest(self) -> Digest:
        return Digest.from_image(self.node_subject.digest, *(assertion.digest for assertion in self.node_assertions))

    def _structure(self) -> object:
        return [self.node_subject._structure(), *(assertion._structure() for assertion in self.node_assertions)]

    def _format_lines(self) -> list[str]:
        subject_lines = self.node_subject._format_lines()
        assertion_lines = sorted((assertion._format_lines() for assertion in self.node_assertions), key='\n'.join)
        return [
            *subject_lines[:-1],
            f'{subject_lines[-1]} [',
            *_indent(line for lines in assertion_lines for line in lines),
            ']',
        ]

    def format_flat(self) -> str:
        assertions = ', '.join(sorted(assertion.format_flat() for assertion in self.node_assertions))
        return f'{self.node_subject.format_flat()} [ {assertions} ]'


@dataclass(frozen=True, eq=False, repr=False)
class Encrypted(Envelope):
    message: EncryptedMessage

    @cached_property
    def digest(self) -> Digest:
        return self.message.digest

    def _structure(self) -> object:
        return cbor2.CBORTag(TAG_ENCRYPTED, [self.message.ciphertext, bytes(self.message.nonce), bytes(self.message.aad)])

    def _format_lines(self) -> list[str]:
        return ['ENCRYPTED']

    def format_flat(self) -> str:
        return 'ENCRYPTED'
