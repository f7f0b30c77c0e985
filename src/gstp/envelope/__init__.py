# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .datamodel import ARID, XID, Digest, TagRegistry, Tagged, cbor_decode, cbor_encode, register_tags, summarize, utc_date
from .elements import AssertionEnvelope, Encrypted, Envelope, EnvelopeDecodable, EnvelopeEncodable, KnownValueEnvelope, Leaf, Node, Wrapped
from .exceptions import (
    AlreadyEncrypted,
    AmbiguousPredicate,
    DecryptionFailed,
    EnvelopeError,
    InvalidDigest,
    InvalidFormat,
    InvalidSignature,
    InvalidType,
    NonexistentPredicate,
    NotEncrypted,
    NotWrapped,
    UnknownRecipient,
)
from .expressions import Event, Expression, Function, Parameter, Request, Response
from .knownvalues import (
    BODY,
    CONTENT,
    DATE,
    ERROR,
    HAS_RECIPIENT,
    ID,
    IS_A,
    KEY,
    NOTE,
    OK_VALUE,
    RECIPIENT_CONTINUATION,
    RESULT,
    SENDER,
    SENDER_CONTINUATION,
    SIGNED,
    UNKNOWN_VALUE,
    VALID_UNTIL,
    KnownValue,
)

__all__ = (  # noqa: RUF022
    # Data model

    'ARID',
    'XID',
    'Digest',
    'Tagged',
    'TagRegistry',
    'cbor_encode',
    'cbor_decode',
    'register_tags',
    'summarize',
    'utc_date',

    # Exceptions

    'EnvelopeError',
    'AlreadyEncrypted',
    'AmbiguousPredicate',
    'DecryptionFailed',
    'InvalidDigest',
    'InvalidFormat',
    'InvalidSignature',
    'InvalidType',
    'NonexistentPredicate',
    'NotEncrypted',
    'NotWrapped',
    'UnknownRecipient',

    # Known values

    'KnownValue',
    'BODY',
    'CONTENT',
    'DATE',
    'ERROR',
    'HAS_RECIPIENT',
    'ID',
    'IS_A',
    'KEY',
    'NOTE',
    'OK_VALUE',
    'RECIPIENT_CONTINUATION',
    'RESULT',
    'SENDER',
    'SENDER_CONTINUATION',
    'SIGNED',
    'UNKNOWN_VALUE',
    'VALID_UNTIL',

    # Envelopes

    'Envelope',
    'Leaf',
    'KnownValueEnvelope',
    'Wrapped',
    'AssertionEnvelope',
    'Node',
    'Encrypted',
    'EnvelopeEncodable',
    'EnvelopeDecodable',

    # Expressions

    'Function',
    'Parameter',
    'Expression',
    'Request',
    'Response',
    'Event',
)
