# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Gordian Sealed Transaction Protocol.

Requests, responses and events are exchanged as signed and encrypted envelopes
that carry the sender identity and encrypted state continuations, which let the
parties keep their conversation state with the peer instead of storing it.
"""

import logging

from .__info__ import __version__
from .envelope import ARID, Envelope, EnvelopeError, Event, Expression, Function, Parameter, Request, Response, register_tags
from .trust import EncapsulationScheme, PrivateKeys, PublicKeys, SignatureScheme, keypair
from .trust.identity import IdentityError, XIDDocument
from .messages import (  # noqa: I001
    Continuation,
    ContinuationExpired,
    ContinuationIdInvalid,
    ErrorKind,
    GSTPError,
    MissingPeerContinuation,
    PeerContinuationNotEncrypted,
    RecipientMissingEncryptionKey,
    SealedEnvelopeError,
    SealedEvent,
    SealedIdentityError,
    SealedRequest,
    SealedResponse,
    SenderMissingEncryptionKey,
    SenderMissingVerificationKey,
)

__all__ = (  # noqa: RUF022
    '__version__',

    'register_tags',

    # Envelopes and payloads

    'ARID',
    'Envelope',
    'EnvelopeError',
    'Function',
    'Parameter',
    'Expression',
    'Request',
    'Response',
    'Event',

    # Keys and identities

    'SignatureScheme',
    'EncapsulationScheme',
    'PrivateKeys',
    'PublicKeys',
    'keypair',
    'XIDDocument',
    'IdentityError',

    # Sealed messages

    'Continuation',
    'SealedRequest',
    'SealedResponse',
    'SealedEvent',

    # Errors

    'ErrorKind',
    'GSTPError',
    'SenderMissingEncryptionKey',
    'RecipientMissingEncryptionKey',
    'SenderMissingVerificationKey',
    'ContinuationExpired',
    'ContinuationIdInvalid',
    'PeerContinuationNotEncrypted',
    'MissingPeerContinuation',
    'SealedEnvelopeError',
    'SealedIdentityError',
)


logging.getLogger(__name__).addHandler(logging.NullHandler())
