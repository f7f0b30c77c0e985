# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from .composition import Recipient, Sealed
from .continuation import Continuation
from .event import SealedEvent
from .exceptions import (
    ContinuationExpired,
    ContinuationIdInvalid,
    ErrorKind,
    GSTPError,
    MissingPeerContinuation,
    PeerContinuationNotEncrypted,
    RecipientMissingEncryptionKey,
    SealedEnvelopeError,
    SealedIdentityError,
    SenderMissingEncryptionKey,
    SenderMissingVerificationKey,
)
from .request import SealedRequest
from .response import SealedResponse

__all__ = (  # noqa: RUF022
    'Continuation',
    'Recipient',
    'Sealed',
    'SealedRequest',
    'SealedResponse',
    'SealedEvent',

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
