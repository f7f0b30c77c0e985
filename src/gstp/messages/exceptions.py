# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum
from typing import ClassVar

from gstp.envelope import EnvelopeError
from gstp.trust.identity import IdentityError

__all__ = (  # noqa: RUF022
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
    'translate_errors',
)


class ErrorKind(StrEnum):
    SENDER_MISSING_ENCRYPTION_KEY = 'SenderMissingEncryptionKey'
    RECIPIENT_MISSING_ENCRYPTION_KEY = 'RecipientMissingEncryptionKey'
    SENDER_MISSING_VERIFICATION_KEY = 'SenderMissingVerificationKey'
    CONTINUATION_EXPIRED = 'ContinuationExpired'
    CONTINUATION_ID_INVALID = 'ContinuationIdInvalid'
    PEER_CONTINUATION_NOT_ENCRYPTED = 'PeerContinuationNotEncrypted'
    MISSING_PEER_CONTINUATION = 'MissingPeerContinuation'
    ENVELOPE = 'Envelope'
    IDENTITY = 'Identity'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


class GSTPError(Exception):
    """Base class for the errors raised while sealing or unsealing messages"""

    kind: ClassVar[ErrorKind]
    message: ClassVar[str] = ''

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class SenderMissingEncryptionKey(GSTPError):
    """Raised when the sender identity has no encryption key to seal its continuation to."""

    kind = ErrorKind.SENDER_MISSING_ENCRYPTION_KEY
    message = 'sender must have an encryption key'


class RecipientMissingEncryptionKey(GSTPError):
    """Raised when the recipient identity has no encryption key to encrypt the message to."""

    kind = ErrorKind.RECIPIENT_MISSING_ENCRYPTION_KEY
    message = 'recipient must have an encryption key'


class SenderMissingVerificationKey(GSTPError):
    """Raised when the sender identity of a received message has no key to verify its signature with."""

    kind = ErrorKind.SENDER_MISSING_VERIFICATION_KEY
    message = 'sender must have a verification key'


class ContinuationExpired(GSTPError):
    """Raised when a continuation is opened after the time it was valid until."""

    kind = ErrorKind.CONTINUATION_EXPIRED
    message = 'continuation expired'


class ContinuationIdInvalid(GSTPError):
    """Raised when a continuation is bound to a different message id than the one expected."""

    kind = ErrorKind.CONTINUATION_ID_INVALID
    message = 'continuation ID invalid'


class PeerContinuationNotEncrypted(GSTPError):
    """Raised when a continuation slot holds a cleartext envelope."""

    kind = ErrorKind.PEER_CONTINUATION_NOT_ENCRYPTED
    message = 'peer continuation must be encrypted'


class MissingPeerContinuation(GSTPError):
    """Raised when a received request does not carry the sender continuation."""

    kind = ErrorKind.MISSING_PEER_CONTINUATION
    message = 'requests must contain a peer continuation'


class SealedEnvelopeError(GSTPError):
    """Raised when an envelope operation fails while sealing or unsealing a message."""

    kind = ErrorKind.ENVELOPE

    def __init__(self, cause: EnvelopeError) -> None:
        super().__init__(str(cause) or cause.__class__.__name__)
        self.cause = cause


class SealedIdentityError(GSTPError):
    """Raised when the sender identity of a message cannot be processed."""

    kind = ErrorKind.IDENTITY

    def __init__(self, cause: IdentityError) -> None:
        super().__init__(str(cause) or cause.__class__.__name__)
        self.cause = cause


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise envelope and identity errors as the corresponding GSTPError"""
    try:
        yield
    except EnvelopeError as exc:
        raise SealedEnvelopeError(exc) from exc
    except IdentityError as exc:
        raise SealedIdentityError(exc) from exc
