# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = (  # noqa: RUF022
    'EnvelopeError',
    'InvalidFormat',
    'NotWrapped',
    'NonexistentPredicate',
    'AmbiguousPredicate',
    'InvalidType',
    'NotEncrypted',
    'AlreadyEncrypted',
    'UnknownRecipient',
    'InvalidSignature',
    'InvalidDigest',
    'DecryptionFailed',
)


class EnvelopeError(ValueError):
    """Base class for the errors raised while building or parsing envelopes."""


class InvalidFormat(EnvelopeError):
    """Raised when data cannot be decoded into an envelope or into the expected structure."""


class NotWrapped(EnvelopeError):
    """Raised when unwrapping an envelope whose subject is not a wrapped envelope."""


class NonexistentPredicate(EnvelopeError):
    """Raised when an envelope has no assertion with the requested predicate."""


class AmbiguousPredicate(EnvelopeError):
    """Raised when an envelope has more than one assertion with a predicate that is expected to be unique."""


class InvalidType(EnvelopeError):
    """Raised when a leaf value cannot be extracted as the requested type."""


class NotEncrypted(EnvelopeError):
    """Raised when decrypting an envelope whose subject is not encrypted."""


class AlreadyEncrypted(EnvelopeError):
    """Raised when encrypting an envelope whose subject is already encrypted."""


class UnknownRecipient(EnvelopeError):
    """Raised when none of the recipients of an encrypted envelope can be opened with the provided keys."""


class InvalidSignature(EnvelopeError):
    """Raised when an envelope does not carry a valid signature made with the provided key."""


class InvalidDigest(EnvelopeError):
    """Raised when the digest of a decrypted subject doesn't match the digest of the ciphertext."""


class DecryptionFailed(EnvelopeError):
    """Raised when authenticated decryption fails."""
