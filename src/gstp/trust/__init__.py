# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# The identity module builds on envelopes, which in turn build on these keys,
# so it is not imported here. Use gstp.trust.identity or the gstp package.

from .encryption import EncryptedMessage, Nonce, SealedMessage, SymmetricKey
from .keys import (
    Decrypter,
    EncapsulationPrivateKey,
    EncapsulationPublicKey,
    EncapsulationScheme,
    Encrypter,
    PrivateKeys,
    PublicKeys,
    Signature,
    SignatureScheme,
    Signer,
    SigningPrivateKey,
    SigningPublicKey,
    Verifier,
    keypair,
)

__all__ = (  # noqa: RUF022
    'SignatureScheme',
    'EncapsulationScheme',
    'SigningPrivateKey',
    'SigningPublicKey',
    'Signature',
    'EncapsulationPrivateKey',
    'EncapsulationPublicKey',
    'PrivateKeys',
    'PublicKeys',
    'Signer',
    'Verifier',
    'Encrypter',
    'Decrypter',
    'keypair',

    'SymmetricKey',
    'Nonce',
    'EncryptedMessage',
    'SealedMessage',
)
