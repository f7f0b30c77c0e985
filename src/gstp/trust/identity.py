# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from dataclasses import dataclass
from typing import Self

from gstp.envelope import KEY, XID, Envelope, EnvelopeError, Leaf

from .keys import EncapsulationPublicKey, PrivateKeys, PublicKeys, SigningPublicKey

__all__ = 'IdentityError', 'XIDDocument'


class IdentityError(ValueError):
    """Raised when an identity document cannot be built from an envelope"""


@dataclass(frozen=True)
class XIDDocument:
    """
    The public identity of a party.

    The document is identified by the XID of its inception verification key
    and lists the keys used to verify the signatures made by the party and
    the keys used to encrypt data for the party, in order of preference.
    """

    xid: XID
    verification_keys: tuple[SigningPublicKey, ...] = ()
    encryption_keys: tuple[EncapsulationPublicKey, ...] = ()

    @classmethod
    def from_public_keys(cls, public_keys: PublicKeys) -> Self:
        return cls(xid=public_keys.xid, verification_keys=(public_keys.signing_key,), encryption_keys=(public_keys.encapsulation_key,))

    @classmethod
    def from_private_keys(cls, private_keys: PrivateKeys) -> Self:
        return cls.from_public_keys(private_keys.public_keys())

    @classmethod
    def from_verification_key(cls, key: SigningPublicKey) -> Self:
        return cls(xid=XID.for_key(key), verification_keys=(key,))

    def verification_key(self) -> SigningPublicKey | None:
        return self.verification_keys[0] if self.verification_keys else None

    def encryption_key(self) -> EncapsulationPublicKey | None:
        return self.encryption_keys[0] if self.encryption_keys else None

    def with_encryption_key(self, key: EncapsulationPublicKey) -> Self:
        return type(self)(xid=self.xid, verification_keys=self.verification_keys, encryption_keys=(*self.encryption_keys, key))

    def to_envelope(self) -> Envelope:
        envelope = Envelope.new(self.xid)
        for key in (*self.verification_keys, *self.encryption_keys):
            envelope = envelope.add_assertion(KEY, key)
        return envelope

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> Self:
        verification_keys = []
        encryption_keys = []
        try:
            match envelope.subject:
                case Leaf(value=XID() as xid):
                    pass
                case _:
                    raise IdentityError('The identity document subject is not an XID')
            for key in envelope.objects_for_predicate(KEY):
                match key.subject:
                    case Leaf(value=SigningPublicKey() as signing_key):
                        verification_keys.append(signing_key)
                    case Leaf(value=EncapsulationPublicKey() as encapsulation_key):
                        encryption_keys.append(encapsulation_key)
                    case _:
                        raise IdentityError(f'Unsupported identity document key: {key.format_flat()}')
        except EnvelopeError as exc:
            raise IdentityError(f'Invalid identity document: {exc}') from exc
        # keys come back in digest order, the order of preference is not preserved by the envelope
        return cls(xid=xid, verification_keys=tuple(verification_keys), encryption_keys=tuple(encryption_keys))
