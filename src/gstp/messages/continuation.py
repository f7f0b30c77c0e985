# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Encrypted state continuations.

Instead of keeping the state of a conversation locally, a party packs it in a
continuation, encrypts the continuation to its own public key and hands it to
the peer, which returns it untouched with its next message. Only the party that
created the continuation can open it, and the id and expiry bound into it are
checked when it comes back.
"""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Self

from gstp.envelope import ARID, ID, VALID_UNTIL, Envelope, utc_date
from gstp.trust import Decrypter, Encrypter

from .exceptions import ContinuationExpired, ContinuationIdInvalid, translate_errors

__all__ = 'Continuation',  # noqa: COM818


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Continuation:
    state: Envelope
    valid_id: ARID | None = None
    valid_until: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'state', Envelope.new(self.state))
        if self.valid_until is not None:
            object.__setattr__(self, 'valid_until', utc_date(self.valid_until))

    @classmethod
    def new(cls, state: object) -> Self:
        return cls(Envelope.new(state))

    @property
    def id(self) -> ARID | None:
        return self.valid_id

    def with_valid_id(self, valid_id: ARID) -> Self:
        return replace(self, valid_id=valid_id)

    def with_optional_valid_id(self, valid_id: ARID | None) -> Self:
        return self if valid_id is None else self.with_valid_id(valid_id)

    def with_valid_until(self, valid_until: datetime) -> Self:
        return replace(self, valid_until=valid_until)

    def with_optional_valid_until(self, valid_until: datetime | None) -> Self:
        return self if valid_until is None else self.with_valid_until(valid_until)

    def with_valid_duration(self, duration: timedelta) -> Self:
        """Make the continuation valid for the given duration starting now"""
        return self.with_valid_until(datetime.now(UTC) + duration)

    def is_valid_date(self, now: datetime | None = None) -> bool:
        if now is None or self.valid_until is None:
            return True
        return self.valid_until > utc_date(now)

    def is_valid_id(self, expected_id: ARID | None = None) -> bool:
        if expected_id is None or self.valid_id is None:
            return True
        return self.valid_id == expected_id

    def is_valid(self, now: datetime | None = None, expected_id: ARID | None = None) -> bool:
        return self.is_valid_date(now) and self.is_valid_id(expected_id)

    def to_envelope(self, recipient: Encrypter | None = None) -> Envelope:
        """Return the continuation envelope, encrypted to the recipient if one is given"""
        envelope = self.state.wrap().add_optional_assertion(ID, self.valid_id).add_optional_assertion(VALID_UNTIL, self.valid_until)
        if recipient is not None:
            envelope = envelope.encrypt_to_recipient(recipient)
        return envelope

    @classmethod
    def try_from_envelope(cls, envelope: Envelope, expected_id: ARID | None = None, now: datetime | None = None, recipient: Decrypter | None = None) -> Self:
        """Rebuild a continuation from its envelope, decrypting it first if a recipient is given, and check that it is still valid"""
        with translate_errors():
            if recipient is not None:
                envelope = envelope.decrypt_to_recipient(recipient)
            continuation = cls(
                state=envelope.try_unwrap(),
                valid_id=envelope.extract_optional_object_for_predicate(ID, ARID),
                valid_until=envelope.extract_optional_object_for_predicate(VALID_UNTIL, datetime),
            )
        if not continuation.is_valid_date(now):
            log.debug('Rejected continuation that expired at %s', continuation.valid_until)
            raise ContinuationExpired
        if not continuation.is_valid_id(expected_id):
            log.debug('Rejected continuation bound to %r instead of %r', continuation.valid_id, expected_id)
            raise ContinuationIdInvalid
        return continuation
