"""Credential verification for the plaintext and bcrypt schemes."""

import secrets
from typing import Protocol

import bcrypt

from school_backend.core import config

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72


class CredentialVerifier(Protocol):
    def hash(self, plain: str) -> str:
        ...

    def verify(self, stored: str, supplied: str) -> bool:
        ...


class PlaintextCredentialVerifier:
    def hash(self, plain: str) -> str:
        return plain

    def verify(self, stored: str, supplied: str) -> bool:
        if not isinstance(stored, str) or not isinstance(supplied, str):
            return False
        return secrets.compare_digest(stored.encode('utf-8'), supplied.encode('utf-8'))


class BcryptCredentialVerifier:
    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        pw_bytes = plain.encode('utf-8')[:BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=self.rounds)).decode('utf-8')

    def verify(self, stored: str, supplied: str) -> bool:
        try:
            pw_bytes = supplied.encode('utf-8')[:BCRYPT_MAX_BYTES]
            return bcrypt.checkpw(pw_bytes, stored.encode('utf-8'))
        except (ValueError, TypeError, AttributeError):
            return False


def get_credential_verifier() -> CredentialVerifier:
    if config.CREDENTIAL_SCHEME == 'bcrypt':
        return BcryptCredentialVerifier()
    return PlaintextCredentialVerifier()
