"""
auth/passwords.py -- Password strength policy and bcrypt hashing.

Strength policy: at least 10 characters with one ASCII lowercase letter, one
ASCII uppercase letter, one digit and one non-alphanumeric character
(underscore counts as non-alphanumeric). is_strong_password() is total -- it
answers False for anything it cannot evaluate rather than raising.

Hashing: bcrypt used directly, no passlib wrapper. The salt and cost are
embedded in the hash string, so verification needs nothing but the hash.

bcrypt only reads the first 72 bytes of its input. Older bcrypt releases
truncated silently; 5.x raises ValueError instead. We truncate explicitly in
one place (_to_bcrypt_input) so hashing and verification always agree and the
library version does not change which passwords are accepted.
"""

from __future__ import annotations

import logging
import re

import bcrypt

from auth.errors import CryptoError

logger = logging.getLogger("credapi.auth")

MIN_PASSWORD_LENGTH = 10
DEFAULT_ROUNDS = 12

_BCRYPT_MAX_BYTES = 72

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")
# ASCII mode: accented letters count as symbols, matching a plain [^A-Za-z0-9] class plus "_".
_SYMBOL = re.compile(r"[\W_]", re.ASCII)


def is_strong_password(password: object) -> bool:
    """Return True iff the password satisfies every strength rule."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return False
    return all(pattern.search(password) for pattern in (_LOWER, _UPPER, _DIGIT, _SYMBOL))


def _to_bcrypt_input(plain: str) -> bytes:
    try:
        return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    except UnicodeEncodeError as exc:
        raise CryptoError("Password is not valid UTF-8 text.") from exc


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the plaintext password.

    Two calls with the same input return different strings (fresh salt per
    call); both verify against the original password.
    """
    secret = _to_bcrypt_input(plain)
    try:
        return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=rounds)).decode("utf-8")
    except ValueError as exc:
        raise CryptoError() from exc


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A missing or malformed hash is
    a non-match, never an exception.
    """
    secret = _to_bcrypt_input(plain)
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(secret, hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed; treating as non-match")
        return False


class PasswordHasher:
    """hash_password / verify_password bound to a configured cost factor.

    Holds a dummy hash computed once at construction so that a login for an
    unknown email still pays for one full bcrypt verification. Response time
    then does not reveal whether the email is registered.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash = hash_password("credential-api timing dummy", rounds)

    def hash(self, plain: str) -> str:
        return hash_password(plain, self.rounds)

    def verify(self, plain: str, hashed: str | None) -> bool:
        return verify_password(plain, hashed)

    def burn(self, plain: str) -> None:
        """Run a verification whose result is discarded (timing equalization)."""
        verify_password(plain, self._dummy_hash)
