"""Password credentials and access tokens.

Passwords are stored as ``salt:hash``: a random hex salt and the hex scrypt
digest of the password under that salt. Hashing goes through
``pwdlib.PasswordHash`` with :class:`ScryptHasher`, so verification is
dispatched on the stored format.

Access tokens are HMAC-signed JWTs carrying the account's id, email, name
and role. They are verified without touching the store and cannot be
revoked before they expire.
"""

import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from pwdlib import PasswordHash
from pwdlib.exceptions import UnknownHashError
from pydantic import ValidationError

from corredora.core.errors import InvalidToken
from corredora.schemas.auth import AccessClaims

# scrypt cost parameters; fixed because the stored format does not carry them.
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_MAXMEM = 64 * 1024 * 1024
KEY_LENGTH = 64
SALT_BYTES = 16

REFRESH_TOKEN_BYTES = 32

# Well-formed credential that matches no password. Verified against when the
# email is unknown so both failure paths pay for one derivation.
DUMMY_CREDENTIAL = "0" * (SALT_BYTES * 2) + ":" + "0" * (KEY_LENGTH * 2)


def _to_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def _to_str(value: str | bytes) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def derive_key(password: str | bytes, salt: str) -> bytes:
    """Derive the scrypt digest of ``password`` under the hex-text ``salt``."""
    return hashlib.scrypt(
        _to_bytes(password),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        maxmem=SCRYPT_MAXMEM,
        dklen=KEY_LENGTH,
    )


class ScryptHasher:
    """pwdlib hasher for ``salt:hash`` scrypt credentials."""

    @classmethod
    def identify(cls, hash: str | bytes) -> bool:
        try:
            text = _to_str(hash)
        except UnicodeDecodeError:
            return False
        return text.count(":") == 1 and not text.startswith("$")

    def hash(self, password: str | bytes, *, salt: bytes | None = None) -> str:
        salt_text = salt.hex() if salt is not None else secrets.token_hex(SALT_BYTES)
        return f"{salt_text}:{derive_key(password, salt_text).hex()}"

    def verify(self, password: str | bytes, hash: str | bytes) -> bool:
        try:
            salt_text, digest_hex = _to_str(hash).split(":")
            expected = bytes.fromhex(digest_hex)
        except (UnicodeDecodeError, ValueError):
            return False
        if not salt_text or len(expected) != KEY_LENGTH:
            return False
        candidate = derive_key(password, salt_text)
        return hmac.compare_digest(candidate, expected)

    def check_needs_rehash(self, hash: str | bytes) -> bool:
        return False


password_hash = PasswordHash((ScryptHasher(),))


def hash_password(password: str) -> str:
    """Hash a plain password into a new ``salt:hash`` credential.

    Raises:
        ValueError: If the password is empty.
    """
    if not password:
        raise ValueError("password must not be empty")
    return password_hash.hash(password)


def verify_password(password: str, stored: str | None) -> bool:
    """Check ``password`` against a stored credential.

    Malformed or missing credentials yield False instead of raising.
    """
    if not password or not stored:
        return False
    try:
        return password_hash.verify(password, stored)
    except UnknownHashError:
        return False


def generate_refresh_token() -> str:
    """Return an unguessable opaque refresh token (256 bits of entropy)."""
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


@dataclass(frozen=True)
class IssuedAccessToken:
    token: str
    claims: AccessClaims


class TokenIssuer:
    """Signs and verifies access tokens with a process-wide secret.

    Args:
        secret: Symmetric signing key; identical on every server instance.
        algorithm: HMAC JWT algorithm.
        ttl_seconds: Lifetime of each issued token.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_seconds: int = 7200):
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def issue(self, user) -> IssuedAccessToken:
        """Sign a token for ``user`` (any object with id, email, name, role)."""
        issued_at = int(datetime.now(timezone.utc).timestamp())
        claims = AccessClaims(
            sub=str(user.id),
            email=user.email,
            name=user.name,
            role=user.role,
            iat=issued_at,
            exp=issued_at + self.ttl_seconds,
            jti=uuid.uuid4().hex,
        )
        token = jwt.encode(claims.model_dump(mode="json"), self._secret, algorithm=self.algorithm)
        return IssuedAccessToken(token=token, claims=claims)

    def verify(self, token: str) -> AccessClaims:
        """Return the claims of a valid, unexpired token.

        Raises:
            InvalidToken: Bad signature, malformed token, missing or invalid
                claims, or expiry in the past.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
            return AccessClaims.model_validate(payload)
        except (jwt.PyJWTError, ValidationError) as exc:
            raise InvalidToken(str(exc)) from exc
