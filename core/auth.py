"""
Credential Signing and Password Hashing.

This module holds the stateless cryptographic pieces of the session lifecycle.

Key Components:
- `AccessClaims` / `RefreshClaims`: Fixed claim sets for the two credential
  classes. An access credential identifies the account and carries its
  username, email and display name; a refresh credential carries the subject
  only.
- `CredentialSigner`: Mints and verifies HS256 JSON Web Tokens. Each class has
  its own secret and lifetime, and every token is tagged with its class, so a
  refresh token is never accepted where an access token is expected (or the
  other way round). Verification fails closed with one `InvalidCredentialError`
  whatever went wrong.
- `PasswordManager`: bcrypt hashing with a per-hash salt and constant-time
  verification.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

import bcrypt
import jwt

from core.config import AuthSettings
from core.exceptions import InternalError, InvalidCredentialError, ValidationError
from core.logging_config import get_logger

logger = get_logger(__name__)

ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72


class TokenType(Enum):
    """Credential classes"""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class AccessClaims:
    subject: str
    email: str
    username: str
    full_name: str

    token_type = TokenType.ACCESS

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sub": self.subject,
            "email": self.email,
            "username": self.username,
            "full_name": self.full_name,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AccessClaims":
        return cls(
            subject=payload["sub"],
            email=payload["email"],
            username=payload["username"],
            full_name=payload["full_name"],
        )


@dataclass(frozen=True)
class RefreshClaims:
    subject: str

    token_type = TokenType.REFRESH

    def to_payload(self) -> Dict[str, Any]:
        return {"sub": self.subject}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RefreshClaims":
        return cls(subject=payload["sub"])


Claims = Union[AccessClaims, RefreshClaims]


class CredentialSigner:
    """JWT minting and verification for access and refresh credentials"""

    def __init__(self, settings: AuthSettings):
        self._secrets = {
            TokenType.ACCESS: settings.access_token_secret,
            TokenType.REFRESH: settings.refresh_token_secret,
        }
        self._lifetimes = {
            TokenType.ACCESS: settings.access_token_ttl,
            TokenType.REFRESH: settings.refresh_token_ttl,
        }

    def lifetime(self, token_type: TokenType) -> timedelta:
        return self._lifetimes[token_type]

    def mint(self, claims: Claims, ttl: Optional[timedelta] = None) -> str:
        """Sign `claims` with the secret of their credential class"""
        token_type = claims.token_type
        now = datetime.now(timezone.utc)

        payload = claims.to_payload()
        payload.update(
            {
                "type": token_type.value,
                "iat": now,
                "exp": now + (ttl if ttl is not None else self._lifetimes[token_type]),
                "jti": secrets.token_urlsafe(16),
            }
        )

        try:
            return jwt.encode(payload, self._secrets[token_type], algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error(f"Failed to sign {token_type.value} token: {e}")
            raise InternalError("mint_token", "token signing failed")

    def mint_access(self, claims: AccessClaims) -> str:
        return self.mint(claims)

    def mint_refresh(self, claims: RefreshClaims) -> str:
        return self.mint(claims)

    def verify(self, token: str, token_type: TokenType) -> Claims:
        """Verify `token` as a credential of class `token_type`"""
        try:
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[ALGORITHM],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidCredentialError("expired")
        except jwt.InvalidSignatureError:
            raise InvalidCredentialError("signature mismatch")
        except jwt.InvalidTokenError:
            raise InvalidCredentialError("malformed")

        if payload.get("type") != token_type.value:
            raise InvalidCredentialError("wrong credential class")

        try:
            if token_type is TokenType.ACCESS:
                return AccessClaims.from_payload(payload)
            return RefreshClaims.from_payload(payload)
        except KeyError:
            raise InvalidCredentialError("malformed")

    def verify_access(self, token: str) -> AccessClaims:
        return self.verify(token, TokenType.ACCESS)

    def verify_refresh(self, token: str) -> RefreshClaims:
        return self.verify(token, TokenType.REFRESH)


class PasswordManager:
    """Password hashing and verification"""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        if not password:
            raise ValidationError("password", "Password is required")
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError(
                "password",
                f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes",
            )

        hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds))
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        """Verify password against hash"""
        if not password or not hashed:
            return False
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False
