"""
Session Lifecycle Orchestration.

`SessionAuthority` drives an account through its session states:

    Anonymous --login--> Authenticated --refresh--> Rotated --refresh--> ...
         ^                     |                       |
         +------- logout ------+-----------------------+

Authenticated and Rotated look the same from the outside: the account has one
live refresh credential stored on its row. Every login overwrites it, every
successful refresh replaces it through a compare-and-swap keyed on the token
being presented, and logout clears it. A refresh credential is therefore
usable at most once; whichever party presents a copy second gets
`StaleOrReusedError`.
"""

import hmac
from dataclasses import dataclass
from typing import Optional

from core.auth import AccessClaims, CredentialSigner, PasswordManager, RefreshClaims
from core.exceptions import (
    InternalError,
    InvalidCredentialsError,
    InvalidOldPasswordError,
    NotFoundError,
    StaleOrReusedError,
    UnauthorizedError,
    ValidationError,
)
from core.logging_config import get_logger
from core.models import Account, AccountPublic
from core.validation import InputValidator
from services.user_directory import UserDirectory

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    account: AccountPublic
    tokens: TokenPair


class SessionAuthority:
    """Login, rotation, logout and password management"""

    def __init__(
        self,
        directory: UserDirectory,
        signer: CredentialSigner,
        passwords: PasswordManager,
    ):
        self.directory = directory
        self.signer = signer
        self.passwords = passwords

    def _mint_pair(self, account: Account) -> TokenPair:
        access_token = self.signer.mint_access(
            AccessClaims(
                subject=account.id,
                email=account.email,
                username=account.username,
                full_name=account.full_name,
            )
        )
        refresh_token = self.signer.mint_refresh(RefreshClaims(subject=account.id))
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def register(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
        avatar: Optional[str],
        cover_image: Optional[str] = None,
    ) -> AccountPublic:
        InputValidator.require(
            {
                "full_name": full_name,
                "email": email,
                "username": username,
                "password": password,
            }
        )
        avatar = InputValidator.validate_reference(
            "avatar", avatar, "Avatar file is required"
        )
        username = InputValidator.validate_username(username)
        email = InputValidator.validate_email(email)

        account = await self.directory.create(
            username=username,
            email=email,
            full_name=full_name.strip(),
            password_hash=self.passwords.hash_password(password),
            avatar=avatar,
            cover_image=(cover_image or "").strip(),
        )
        logger.info(f"Registered account {account.id} ({account.username})")
        return account

    async def login(
        self,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> LoginResult:
        if not (username and username.strip()) and not (email and email.strip()):
            raise ValidationError("username", "username or email is required")

        account = await self.directory.find_by_handle_or_contact(username, email)
        if account is None:
            raise NotFoundError("User does not exist")

        if not self.passwords.verify_password(password, account.password_hash):
            logger.warning(f"Failed login for account {account.id}")
            raise InvalidCredentialsError()

        tokens = self._mint_pair(account)
        if not await self.directory.update_refresh_credential(
            account.id, tokens.refresh_token
        ):
            raise InternalError("login", "could not persist refresh token")

        # Re-read so updated_at reflects the refresh credential write
        public = await self.directory.find_by_id(account.id)
        if public is None:
            raise NotFoundError("User does not exist")

        logger.info(f"Account {account.id} logged in")
        return LoginResult(account=public, tokens=tokens)

    async def refresh(self, incoming_refresh_token: Optional[str]) -> TokenPair:
        """Exchange a live refresh credential for a new pair"""
        if not incoming_refresh_token:
            raise UnauthorizedError("no refresh token")

        claims = self.signer.verify_refresh(incoming_refresh_token)

        account = await self.directory.find_by_id_with_secrets(claims.subject)
        if account is None:
            raise UnauthorizedError("invalid refresh token")

        stored = account.refresh_token or ""
        if not hmac.compare_digest(
            incoming_refresh_token.encode("utf-8"), stored.encode("utf-8")
        ):
            logger.warning(f"Stale or reused refresh token for account {account.id}")
            raise StaleOrReusedError()

        tokens = self._mint_pair(account)
        if not await self.directory.swap_refresh_credential(
            account.id, incoming_refresh_token, tokens.refresh_token
        ):
            logger.warning(f"Lost refresh rotation race for account {account.id}")
            raise StaleOrReusedError()

        logger.info(f"Rotated refresh token for account {account.id}")
        return tokens

    async def logout(self, account_id: str) -> None:
        await self.directory.update_refresh_credential(account_id, None)
        logger.info(f"Account {account_id} logged out")

    async def change_password(
        self, account_id: str, old_password: str, new_password: str
    ) -> None:
        """Replace the password and end every session of the account"""
        InputValidator.require(
            {"old_password": old_password, "new_password": new_password}
        )

        account = await self.directory.find_by_id_with_secrets(account_id)
        if account is None:
            raise NotFoundError("User not found")

        if not self.passwords.verify_password(old_password, account.password_hash):
            raise InvalidOldPasswordError()

        await self.directory.update_password(
            account_id, self.passwords.hash_password(new_password), revoke_sessions=True
        )
        logger.info(f"Password changed for account {account_id}; sessions revoked")

    async def update_account_details(
        self, account_id: str, full_name: str, email: str
    ) -> AccountPublic:
        InputValidator.require({"full_name": full_name, "email": email})
        email = InputValidator.validate_email(email)

        account = await self.directory.update_details(
            account_id, full_name.strip(), email
        )
        if account is None:
            raise NotFoundError("User not found")
        return account

    async def update_avatar(self, account_id: str, avatar: Optional[str]) -> AccountPublic:
        avatar = InputValidator.validate_reference(
            "avatar", avatar, "Avatar file is missing"
        )
        account = await self.directory.update_avatar(account_id, avatar)
        if account is None:
            raise NotFoundError("User not found")
        return account

    async def update_cover_image(
        self, account_id: str, cover_image: Optional[str]
    ) -> AccountPublic:
        cover_image = InputValidator.validate_reference(
            "cover_image", cover_image, "Cover image file is missing"
        )
        account = await self.directory.update_cover_image(account_id, cover_image)
        if account is None:
            raise NotFoundError("User not found")
        return account
