"""
Request Authentication Gate.

`AuthGate.authenticate` turns an incoming request into the sanitized identity
of the caller, or raises `UnauthorizedError`. The access token is taken from
the `accessToken` cookie when present, otherwise from an
`Authorization: Bearer <token>` header.
"""

from typing import Optional

from starlette.requests import HTTPConnection

from core.auth import CredentialSigner
from core.exceptions import InvalidCredentialError, UnauthorizedError
from core.logging_config import get_logger
from core.models import AccountPublic
from services.user_directory import UserDirectory

logger = get_logger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def extract_bearer_token(connection: HTTPConnection) -> Optional[str]:
    """Cookie first, then the Authorization header"""
    token = connection.cookies.get(ACCESS_COOKIE)
    if token:
        return token

    header = connection.headers.get("Authorization")
    if not header:
        return None

    scheme, _, value = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


class AuthGate:
    def __init__(self, signer: CredentialSigner, directory: UserDirectory):
        self.signer = signer
        self.directory = directory

    async def authenticate(self, connection: HTTPConnection) -> AccountPublic:
        token = extract_bearer_token(connection)
        if not token:
            raise UnauthorizedError("no token")

        try:
            claims = self.signer.verify_access(token)
        except InvalidCredentialError as e:
            logger.info(f"Rejected access token: {e.reason}")
            raise

        account = await self.directory.find_by_id(claims.subject)
        if account is None:
            logger.info(f"Rejected access token for unknown subject {claims.subject}")
            raise UnauthorizedError("stale subject")

        connection.state.account = account
        return account
