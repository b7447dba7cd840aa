from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.auth import CredentialSigner, PasswordManager
from core.config import AuthSettings
from core.exceptions import ChannelAPIException, to_http_exception
from core.models import AccountPublic
from services.auth_gate import AuthGate
from services.relationship_graph import RelationshipGraphEngine
from services.session_authority import SessionAuthority
from services.user_directory import UserDirectory

session_authority: Optional[SessionAuthority] = None
auth_gate: Optional[AuthGate] = None
graph_engine: Optional[RelationshipGraphEngine] = None


def init_dependencies(settings: AuthSettings, session_factory: async_sessionmaker):
    """Wire the services once settings and the database are ready"""
    global session_authority, auth_gate, graph_engine

    signer = CredentialSigner(settings)
    directory = UserDirectory(session_factory, timeout=settings.storage_timeout)

    session_authority = SessionAuthority(
        directory, signer, PasswordManager(rounds=settings.bcrypt_rounds)
    )
    auth_gate = AuthGate(signer, directory)
    graph_engine = RelationshipGraphEngine(
        session_factory, timeout=settings.storage_timeout
    )


def _require(service, name: str):
    if service is None:
        raise RuntimeError(f"{name} used before init_dependencies()")
    return service


def get_session_authority() -> SessionAuthority:
    return _require(session_authority, "SessionAuthority")


def get_auth_gate() -> AuthGate:
    return _require(auth_gate, "AuthGate")


def get_graph_engine() -> RelationshipGraphEngine:
    return _require(graph_engine, "RelationshipGraphEngine")


async def get_current_account(
    request: Request, gate: AuthGate = Depends(get_auth_gate)
) -> AccountPublic:
    """Resolve the authenticated caller or answer 401"""
    try:
        return await gate.authenticate(request)
    except ChannelAPIException as e:
        raise to_http_exception(e)
