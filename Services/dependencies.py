# Services/dependencies.py
"""FastAPI dependencies shared by the routers.

Collaborators hang off one ``ServiceContainer`` stored on ``app.state``; tests
swap the whole set by replacing ``app.state.container``.
"""
import logging
from pathlib import Path
from typing import Optional

from fastapi import Cookie, Depends, Header, HTTPException, Request, status

from schemas import Redirect
from Services.auth import AuthService
from Services.document_store import DocumentStore
from Services.i18n import LANGUAGE_COOKIE, Translator
from Services.object_storage import ObjectStorage
from Services.session_state import SessionContext, SessionRegistry

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_token"


class ServiceContainer:
    def __init__(self, session_factory, upload_root: Optional[Path] = None, base_url: Optional[str] = None):
        self.store = DocumentStore(session_factory)
        self.storage = ObjectStorage(upload_root, base_url)
        self.auth = AuthService(session_factory, self.store)
        self.sessions = SessionRegistry(self.store, self.auth)

    def close(self) -> None:
        self.sessions.close()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_store(container: ServiceContainer = Depends(get_container)) -> DocumentStore:
    return container.store


def get_storage(container: ServiceContainer = Depends(get_container)) -> ObjectStorage:
    return container.storage


def get_auth(container: ServiceContainer = Depends(get_container)) -> AuthService:
    return container.auth


def get_sessions(container: ServiceContainer = Depends(get_container)) -> SessionRegistry:
    return container.sessions


def get_token(
    authorization: Optional[str] = Header(None),
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip()
    return session_token


def get_session(
    token: Optional[str] = Depends(get_token),
    sessions: SessionRegistry = Depends(get_sessions),
) -> Optional[SessionContext]:
    return sessions.get(token)


def require_session(session: Optional[SessionContext] = Depends(get_session)) -> SessionContext:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return session


def require_admin(session: SessionContext = Depends(require_session)) -> SessionContext:
    if not session.is_admin:
        logger.info(f"Non-admin {session.user.uid} refused from admin area")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin only"
        )
    return session


def get_translator(language: Optional[str] = Cookie(None, alias=LANGUAGE_COOKIE)) -> Translator:
    return Translator(language)


def login_redirect(from_path: str, action: str) -> Redirect:
    """Where an anonymous user is sent, with enough state to resume *action* afterwards."""
    return Redirect(redirect="/login", state={"from": from_path, "action": action})
