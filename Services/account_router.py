# Services/account_router.py
from fastapi import APIRouter, HTTPException, Depends, Response, status
from pydantic import BaseModel, EmailStr, constr
from typing import List, Optional, Union
import logging

from schemas import COLLECTIONS, SparePart, UserProfile, Vehicle
from Services.auth import AuthService
from Services.dependencies import (
    SESSION_COOKIE,
    get_auth,
    get_sessions,
    get_store,
    get_token,
    get_translator,
    require_session,
)
from Services.document_store import DocumentStore
from Services.i18n import LANGUAGE_COOKIE, LANGUAGES, Translator, normalize_language
from Services.saved import LINK_KINDS, resolve_saved
from Services.session_state import SessionContext, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

LANGUAGE_COOKIE_MAX_AGE = 365 * 24 * 3600

class RegisterRequest(BaseModel):
    email: EmailStr
    password: constr(min_length=6)
    first_name: constr(min_length=1, max_length=100)
    last_name: constr(min_length=1, max_length=100)
    phone: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    remember: bool = False

class SessionResponse(BaseModel):
    token: str
    uid: str
    email: str
    display_name: Optional[str] = None
    is_admin: bool = False

class MeResponse(BaseModel):
    uid: str
    email: str
    is_admin: bool
    unread_count: int
    profile: Optional[UserProfile] = None

class ProfileUpdate(BaseModel):
    first_name: Optional[constr(min_length=1, max_length=100)] = None
    last_name: Optional[constr(min_length=1, max_length=100)] = None
    phone: Optional[str] = None

class LanguageRequest(BaseModel):
    language: str

def _open_session(response: Response, auth: AuthService, sessions: SessionRegistry,
                  email: str, password: str, remember: bool) -> SessionResponse:
    token, user = auth.sign_in(email, password, remember)
    context = sessions.get(token)
    response.set_cookie(
        SESSION_COOKIE, token,
        max_age=int(auth.remember_ttl.total_seconds()) if remember else None,
        httponly=True, samesite="lax"
    )
    return SessionResponse(token=token, uid=user.uid, email=user.email,
                           display_name=user.display_name, is_admin=context.is_admin)

@router.post("/auth/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    response: Response,
    auth: AuthService = Depends(get_auth),
    sessions: SessionRegistry = Depends(get_sessions)
):
    auth.sign_up(body.email, body.password, body.first_name, body.last_name, body.phone)
    return _open_session(response, auth, sessions, body.email, body.password, False)

@router.post("/auth/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth),
    sessions: SessionRegistry = Depends(get_sessions)
):
    return _open_session(response, auth, sessions, body.email, body.password, body.remember)

@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: Optional[str] = Depends(get_token),
    auth: AuthService = Depends(get_auth)
):
    if token:
        auth.sign_out(token)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(SESSION_COOKIE)
    return response

@router.get("/auth/me", response_model=MeResponse)
async def me(
    session: SessionContext = Depends(require_session),
    auth: AuthService = Depends(get_auth)
):
    return MeResponse(
        uid=session.user.uid,
        email=session.user.email,
        is_admin=session.is_admin,
        unread_count=session.unread_count,
        profile=auth.get_profile(session.user.uid),
    )

@router.get("/account/profile", response_model=UserProfile)
async def get_profile(
    session: SessionContext = Depends(require_session),
    auth: AuthService = Depends(get_auth)
):
    profile = auth.get_profile(session.user.uid)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found"
        )
    return profile

@router.put("/account/profile", response_model=UserProfile)
async def update_profile(
    body: ProfileUpdate,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store),
    auth: AuthService = Depends(get_auth)
):
    # Role is never writable from here
    changes = body.model_dump(exclude_unset=True)
    if changes:
        store.update(COLLECTIONS["users"], session.user.uid, changes)
        logger.info(f"Updated profile {session.user.uid}: {', '.join(changes)}")
    return auth.get_profile(session.user.uid)

@router.get("/account/saved/{kind}", response_model=List[Union[Vehicle, SparePart]])
async def saved_items(
    kind: str,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_store)
):
    if kind not in LINK_KINDS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown list: {kind}"
        )
    return resolve_saved(store, session.user.uid, kind)

@router.get("/language")
async def get_language(translator: Translator = Depends(get_translator)):
    return {"language": translator.language, "languages": list(LANGUAGES)}

@router.put("/language")
async def set_language(body: LanguageRequest, response: Response):
    if body.language not in LANGUAGES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unsupported language: {body.language}"
        )
    language = normalize_language(body.language)
    response.set_cookie(LANGUAGE_COOKIE, language, max_age=LANGUAGE_COOKIE_MAX_AGE)
    return {"language": language}

@router.get("/i18n/{key}")
async def translate(key: str, translator: Translator = Depends(get_translator)):
    return {"key": key, "language": translator.language, "value": translator.t(key)}
