# Services/auth.py
"""
Auth collaborator: accounts, password check and session tokens.

Identity lives in the ``accounts``/``auth_sessions`` tables; everything else
about a user (names, phone, role) lives in the ``users/<uid>`` profile document.
The admin role is read from that profile, or from an ``admins/<uid>`` document,
never from the auth tables.
"""
import logging
import os
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from passlib.hash import bcrypt
from sqlalchemy import exc
from sqlalchemy.exc import SQLAlchemyError

from Models import Account, AuthSession
from schemas import COLLECTIONS, UserProfile
from Services.document_store import DocumentStore, server_timestamp
from Services.errors import AuthError, StoreError

logger = logging.getLogger(__name__)

SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))
REMEMBER_ME_DAYS = int(os.getenv("REMEMBER_ME_DAYS", "30"))


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str
    display_name: Optional[str] = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class AuthService:
    def __init__(self, session_factory, store: DocumentStore,
                 session_ttl: Optional[timedelta] = None,
                 remember_ttl: Optional[timedelta] = None):
        self._session_factory = session_factory
        self.store = store
        self.session_ttl = session_ttl or timedelta(hours=SESSION_TTL_HOURS)
        self.remember_ttl = remember_ttl or timedelta(days=REMEMBER_ME_DAYS)
        self._listeners: List[Callable[[str, Optional[AuthUser]], None]] = []

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def sign_up(self, email: str, password: str, first_name: str = "", last_name: str = "",
                phone: Optional[str] = None) -> AuthUser:
        email = email.strip().lower()
        if len(password) < 6:
            raise AuthError("Password must be at least 6 characters")

        display_name = f"{first_name} {last_name}".strip() or None
        uid = uuid.uuid4().hex
        account = Account(uid=uid, email=email,
                          password_hash=bcrypt.hash(password), display_name=display_name)
        db = self._session_factory()
        try:
            db.add(account)
            db.commit()
        except exc.IntegrityError:
            db.rollback()
            raise AuthError("An account with this email already exists")
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Account creation failed: {e}") from e
        finally:
            db.close()

        user = AuthUser(uid=uid, email=email, display_name=display_name)
        self.store.set(COLLECTIONS["users"], user.uid, {
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "phone": phone,
            "role": "user",
            "created_at": server_timestamp(),
        })
        logger.info(f"Registered account {email} ({user.uid})")
        return user

    def sign_in(self, email: str, password: str, remember: bool = False) -> Tuple[str, AuthUser]:
        """Check credentials and open a session; ``remember`` selects the durable lifetime."""
        email = email.strip().lower()
        now = datetime.now(timezone.utc)
        db = self._session_factory()
        try:
            account = db.query(Account).filter(Account.email == email).first()
            if not account or not account.is_active or not bcrypt.verify(password, account.password_hash):
                logger.info(f"Failed sign-in for {email}")
                raise AuthError("Invalid email or password")

            token = secrets.token_urlsafe(32)
            db.add(AuthSession(
                token=token,
                uid=account.uid,
                persistent=remember,
                created_at=now,
                expires_at=now + (self.remember_ttl if remember else self.session_ttl),
            ))
            account.last_login = now
            db.commit()
            user = AuthUser(uid=account.uid, email=account.email, display_name=account.display_name)
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Sign-in failed: {e}") from e
        finally:
            db.close()

        logger.info(f"Signed in {email} (persistent={remember})")
        self._emit(token, user)
        return token, user

    def sign_out(self, token: str) -> None:
        db = self._session_factory()
        try:
            session = db.get(AuthSession, token)
            if session is not None:
                db.delete(session)
                db.commit()
        finally:
            db.close()
        self._emit(token, None)

    def resolve(self, token: Optional[str]) -> Optional[AuthUser]:
        """The user behind *token*, or None for a missing, unknown or expired token."""
        if not token:
            return None
        db = self._session_factory()
        try:
            session = db.get(AuthSession, token)
            if session is None:
                return None
            if _as_utc(session.expires_at) < datetime.now(timezone.utc):
                uid = session.uid
                db.delete(session)
                db.commit()
                logger.debug(f"Expired session for {uid}")
                return None
            account = session.account
            return AuthUser(uid=account.uid, email=account.email, display_name=account.display_name)
        finally:
            db.close()

    # ------------------------------------------------------------------
    # State change stream
    # ------------------------------------------------------------------

    def on_auth_state_changed(self, listener: Callable[[str, Optional[AuthUser]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def dispose():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return dispose

    def _emit(self, token: str, user: Optional[AuthUser]) -> None:
        for listener in list(self._listeners):
            listener(token, user)

    # ------------------------------------------------------------------
    # Profile and role
    # ------------------------------------------------------------------

    def get_profile(self, uid: str) -> Optional[UserProfile]:
        snapshot = self.store.get(COLLECTIONS["users"], uid)
        if snapshot is None:
            return None
        return UserProfile(**snapshot.data)

    def is_admin(self, uid: str) -> bool:
        try:
            profile = self.store.get(COLLECTIONS["users"], uid)
            if profile is not None and profile.data.get("role") == "admin":
                return True
            return self.store.get(COLLECTIONS["admins"], uid) is not None
        except StoreError as e:
            logger.error(f"Error checking admin role for {uid}: {e}", exc_info=True)
            return False

    def display_name(self, user: AuthUser, profile: Optional[UserProfile] = None) -> str:
        """Profile name, then account display name, then the email's local part."""
        if profile is not None and profile.first_name and profile.last_name:
            return profile.full_name
        if user.display_name and user.display_name.strip():
            return user.display_name.strip()
        return user.email.split("@")[0] if user.email else ""
