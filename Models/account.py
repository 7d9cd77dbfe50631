# Models/account.py
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .base import Base


def utcnow():
    return datetime.now(timezone.utc)


class Account(Base):
    __tablename__ = 'accounts'

    # Primary identifiers
    uid = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)

    # Credentials
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)

    # Account status
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    last_login = Column(DateTime(timezone=True), nullable=True)

    sessions = relationship("AuthSession", back_populates="account", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Account {self.email} ({self.uid})>"


class AuthSession(Base):
    __tablename__ = 'auth_sessions'

    token = Column(String, primary_key=True, index=True)
    uid = Column(String, ForeignKey('accounts.uid'), nullable=False, index=True)

    # Durable ("remember me") sessions outlive the session-only lifetime
    persistent = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    account = relationship("Account", back_populates="sessions")

    def __repr__(self):
        return f"<AuthSession {self.uid} persistent={self.persistent}>"
