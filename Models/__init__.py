# Models/__init__.py
from .base import Base
from .document import Document
from .account import Account, AuthSession

# List all models for easy access and database initialization
__all__ = [
    'Base',
    'Document',
    'Account',
    'AuthSession'
]
