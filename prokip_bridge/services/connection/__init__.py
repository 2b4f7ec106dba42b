"""
Connection Domain Services
==========================

Store connections and credential encryption.
"""

from .connection_service import ConnectionService
from .credential_cipher import CredentialCipher

__all__ = [
    'ConnectionService',
    'CredentialCipher'
]
