"""
Credential Cipher
=================

AES-256-GCM encryption for stored WooCommerce credentials. Values are kept as
a JSON envelope `{"encrypted": hex, "iv": hex, "tag": hex}`; anything else is
treated as plain text.
"""

import hashlib
import json
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import CredentialError

AAD = b'woocommerce-key'
IV_LENGTH = 16
TAG_LENGTH = 16


class CredentialCipher:

    def __init__(self, encryption_key: Optional[str]):
        self.enabled = bool(encryption_key)
        self._key = hashlib.sha256((encryption_key or '').encode('utf-8')).digest()

    @staticmethod
    def is_encrypted(value: Optional[str]) -> bool:
        return isinstance(value, str) and value.startswith('{"encrypted":')

    def encrypt(self, value: Optional[str]) -> Optional[str]:
        if not value or not self.enabled or self.is_encrypted(value):
            return value
        iv = os.urandom(IV_LENGTH)
        sealed = AESGCM(self._key).encrypt(iv, value.encode('utf-8'), AAD)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return json.dumps({'encrypted': ciphertext.hex(), 'iv': iv.hex(), 'tag': tag.hex()})

    def decrypt(self, value: Optional[str]) -> Optional[str]:
        if not self.is_encrypted(value):
            return value
        try:
            envelope = json.loads(value)
            sealed = bytes.fromhex(envelope['encrypted']) + bytes.fromhex(envelope['tag'])
            plain = AESGCM(self._key).decrypt(bytes.fromhex(envelope['iv']), sealed, AAD)
        except (ValueError, KeyError, InvalidTag) as e:
            raise CredentialError(f"Decryption failed: {e.__class__.__name__}")
        return plain.decode('utf-8')
