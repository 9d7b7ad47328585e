"""
At-rest encryption for wallet signing secrets.

Handles:
- AES-256-GCM encryption/decryption of PEM data and passwords
- Base64 text encoding for storage in Supabase TEXT columns
- CSR private keys held in the certificates bucket until Apple issues the certificate
"""

import base64
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.config import settings

logger = logging.getLogger(__name__)


class CertificateManager:
    """Encrypts and decrypts credential secrets with a single service-wide key."""

    def __init__(self, encryption_key: bytes):
        self._aesgcm = AESGCM(encryption_key)

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt data with AES-256-GCM.

        Returns IV (12 bytes) + ciphertext+tag as a single blob.
        """
        iv = os.urandom(12)
        ciphertext = self._aesgcm.encrypt(iv, data, None)
        return iv + ciphertext

    def decrypt(self, encrypted_blob: bytes) -> bytes:
        """Decrypt AES-256-GCM encrypted blob.

        Expects IV (first 12 bytes) + ciphertext+tag.
        """
        iv = encrypted_blob[:12]
        ciphertext = encrypted_blob[12:]
        return self._aesgcm.decrypt(iv, ciphertext, None)

    def encrypt_text(self, value: str) -> str:
        return base64.b64encode(self.encrypt(value.encode())).decode()

    def decrypt_text(self, value: str) -> str:
        return self.decrypt(base64.b64decode(value)).decode()

    def store_csr_private_key(self, account_id: str, private_key_pem: bytes) -> str:
        """Keep the CSR private key (encrypted) until the matching certificate is uploaded."""
        from app.services.storage import get_storage_service

        path = csr_key_path(account_id)
        get_storage_service().upload_file(
            settings.certificates_bucket,
            path,
            self.encrypt(private_key_pem),
            content_type="application/octet-stream",
        )
        logger.info(f"Stored CSR private key for account {account_id}")
        return path

    def load_csr_private_key(self, account_id: str) -> bytes | None:
        from app.services.storage import get_storage_service

        blob = get_storage_service().download_file(settings.certificates_bucket, csr_key_path(account_id))
        if not blob:
            return None
        return self.decrypt(blob)


def csr_key_path(account_id: str) -> str:
    return f"{account_id}/csr/private_key.enc"


# Singleton
_manager: Optional[CertificateManager] = None


def get_certificate_manager() -> CertificateManager:
    """Get or create the singleton CertificateManager."""
    global _manager
    if _manager is None:
        key_hex = settings.cert_encryption_key
        if not key_hex:
            logger.warning("CERT_ENCRYPTION_KEY is not set, using an insecure development key")
            key_hex = "0" * 64
        _manager = CertificateManager(bytes.fromhex(key_hex))
    return _manager
