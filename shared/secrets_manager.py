"""
Secrets management for the sample API.

Secrets resolve from ``SAMPLE_<KEY>`` environment variables first (the way
Kubernetes injects them), then from a JSON file of Fernet-encrypted values
pointed to by ``SAMPLE_SECRETS_FILE``.
"""

import base64
import json
import os
from typing import Dict, Optional
from urllib.parse import quote

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import ServiceError
from .logging import get_logger

logger = get_logger("shared.secrets")


class SecretsManager:
    """
    Resolves secrets for the API service.
    """

    def __init__(self, master_key: Optional[str] = None, secrets_file: Optional[str] = None):
        """
        Initialize the secrets manager.

        Args:
            master_key: Master key for encryption/decryption. Only needed
                when secrets come from the encrypted file.
            secrets_file: Path of the encrypted secrets file.
        """
        self.master_key = master_key or os.getenv("SAMPLE_MASTER_KEY")
        self.secrets_file = secrets_file or os.getenv("SAMPLE_SECRETS_FILE")
        self._fernet = self._create_fernet() if self.master_key else None

    def _create_fernet(self) -> Fernet:
        # Derive key from master key
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b'sample_api_salt',
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self.master_key.encode()))
        return Fernet(key)

    def _require_fernet(self) -> Fernet:
        if self._fernet is None:
            raise ServiceError("Master key is required for encrypted secrets")
        return self._fernet

    def encrypt_secret(self, secret: str) -> str:
        """Encrypt a secret for storage in the secrets file."""
        encrypted = self._require_fernet().encrypt(secret.encode())
        return base64.urlsafe_b64encode(encrypted).decode()

    def decrypt_secret(self, encrypted_secret: str) -> str:
        """Decrypt a secret read from the secrets file."""
        decoded = base64.urlsafe_b64decode(encrypted_secret.encode())
        return self._require_fernet().decrypt(decoded).decode()

    def get_secret(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a secret by key.

        Args:
            key: Secret key, e.g. ``cloudsql_password``
            default: Default value if secret not found

        Returns:
            Secret value or default
        """
        secret = os.getenv(f"SAMPLE_{key.upper()}")
        if secret:
            return secret

        if self.secrets_file and os.path.exists(self.secrets_file):
            with open(self.secrets_file, "r") as f:
                secrets = json.load(f)
            if key in secrets:
                return self.decrypt_secret(secrets[key])

        return default

    def get_database_credentials(self) -> Dict[str, str]:
        """Cloud SQL connection settings."""
        return {
            "host": self.get_secret("cloudsql_host", "localhost"),
            "port": self.get_secret("cloudsql_port", "5432"),
            "database": self.get_secret("cloudsql_database", "sample"),
            "username": self.get_secret("cloudsql_username", "postgres"),
            "password": self.get_secret("cloudsql_password", "postgres"),
        }

    def build_postgres_dsn(self) -> str:
        creds = self.get_database_credentials()
        logger.info("Resolved database credentials", host=creds["host"], database=creds["database"])
        return (
            f"postgresql://{quote(creds['username'], safe='')}:{quote(creds['password'], safe='')}"
            f"@{creds['host']}:{creds['port']}/{creds['database']}"
        )
