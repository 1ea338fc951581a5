"""
HashiCorp Vault access for the account service's secrets.

AppRole login, KV v2 reads under the 'accounts/' prefix, and a process-wide
cache so each secret is fetched once. Missing configuration fails at startup.
"""

import os
import logging
from typing import Dict

import hvac
import requests
from hvac.exceptions import Forbidden, InvalidPath, Unauthorized, VaultError

logger = logging.getLogger(__name__)

# Every path is read relative to this prefix
_SECRET_PREFIX = "accounts"

# Singleton instance and field cache keyed by "<prefix>/<path>/<field>"
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """Authenticated KV v2 reader confined to the accounts/ prefix."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        mount_point: str | None = None,
    ):
        """Read connection settings from arguments or VAULT_* env vars and log in."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.mount_point = mount_point or os.getenv("VAULT_MOUNT_POINT", "secret")
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        self.client = hvac.Client(url=self.vault_addr, namespace=self.vault_namespace)
        self._login(role_id, secret_id)

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client ready: {self.vault_addr} (mount '{self.mount_point}')")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except (VaultError, requests.exceptions.RequestException) as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}") from e
        self.client.token = response["auth"]["client_token"]

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read every field of 'accounts/<path>'.

        Raises:
            PermissionError: Path missing or not readable with this role.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path,
                mount_point=self.mount_point,
                raise_on_deleted_version=True,
            )
        except InvalidPath as e:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}") from e

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Read one field of 'accounts/<path>'.

        Raises:
            PermissionError: Path missing or not readable.
            KeyError: Field not present in the secret.
        """
        secret = self.read_secret(path)
        if field not in secret:
            raise KeyError(
                f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(secret)}"
            )
        return secret[field]


# Cached accessors used by the application factory


def _get_fields(path: str, *fields: str) -> Dict[str, str]:
    """Fetch fields of one secret, hitting Vault at most once per secret."""
    keys = {field: f"{_SECRET_PREFIX}/{path}/{field}" for field in fields}

    if any(key not in _secret_cache for key in keys.values()):
        secret = _ensure_vault_client().read_secret(path)
        for field, key in keys.items():
            if field not in secret:
                raise KeyError(f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'")
            _secret_cache[key] = secret[field]

    return {field: _secret_cache[key] for field, key in keys.items()}


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _get_fields("database", "url")["url"]


def get_jwt_secret() -> str:
    """HS256 signing secret for access and refresh tokens."""
    return _get_fields("jwt", "secret")["secret"]


def get_email_config() -> Dict[str, str]:
    """Email gateway settings: gateway_url, api_key, hmac_secret."""
    return _get_fields("email", "gateway_url", "api_key", "hmac_secret")


def get_storage_config() -> Dict[str, str]:
    """Avatar storage settings: dir, public_url."""
    return _get_fields("storage", "dir", "public_url")
