"""
Secrets for the billing service, read from HashiCorp Vault.

KV v2 engine, AppRole login. Every read is confined to the agency's
`etrans/` path and cached for the life of the process; the service only
needs the database URL today.
"""

import os
import logging

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

SECRET_PREFIX = "etrans"
DATABASE_SECRET = ("database", "url")

_REQUIRED_ENV = ("VAULT_ADDR", "VAULT_ROLE_ID", "VAULT_SECRET_ID")

_vault_client_instance: "VaultClient | None" = None
_secret_cache: dict[tuple[str, str], str] = {}


class VaultError(Exception):
    """Secrets could not be read. The service cannot start without them."""


class VaultClient:
    """AppRole-authenticated reader for `etrans/*` secrets."""

    def __init__(
        self,
        url: str | None = None,
        role_id: str | None = None,
        secret_id: str | None = None,
        namespace: str | None = None,
    ):
        settings = {
            "VAULT_ADDR": url or os.getenv("VAULT_ADDR"),
            "VAULT_ROLE_ID": role_id or os.getenv("VAULT_ROLE_ID"),
            "VAULT_SECRET_ID": secret_id or os.getenv("VAULT_SECRET_ID"),
        }
        missing = [name for name in _REQUIRED_ENV if not settings[name]]
        if missing:
            raise VaultError(f"Missing Vault configuration: {', '.join(missing)}")

        self.url = settings["VAULT_ADDR"]
        namespace = namespace or os.getenv("VAULT_NAMESPACE")

        client_kwargs = {"url": self.url}
        if namespace:
            client_kwargs["namespace"] = namespace
        self.client = hvac.Client(**client_kwargs)

        self._login(settings["VAULT_ROLE_ID"], settings["VAULT_SECRET_ID"])
        logger.info("Vault ready at %s", self.url)

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            response = self.client.auth.approle.login(role_id=role_id, secret_id=secret_id)
        except (Unauthorized, Forbidden, InvalidPath) as e:
            logger.error("Vault AppRole login rejected: %s", e)
            raise VaultError(f"AppRole login rejected: {e}") from e

        self.client.token = response["auth"]["client_token"]
        if not self.client.is_authenticated():
            raise VaultError("Vault token was not accepted after AppRole login")

    def get_secret(self, path: str, field: str) -> str:
        """
        Read one field of `etrans/<path>`.

        Raises:
            VaultError: Path missing, access denied, or field absent
        """
        full_path = f"{SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            raise VaultError(f"Secret '{full_path}' not found") from e
        except (Unauthorized, Forbidden) as e:
            logger.error("Access denied to %s: %s", full_path, e)
            raise VaultError(f"Access denied to secret '{full_path}'") from e

        data = response["data"]["data"]
        if field not in data:
            raise VaultError(
                f"Secret '{full_path}' has no field '{field}' (fields: {', '.join(sorted(data))})"
            )
        return data[field]


def _client() -> VaultClient:
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


def cached_secret(path: str, field: str) -> str:
    """`VaultClient.get_secret` through the process-wide client, read once."""
    key = (path, field)
    if key not in _secret_cache:
        _secret_cache[key] = _client().get_secret(path, field)
    return _secret_cache[key]


def get_database_url() -> str:
    """PostgreSQL URL for the billing database."""
    return cached_secret(*DATABASE_SECRET)
