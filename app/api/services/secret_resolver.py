"""Resolution of customer client-secret references.

Customers store only a secret *name* (``clientSecretRef``). In deployed
environments the value lives in Azure Key Vault and is fetched with the
platform's managed identity via DefaultAzureCredential. For local
development a ``LOCAL_CUSTOMER_SECRETS`` map can stand in for the vault.
"""

import logging
import threading
import time
from collections.abc import Callable

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient

from app.core.config import Settings, get_settings
from app.core.exceptions import SecretResolutionError

logger = logging.getLogger(__name__)


class KeyVaultSecretResolver:
    """Fetch secrets from Key Vault with TTL-based caching.

    Secrets are cached for ``key_vault_secret_ttl_seconds`` (5 minutes by
    default) so rotated secrets are picked up without a restart.
    """

    def __init__(
        self,
        vault_url: str,
        ttl_seconds: int = 300,
        client: SecretClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._vault_url = vault_url
        self._ttl = ttl_seconds
        self._client = client
        self._clock = clock
        self._cache: dict[str, tuple[str, float]] = {}  # (value, expires_at)
        self._lock = threading.Lock()

    def _get_client(self) -> SecretClient:
        if self._client is None:
            self._client = SecretClient(
                vault_url=self._vault_url,
                credential=DefaultAzureCredential(),
            )
            logger.debug(f"Key Vault client initialized: {self._vault_url}")
        return self._client

    def resolve(self, secret_ref: str) -> str:
        """Return the secret value for ``secret_ref``.

        Raises:
            SecretResolutionError: If the secret is missing or the vault fails.
        """
        now = self._clock()
        with self._lock:
            cached = self._cache.get(secret_ref)
            if cached and now < cached[1]:
                logger.debug(f"Using cached secret '{secret_ref}'")
                return cached[0]

        try:
            secret = self._get_client().get_secret(secret_ref)
        except ResourceNotFoundError as e:
            raise SecretResolutionError(f"Secret '{secret_ref}' not found in Key Vault") from e
        except AzureError as e:
            logger.error(f"Failed to fetch secret '{secret_ref}' from Key Vault: {e}")
            raise SecretResolutionError(f"Key Vault request failed for '{secret_ref}'") from e

        if not secret.value:
            raise SecretResolutionError(f"Secret '{secret_ref}' has no value")

        with self._lock:
            self._cache[secret_ref] = (secret.value, now + self._ttl)
        logger.debug(f"Fetched secret '{secret_ref}' from Key Vault")
        return secret.value

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


class LocalSecretResolver:
    """Development resolver backed by a plain mapping."""

    def __init__(self, secrets: dict[str, str]):
        self._secrets = dict(secrets)

    def resolve(self, secret_ref: str) -> str:
        value = self._secrets.get(secret_ref)
        if not value:
            raise SecretResolutionError(
                f"Secret '{secret_ref}' is not configured in LOCAL_CUSTOMER_SECRETS"
            )
        return value


SecretResolver = KeyVaultSecretResolver | LocalSecretResolver


def build_secret_resolver(settings: Settings | None = None) -> SecretResolver:
    """Key Vault when KEY_VAULT_URL is set, otherwise the local map."""
    settings = settings or get_settings()
    if settings.key_vault_url:
        logger.info("Resolving customer secrets from Key Vault")
        return KeyVaultSecretResolver(
            vault_url=settings.key_vault_url,
            ttl_seconds=settings.key_vault_secret_ttl_seconds,
        )

    logger.warning(
        "KEY_VAULT_URL not configured; resolving customer secrets from LOCAL_CUSTOMER_SECRETS"
    )
    return LocalSecretResolver(settings.local_customer_secrets)
