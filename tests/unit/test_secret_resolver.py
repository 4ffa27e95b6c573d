"""Tests for customer secret resolution."""

from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from app.api.services.secret_resolver import (
    KeyVaultSecretResolver,
    LocalSecretResolver,
    build_secret_resolver,
)
from app.core.exceptions import ErrorKind, SecretResolutionError


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _vault(value: str = "vault-secret") -> MagicMock:
    client = MagicMock()
    client.get_secret.return_value = MagicMock(value=value)
    return client


class TestKeyVaultSecretResolver:
    def test_secret_is_cached_within_ttl(self):
        client = _vault()
        clock = FakeClock()
        resolver = KeyVaultSecretResolver("https://kv.test", ttl_seconds=300, client=client, clock=clock)

        assert resolver.resolve("contoso-secret") == "vault-secret"
        clock.now = 299
        assert resolver.resolve("contoso-secret") == "vault-secret"
        client.get_secret.assert_called_once_with("contoso-secret")

    def test_secret_is_refetched_after_ttl(self):
        client = _vault()
        clock = FakeClock()
        resolver = KeyVaultSecretResolver("https://kv.test", ttl_seconds=300, client=client, clock=clock)

        resolver.resolve("contoso-secret")
        clock.now = 301
        resolver.resolve("contoso-secret")
        assert client.get_secret.call_count == 2

    def test_missing_secret(self):
        client = MagicMock()
        client.get_secret.side_effect = ResourceNotFoundError("SecretNotFound")
        resolver = KeyVaultSecretResolver("https://kv.test", client=client)

        with pytest.raises(SecretResolutionError) as exc_info:
            resolver.resolve("missing")
        assert exc_info.value.kind == ErrorKind.AUTHENTICATION_FAILED

    def test_vault_failure(self):
        client = MagicMock()
        client.get_secret.side_effect = HttpResponseError("Forbidden")
        resolver = KeyVaultSecretResolver("https://kv.test", client=client)

        with pytest.raises(SecretResolutionError):
            resolver.resolve("contoso-secret")

    def test_empty_value_is_rejected(self):
        resolver = KeyVaultSecretResolver("https://kv.test", client=_vault(value=""))
        with pytest.raises(SecretResolutionError):
            resolver.resolve("contoso-secret")


class TestLocalSecretResolver:
    def test_resolves_configured_secret(self):
        assert LocalSecretResolver({"ref": "value"}).resolve("ref") == "value"

    def test_unknown_reference(self):
        with pytest.raises(SecretResolutionError):
            LocalSecretResolver({}).resolve("ref")


class TestBuildSecretResolver:
    def test_key_vault_when_url_configured(self):
        settings = MagicMock(key_vault_url="https://kv.test", key_vault_secret_ttl_seconds=60)
        assert isinstance(build_secret_resolver(settings), KeyVaultSecretResolver)

    def test_local_map_otherwise(self):
        settings = MagicMock(key_vault_url=None, local_customer_secrets={"ref": "value"})
        resolver = build_secret_resolver(settings)
        assert isinstance(resolver, LocalSecretResolver)
        assert resolver.resolve("ref") == "value"
