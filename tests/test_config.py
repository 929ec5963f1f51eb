import pytest

from clinical_knowledge.config import Settings
from clinical_knowledge.infrastructure import SecretStore
from clinical_knowledge.main import required_secrets
from clinical_knowledge.oracle.model_registry import GPT41, GPT41_MINI, ModelRegistry, model_for_task


def test_postgres_connection_string_uses_resource_prefix():
    settings = Settings(_env_file=None, resource_prefix="ck-test", postgres_database="ledgers")

    assert settings.get_postgres_connection_string("pw") == (
        "postgresql://pgadmin:pw@ck-test-postgres.postgres.database.azure.com:5432/ledgers?sslmode=require"
    )


def test_analysis_cache_disabled_without_host():
    assert Settings(_env_file=None).analysis_cache_enabled is False
    assert Settings(_env_file=None, redis_host="cache.local").analysis_cache_enabled is True


def test_required_secrets_follow_modes():
    assert required_secrets(Settings(_env_file=None, ledger_backend="memory", auth_mode="local")) == []
    assert required_secrets(Settings(_env_file=None, key_vault_name="kv", auth_mode="jwt")) == [
        "AZURE-OPENAI-API-KEY",
        "POSTGRES-ADMIN-PASSWORD",
        "AUTH-JWT-SECRET",
    ]


def test_secret_store_reads_environment(monkeypatch):
    monkeypatch.setenv("POSTGRES_ADMIN_PASSWORD", "pw")
    monkeypatch.delenv("REDIS_PASSWORD", raising=False)
    secrets = SecretStore()

    secrets.load_secrets(["POSTGRES-ADMIN-PASSWORD"], optional=["REDIS-PASSWORD"])

    assert secrets.get_secret("POSTGRES-ADMIN-PASSWORD") == "pw"
    assert not secrets.has_secret("REDIS-PASSWORD")
    with pytest.raises(KeyError):
        secrets.get_secret("REDIS-PASSWORD")


def test_secret_store_fails_fast_on_missing_required(monkeypatch):
    monkeypatch.delenv("AUTH_JWT_SECRET", raising=False)

    with pytest.raises(ValueError):
        SecretStore().load_secrets(["AUTH-JWT-SECRET"])


def test_model_registry_resolves_task_models(monkeypatch):
    monkeypatch.setenv("AZURE_OPENAI_API_KEY", "key-1")
    secrets = SecretStore()
    secrets.load_secrets(["AZURE-OPENAI-API-KEY"])
    registry = ModelRegistry(secrets)

    resolved = registry.get(model_for_task("memory"))

    assert resolved.deployment_name == GPT41_MINI.deployment_name
    assert resolved.api_key == "key-1"
    assert model_for_task("diagnoses") == GPT41.name
    assert model_for_task("unknown", default="custom") == "custom"
