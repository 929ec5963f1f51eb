"""Secret loading from Azure Key Vault or the process environment."""

import logging
import os
from typing import Optional

from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient

logger = logging.getLogger(__name__)


class SecretStore:
    """Pre-loaded secrets keyed by their Key Vault name (e.g. ``REDIS-PASSWORD``).

    Two sources, chosen once at startup:
    - Key Vault (``vault_name`` given): secrets fetched with DefaultAzureCredential
    - Environment: ``REDIS-PASSWORD`` is read from ``REDIS_PASSWORD``

    Secrets persist for the lifetime of the process. Rotation is a restart.
    """

    def __init__(self, vault_name: Optional[str] = None):
        """Initialize the store.

        Args:
            vault_name: Key Vault name, or None to read from the environment
        """
        self.vault_name = vault_name
        self._client: Optional[SecretClient] = None
        if vault_name:
            vault_url = f"https://{vault_name}.vault.azure.net/"
            self._client = SecretClient(vault_url=vault_url, credential=DefaultAzureCredential())
        self._secrets: dict[str, str] = {}

    @staticmethod
    def env_name(name: str) -> str:
        """Map a Key Vault secret name to its environment variable name."""
        return name.replace("-", "_").upper()

    def load_secrets(self, names: list[str], optional: Optional[list[str]] = None) -> None:
        """Pre-load secrets at startup.

        Fails fast if a required secret is missing or has no value. Optional
        secrets are skipped silently when absent.

        Args:
            names: Required secret names
            optional: Secret names that may be absent

        Raises:
            ValueError: If a required secret is not found or has no value
        """
        for name in names:
            value = self._fetch(name)
            if value is None:
                raise ValueError(f"Failed to load secret '{name}'")
            self._secrets[name] = value
            logger.info(f"Loaded secret: {name}")

        for name in optional or []:
            value = self._fetch(name)
            if value is not None:
                self._secrets[name] = value
                logger.info(f"Loaded optional secret: {name}")

    def _fetch(self, name: str) -> Optional[str]:
        if self._client is None:
            return os.getenv(self.env_name(name)) or None
        try:
            return self._client.get_secret(name).value
        except Exception as e:
            logger.warning(f"Key Vault lookup failed for '{name}': {e}")
            return None

    def has_secret(self, name: str) -> bool:
        """Whether a secret was loaded."""
        return name in self._secrets

    def get_secret(self, name: str) -> str:
        """Get a pre-loaded secret by name.

        Raises:
            KeyError: If secret was not pre-loaded
        """
        if name not in self._secrets:
            raise KeyError(
                f"Secret '{name}' not pre-loaded. "
                "Add it to required_secrets() in main."
            )
        return self._secrets[name]
