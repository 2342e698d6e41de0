"""Environment variable backend, for local development and tests."""
import os
import re
import logging
from typing import Mapping, Optional

from .config_loader import SecretsDriverConfig
from .models import SecretValue, SecretsRetrievalError, parse_secret_payload

logger = logging.getLogger(__name__)


def env_var_name(secret_name: str) -> str:
    """
    Derive the environment variable holding a secret.

    Example:
        >>> env_var_name("prod/acme/primary-db")
        'PROD_ACME_PRIMARY_DB'
    """
    return re.sub(r"[^A-Za-z0-9]", "_", secret_name).upper()


class EnvSecretClient:
    """Reads secrets from environment variables named after the remote secret name."""

    identifier = "env"

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = environ

    @classmethod
    def from_config(cls, config: SecretsDriverConfig) -> "EnvSecretClient":
        return cls()

    def fetch_secret(self, name: str) -> SecretValue:
        environ = os.environ if self._environ is None else self._environ
        variable = env_var_name(name)
        raw = environ.get(variable)
        if not raw:
            raise SecretsRetrievalError(f"Environment variable '{variable}' not set or empty", secret=name)
        logger.debug(f"Read secret {name} from environment variable {variable}")
        return parse_secret_payload(raw, name)
