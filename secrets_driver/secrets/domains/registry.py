"""Registry of remote secret store backends, keyed by the `manager` setting."""
import logging
from typing import Callable, Dict, List, Protocol

from .aws_client import AWSSecretClient
from .config_loader import ConfigError, SecretsDriverConfig
from .env_client import EnvSecretClient
from .gcp_client import GCPSecretClient
from .models import SecretValue

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    def fetch_secret(self, name: str) -> SecretValue:
        ...


ManagerFactory = Callable[[SecretsDriverConfig], SecretStore]

_MANAGERS: Dict[str, ManagerFactory] = {}


def register_manager(identifier: str, factory: ManagerFactory) -> None:
    """
    Register a backend factory under a manager identifier.

    Identifiers are case-insensitive; registering an existing identifier
    replaces the previous factory.
    """
    key = identifier.strip().lower()
    if key in _MANAGERS:
        logger.debug(f"Replacing secrets manager '{key}'")
    _MANAGERS[key] = factory


def get_manager_factory(identifier: str) -> ManagerFactory:
    """
    Look up the factory for a manager identifier.

    Raises:
        ConfigError: If no backend is registered under the identifier
    """
    try:
        return _MANAGERS[identifier.strip().lower()]
    except KeyError:
        raise ConfigError(
            f"{identifier} does not point to a valid secrets manager\n"
            f"Available managers: {', '.join(available_managers())}"
        ) from None


def available_managers() -> List[str]:
    return sorted(_MANAGERS)


register_manager(AWSSecretClient.identifier, AWSSecretClient.from_config)
register_manager(GCPSecretClient.identifier, GCPSecretClient.from_config)
register_manager(EnvSecretClient.identifier, EnvSecretClient.from_config)
