"""Domain models for secret resolution."""
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

Primitive = Union[str, int, float, bool, None]

# A secret is either a bare primitive or a flat mapping of field name -> primitive
SecretValue = Union[Primitive, Dict[str, Any]]

# Source of a record whose secret could not be resolved; its value is an empty dict
UNRESOLVED_SOURCE = "none"


@dataclass(frozen=True)
class Secret:
    """Represents a resolved secret with its metadata."""
    key: str
    name: str
    value: Any
    source: str  # "cache", "backup", "none" or a backend identifier

    @property
    def resolved(self) -> bool:
        return self.source != UNRESOLVED_SOURCE


class SecretsDriverError(Exception):
    """Base exception for secrets-driver."""
    pass


class SecretsRetrievalError(SecretsDriverError):
    """A single secret could not be fetched or parsed."""

    def __init__(self, message: str, secret: Optional[str] = None):
        super().__init__(message)
        self.secret = secret or ""


class SecretsManagerError(SecretsDriverError):
    """The remote secret store itself is unavailable or misconfigured."""
    pass


def parse_secret_payload(raw: Union[str, bytes], name: str) -> SecretValue:
    """
    Parse a raw secret payload into a SecretValue.

    JSON objects and JSON scalars are decoded; text that is not JSON is
    returned as-is.

    Raises:
        SecretsRetrievalError: If the payload can't be decoded or is a JSON array
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("UTF-8")
        except UnicodeDecodeError as e:
            raise SecretsRetrievalError(f"Secret '{name}' is not valid UTF-8: {e}", secret=name) from e

    try:
        value = json.loads(raw)
    except ValueError:
        return raw

    if isinstance(value, list):
        raise SecretsRetrievalError(f"Secret '{name}' holds a JSON array, expected an object or a scalar", secret=name)
    return value
