"""AWS Secrets Manager backend."""
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config_loader import SecretsDriverConfig
from .models import SecretValue, SecretsManagerError, SecretsRetrievalError, parse_secret_payload

logger = logging.getLogger(__name__)

# ClientError codes that only concern the requested secret
PER_SECRET_ERROR_CODES = frozenset({
    "ResourceNotFoundException",
    "DecryptionFailure",
    "InvalidParameterException",
    "InvalidRequestException",
    "AccessDeniedException",
})


class AWSSecretClient:
    """Fetches secrets from AWS Secrets Manager."""

    identifier = "aws"

    def __init__(self, region_name: Optional[str] = None, session: Optional[boto3.session.Session] = None):
        self.region_name = region_name
        self._session = session
        self._client = None

    @classmethod
    def from_config(cls, config: SecretsDriverConfig) -> "AWSSecretClient":
        return cls(region_name=config.aws_region)

    @property
    def client(self):
        """Lazy-initialize the secretsmanager client."""
        if self._client is None:
            session = self._session or boto3.session.Session()
            try:
                self._client = session.client("secretsmanager", region_name=self.region_name)
            except BotoCoreError as e:
                raise SecretsManagerError(f"AWS Secrets Manager client could not be created: {e}") from e
            logger.debug(f"Created secretsmanager client for region {self._client.meta.region_name}")
        return self._client

    def fetch_secret(self, name: str) -> SecretValue:
        """
        Fetch and parse a secret from AWS Secrets Manager.

        Args:
            name: Secret ID (name or ARN)

        Returns:
            Parsed secret value

        Raises:
            SecretsRetrievalError: If this secret can't be read
            SecretsManagerError: If Secrets Manager can't be reached or used
        """
        try:
            response = self.client.get_secret_value(SecretId=name)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in PER_SECRET_ERROR_CODES:
                raise SecretsRetrievalError(f"AWS fetch failed for {name}: {code}", secret=name) from e
            raise SecretsManagerError(f"AWS Secrets Manager error: {e}") from e
        except BotoCoreError as e:
            raise SecretsManagerError(f"AWS Secrets Manager unavailable: {e}") from e

        if "SecretString" in response:
            return parse_secret_payload(response["SecretString"], name)
        if "SecretBinary" in response:
            return parse_secret_payload(response["SecretBinary"], name)
        raise SecretsRetrievalError(f"Secret '{name}' has no value", secret=name)
