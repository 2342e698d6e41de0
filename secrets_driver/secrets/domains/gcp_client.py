"""GCP Secret Manager backend."""
import os
import logging
from typing import Optional

from google.api_core import exceptions as gcp_exceptions
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import secretmanager

from .config_loader import SecretsDriverConfig
from .models import SecretValue, SecretsManagerError, SecretsRetrievalError, parse_secret_payload

logger = logging.getLogger(__name__)

# Failures that concern a single secret; anything else means the store is unusable
_PER_SECRET_ERRORS = (
    gcp_exceptions.NotFound,
    gcp_exceptions.PermissionDenied,
    gcp_exceptions.InvalidArgument,
    gcp_exceptions.FailedPrecondition,
)


class GCPSecretClient:
    """Fetches secrets from GCP Secret Manager."""

    identifier = "gcp"

    def __init__(self, project_id: Optional[str] = None, service_account_path: Optional[str] = None):
        self.project_id = project_id
        self.service_account_path = service_account_path
        self._client = None

    @classmethod
    def from_config(cls, config: SecretsDriverConfig) -> "GCPSecretClient":
        return cls(project_id=config.gcp_project_id, service_account_path=config.gcp_service_account_path)

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            if self.service_account_path:
                os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = self.service_account_path
                logger.info(f"Set GOOGLE_APPLICATION_CREDENTIALS from config: {self.service_account_path}")
            try:
                self._client = secretmanager.SecretManagerServiceClient()
            except DefaultCredentialsError as e:
                raise SecretsManagerError(f"GCP Secret Manager client could not be created: {e}") from e
        return self._client

    def resource_name(self, name: str) -> str:
        """
        Map a secret name onto its Secret Manager resource path.

        Names already starting with "projects/" are used verbatim.

        Raises:
            SecretsManagerError: If no project ID is configured
        """
        if name.startswith("projects/"):
            return name
        if not self.project_id:
            raise SecretsManagerError(
                "Project ID not found. Please set GCP_PROJECT environment variable or configure gcp.project_id"
            )
        return f"projects/{self.project_id}/secrets/{name}/versions/latest"

    def fetch_secret(self, name: str) -> SecretValue:
        """
        Fetch and parse a secret from GCP Secret Manager.

        Args:
            name: Secret ID or full resource path

        Returns:
            Parsed secret value

        Raises:
            SecretsRetrievalError: If this secret can't be read
            SecretsManagerError: If Secret Manager can't be reached or used
        """
        resource = self.resource_name(name)
        try:
            response = self.client.access_secret_version(request={"name": resource})
        except _PER_SECRET_ERRORS as e:
            raise SecretsRetrievalError(f"GCP fetch failed for {name}: {e.message}", secret=name) from e
        except (gcp_exceptions.GoogleAPIError, DefaultCredentialsError) as e:
            raise SecretsManagerError(f"GCP Secret Manager unavailable: {e}") from e

        return parse_secret_payload(response.payload.data, name)
