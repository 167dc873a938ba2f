"""Stripe credentials from SSM Parameter Store.

The ledger keeps two SecureString parameters per environment:

    /ledger/{environment}/stripe/secret_key      API key for refunds, intents and transfers
    /ledger/{environment}/stripe/webhook_secret  signing secret for webhook verification

Values are decrypted on first use and kept for the life of the process, so a
rotated secret is picked up on the next cold start (or after clear_cache()).
"""

import logging
from functools import lru_cache
from typing import Any

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

PARAMETER_ROOT = "/ledger"

_CLIENT_ERROR_MESSAGES = {
    "ParameterNotFound": "SSM parameter not found: {name}",
    "AccessDeniedException": "Access denied to SSM parameter {name} (ssm:GetParameter)",
}


class SSMServiceError(Exception):
    """A parameter could not be read from SSM."""

    def __init__(self, message: str, parameter: str | None = None) -> None:
        super().__init__(message)
        self.parameter = parameter


class SSMService:
    """Reads and caches decrypted ledger parameters."""

    def __init__(self, client: Any = None) -> None:
        self._client = client or boto3.client("ssm")
        self._values: dict[str, str] = {}

    @staticmethod
    def stripe_path(environment: str, name: str) -> str:
        """Path of the Stripe parameter `name` for `environment`."""
        return f"{PARAMETER_ROOT}/{environment}/stripe/{name}"

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Return the decrypted value of parameter `name`.

        Raises:
            SSMServiceError: The parameter is missing, unreadable or SSM failed.
        """
        if use_cache and name in self._values:
            return self._values[name]

        logger.info("Reading SSM parameter %s", name)
        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            template = _CLIENT_ERROR_MESSAGES.get(code, "Failed to read SSM parameter {name}")
            raise SSMServiceError(template.format(name=name), parameter=name) from e

        self._values[name] = response["Parameter"]["Value"]
        return self._values[name]

    def clear_cache(self) -> None:
        self._values.clear()


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Process-wide SSMService."""
    return SSMService()
